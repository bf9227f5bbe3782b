"""
Field Scanner and Bracketed-Block Extractor
Tolerant text scanning over raw inventory responses.

Nothing in here requires the blob to be valid JSON. Every function is total:
empty, truncated or garbage input yields None (or an empty result), never an
exception.
"""

import re
from functools import lru_cache
from typing import Iterator, Optional, Sequence, Tuple

_PAIRS = {"[": "]", "{": "}"}

KNOWN_STATES = ("available", "pending", "deleting", "deleted")


def _as_text(blob) -> str:
    if blob is None:
        return ""
    if isinstance(blob, str):
        return blob
    if isinstance(blob, (bytes, bytearray)):
        return bytes(blob).decode("utf-8", errors="replace")
    return ""


@lru_cache(maxsize=128)
def _string_field(key: str):
    return re.compile('"' + re.escape(key) + r'"\s*:\s*"', re.IGNORECASE)


@lru_cache(maxsize=128)
def _any_field(key: str):
    return re.compile('"' + re.escape(key) + r'"\s*:\s*', re.IGNORECASE)


def _closing_quote(text: str, pos: int) -> Optional[int]:
    """Index of the next unescaped double quote at or after pos."""
    i = pos
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == '"':
            return i
        i += 1
    return None

# =============================================================================
# FIELD SCANNER
# =============================================================================

def find_value_at(blob, key: str, start: int = 0) -> Optional[Tuple[str, int]]:
    """
    Find the first string value for `key` at or after `start`.

    Returns:
        (value, offset just past the closing quote), or None
    """
    text = _as_text(blob)
    if not text or not key or start < 0 or start >= len(text):
        return None

    match = _string_field(key).search(text, start)
    if not match:
        return None

    end = _closing_quote(text, match.end())
    if end is None:
        return None
    return text[match.end():end], end + 1


def find_value(blob, key: str) -> Optional[str]:
    """Value of the first `"key": "..."` pair in scan order, or None."""
    found = find_value_at(blob, key)
    return found[0] if found else None


def find_values(blob, key: str) -> Iterator[str]:
    """Every string value for `key`, left to right."""
    pos = 0
    while True:
        found = find_value_at(blob, key, pos)
        if found is None:
            return
        value, pos = found
        yield value


def find_ids(blob, prefix: str) -> Iterator[Tuple[str, int, int]]:
    """
    Quoted resource identifiers starting with `prefix` (e.g. "igw-").

    Yields (identifier, start offset of the opening quote, offset past the
    closing quote).
    """
    text = _as_text(blob)
    if not text or not prefix:
        return
    pattern = re.compile('"(' + re.escape(prefix) + r'[^"\s]*)"')
    for match in pattern.finditer(text):
        yield match.group(1), match.start(), match.end()


def find_bool(blob, key: str) -> Optional[bool]:
    """
    Boolean for `key`, either inline (`"key": true`) or wrapped the way
    describe-vpc-attribute wraps it (`"key": {"Value": true}`).
    """
    text = _as_text(blob)
    if not text or not key:
        return None

    match = _any_field(key).search(text)
    if not match:
        return None

    rest = text[match.end():]
    inline = re.match(r"(true|false)\b", rest, re.IGNORECASE)
    if inline:
        return inline.group(1).lower() == "true"

    if rest.startswith("{"):
        end = balanced_span(rest, 0, "{")
        rest = rest[:end] if end else rest

    wrapped = re.search(r'"Value"\s*:\s*(true|false)\b', rest, re.IGNORECASE)
    if wrapped:
        return wrapped.group(1).lower() == "true"
    return None


def find_state(blob, states: Sequence[str] = KNOWN_STATES) -> str:
    """First recognised lifecycle `State` in scan order, else 'unknown'."""
    for value in find_values(blob, "State"):
        if value in states:
            return value
    return "unknown"

# =============================================================================
# BRACKETED-BLOCK EXTRACTOR
# =============================================================================

def balanced_span(blob, start: int, opener: str = "[") -> Optional[int]:
    """
    Offset one past the delimiter that closes the block opened at or after
    `start`.

    Depth is counted over `[`/`]` (or `{`/`}` when opener is "{"). Delimiters
    inside string literals do not count. Returns None when the blob ends first
    or a close appears before any open.
    """
    closer = _PAIRS.get(opener)
    if closer is None:
        raise ValueError(f"Unsupported block opener: {opener!r}")

    text = _as_text(blob)
    if start < 0 or start >= len(text):
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == opener:
            depth += 1
        elif ch == closer:
            if depth == 0:
                return None
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def _find_unquoted(text: str, ch: str, start: int) -> int:
    in_string = False
    i = start
    while i < len(text):
        c = text[i]
        if in_string:
            if c == "\\":
                i += 2
                continue
            if c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == ch:
            return i
        i += 1
    return -1


def next_block(blob, start: int = 0, opener: str = "[") -> Optional[Tuple[int, int]]:
    """(begin, end) of the next balanced block opening at or after `start`."""
    text = _as_text(blob)
    if start < 0 or start >= len(text):
        return None

    begin = _find_unquoted(text, opener, start)
    if begin < 0:
        return None
    end = balanced_span(text, begin, opener)
    if end is None:
        return None
    return begin, end


def iter_blocks(blob, start: int = 0, opener: str = "[") -> Iterator[Tuple[int, int]]:
    """
    Walk sibling blocks left to right.

    Each scan resumes at the end of the previous span, so nested blocks are
    consumed as part of their parent and never yielded on their own.
    """
    text = _as_text(blob)
    pos = start
    while True:
        span = next_block(text, pos, opener)
        if span is None:
            return
        yield span
        pos = span[1]


def iter_objects(blob, start: int = 0) -> Iterator[str]:
    """Text of each top-level `{...}` object at or after `start`."""
    text = _as_text(blob)
    for begin, end in iter_blocks(text, start, "{"):
        yield text[begin:end]


def iter_fragments(blob, start: int = 0) -> Iterator[Tuple[str, bool]]:
    """
    Like iter_objects, but a final object cut off by truncation is yielded
    too, as whatever text is left.

    Yields:
        (object text, whether the object closed)
    """
    text = _as_text(blob)
    pos = start
    while 0 <= pos < len(text):
        begin = _find_unquoted(text, "{", pos)
        if begin < 0:
            return
        end = balanced_span(text, begin, "{")
        if end is None:
            yield text[begin:], False
            return
        yield text[begin:end], True
        pos = end


def block_start(blob, anchor: str, opener: str = "[") -> Optional[int]:
    """Offset just inside the block that directly follows `"anchor":`."""
    text = _as_text(blob)
    if not text:
        return None
    match = _any_field(anchor).search(text)
    if not match or not text.startswith(opener, match.end()):
        return None
    return match.end() + 1


def block_after(blob, anchor: str, opener: str = "[") -> Optional[str]:
    """
    Block that directly follows `"anchor":`, e.g. the tag list after "Tags".

    Returns None when the anchor is missing or its value is not a balanced
    block (null, truncated, ...).
    """
    text = _as_text(blob)
    inner = block_start(text, anchor, opener)
    if inner is None:
        return None
    end = balanced_span(text, inner - 1, opener)
    if end is None:
        return None
    return text[inner - 1:end]
