"""
Tag/Association Decoder
Decodes tags, routes and subnet associations out of raw blocks carved by the
scanner. A bad entry is skipped; the rest of the block is still decoded.
"""

from typing import Callable, Dict, List, Optional

from models import Association, Route
from scanner import find_value, find_value_at, iter_objects

NAME_TAG = "Name"
DEFAULT_ROUTE_STATE = "active"
LOCAL_TARGET = "local"

# Subnet id -> display name, None when the subnet is unknown
NameResolver = Callable[[str], Optional[str]]


def decode_name_tag(block) -> str:
    """
    Value of the `Name` tag, or "" when there is none.

    Handles both `{"Key": "Name", "Value": ...}` and the value-first shape.
    """
    tags = decode_tags(block)
    return tags.get(NAME_TAG, "")


def _pair_linear(block, tags: Dict[str, str]):
    """Pair each Key with the nearest following Value (no object boundaries)."""
    pos = 0
    while True:
        key_hit = find_value_at(block, "Key", pos)
        if key_hit is None:
            return
        key, pos = key_hit
        value_hit = find_value_at(block, "Value", pos)
        if value_hit is None:
            return
        if key not in tags:
            tags[key] = value_hit[0]


def decode_tags(block) -> Dict[str, str]:
    """
    Ordered tag map. The first occurrence of a key wins.

    Key/Value pairs are taken from the same `{}` object when the block has
    objects, falling back to nearest-following pairing otherwise.
    """
    tags: Dict[str, str] = {}
    if not block:
        return tags

    seen_object = False
    for obj in iter_objects(block):
        seen_object = True
        key = find_value(obj, "Key")
        value = find_value(obj, "Value")
        if key is None or value is None:
            continue
        if key not in tags:
            tags[key] = value

    if not seen_object:
        _pair_linear(block, tags)
    return tags


def resolve_target(entry) -> str:
    """Route target: gateway first, then NAT, else local."""
    gateway = find_value(entry, "GatewayId")
    if gateway:
        return gateway
    nat = find_value(entry, "NatGatewayId")
    if nat:
        return nat
    return LOCAL_TARGET


def decode_routes(block) -> List[Route]:
    """Routes for every object carrying a destination CIDR, in scan order."""
    routes = []
    if not block:
        return routes

    for obj in iter_objects(block):
        destination = find_value(obj, "DestinationCidrBlock")
        if not destination:
            continue
        routes.append(Route(
            destination=destination,
            target=resolve_target(obj),
            state=find_value(obj, "State") or DEFAULT_ROUTE_STATE,
        ))
    return routes


def decode_associations(block, resolve_name: NameResolver = None) -> List[Association]:
    """
    Subnet associations, in scan order.

    Args:
        block: Raw associations block
        resolve_name: Lookup supplied by the assembler; unknown subnets keep an
                      empty name and render as NULL
    """
    associations = []
    if not block:
        return associations

    for obj in iter_objects(block):
        subnet_id = find_value(obj, "SubnetId")
        if not subnet_id:
            # Main-table associations carry no subnet
            continue
        name = resolve_name(subnet_id) if resolve_name else None
        associations.append(Association(subnet_id=subnet_id, name=name or ""))
    return associations
