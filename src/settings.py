"""
Settings
Loads and saves the YAML settings file. Anything unreadable falls back to
defaults with a warning; settings never stop the tool from running.
"""

import logging
import os
from dataclasses import asdict
from typing import Optional

import yaml

from models import ToolSettings

logger = logging.getLogger(__name__)

SETTINGS_ENV = 'VPC_REPORT_SETTINGS'
DEFAULT_SETTINGS_PATH = os.path.join('~', '.vpc-report', 'settings.yaml')
LANGUAGES = ('en', 'ko')
OPTIONAL_KEYS = ('profile', 'log_file')


def default_settings_path() -> str:
    """Settings path from the environment, else ~/.vpc-report/settings.yaml."""
    return os.path.expanduser(os.environ.get(SETTINGS_ENV) or DEFAULT_SETTINGS_PATH)


def load_settings(path: Optional[str] = None) -> ToolSettings:
    """
    Load settings from YAML.

    Args:
        path: Settings file (defaults to default_settings_path())

    Returns:
        ToolSettings; defaults for a missing, unreadable or malformed file
    """
    path = path or default_settings_path()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug("Settings file not found: %s - using defaults", path)
        return ToolSettings()
    except OSError as e:
        logger.warning("Cannot read settings file %s: %s - using defaults", path, e)
        return ToolSettings()
    except yaml.YAMLError as e:
        logger.warning("Malformed YAML in %s: %s - using defaults", path, e)
        return ToolSettings()

    if raw is None:
        return ToolSettings()
    if not isinstance(raw, dict):
        logger.warning("Settings file %s is not a YAML mapping - using defaults", path)
        return ToolSettings()

    known = {}
    for key, value in raw.items():
        if key not in ToolSettings.field_names():
            continue
        if value is None and key in OPTIONAL_KEYS:
            known[key] = None
        elif isinstance(value, str) and (value or key in OPTIONAL_KEYS):
            known[key] = value or None
        else:
            logger.warning("Invalid value %r for '%s' in %s - using default", value, key, path)
    settings = ToolSettings(**known)

    if settings.language not in LANGUAGES:
        logger.warning("Unknown language %r in %s - using 'en'", settings.language, path)
        settings.language = 'en'

    return settings


def save_settings(settings: ToolSettings, path: Optional[str] = None) -> str:
    """
    Write settings as YAML, creating the parent directory.

    Returns:
        The path written
    """
    path = path or default_settings_path()
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(asdict(settings), f, default_flow_style=False, sort_keys=False)

    return path
