from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from addon_manager.domain.errors import ConfigurationError
from addon_manager.domain.models import Settings

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV_VAR = "WOW_ADDON_MANAGER_CONFIG_DIR"
APP_DIR_NAME = "wowAddonManager"
SETTINGS_FILE_NAME = "settings.json"


def get_config_dir() -> Path:
    """
    Determine and create the configuration directory.

    Priority:
    1. Environment variable WOW_ADDON_MANAGER_CONFIG_DIR
    2. $XDG_CONFIG_HOME/wowAddonManager
    3. ~/.config/wowAddonManager

    Raises ConfigurationError when the directory cannot be created; the
    application cannot run without it.
    """
    env_path = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_path:
        config_dir = Path(env_path).expanduser()
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
        config_dir = base / APP_DIR_NAME

    try:
        config_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ConfigurationError(f"Config directory {config_dir} could not be created: {e}") from e
    return config_dir


def settings_path(config_dir: Optional[Path] = None) -> Path:
    return (config_dir or get_config_dir()) / SETTINGS_FILE_NAME


def load_settings(config_dir: Optional[Path] = None) -> Settings:
    """
    Load settings.json, merging with defaults for any missing fields,
    and write it back so any new fields are persisted.
    """
    path = settings_path(config_dir)
    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            settings = Settings(**raw)
        except (OSError, ValueError, TypeError, ValidationError) as e:
            # If parsing fails, fall back to defaults and overwrite file.
            logger.error(f"Invalid settings file {path}, using defaults: {e}")
            settings = Settings()
    else:
        settings = Settings()

    save_settings(settings, path.parent)
    return settings


def save_settings(settings: Settings, config_dir: Optional[Path] = None) -> None:
    path = settings_path(config_dir)
    try:
        path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Settings file {path} could not be written: {e}") from e
