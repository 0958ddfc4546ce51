"""
Configuration Loader - JSON file to ClientSettings
==================================================
Loads configuration from a JSON file, resolving ${ENV_VAR} placeholders.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .settings import ClientSettings

DEFAULT_CONFIG_PATHS = (
    "config/wsstream.json",
    "wsstream.json",
    "../config/wsstream.json",
)


def resolve_env_vars(data: Any) -> Any:
    """Replace "${NAME}" strings with the value of environment variable NAME."""
    if isinstance(data, dict):
        return {k: resolve_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [resolve_env_vars(i) for i in data]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        return os.getenv(data[2:-1], "")
    return data


def load_config_data(config_path: str) -> Dict[str, Any]:
    """
    Read a JSON configuration file and resolve ${ENV_VAR} placeholders.

    Nothing is validated yet, so callers can merge overrides first.

    Raises:
        OSError: file cannot be read
        ValueError: invalid JSON
    """
    with open(config_path, 'r', encoding='utf-8') as f:
        config_data = json.load(f)

    resolved = resolve_env_vars(config_data)
    stream = resolved.get("stream")
    if isinstance(stream, dict) and not stream.get("proxy_url"):
        # An unset ${HTTPS_PROXY} resolves to "", which means no proxy
        stream.pop("proxy_url", None)
    return resolved


def load_settings_from_json(config_path: str) -> ClientSettings:
    """
    Load ClientSettings from a JSON configuration file.

    Example file:
        {
          "logging": {"level": "DEBUG"},
          "stream": {"endpoint": "wss://example.com/ws", "proxy_url": "${HTTPS_PROXY}"}
        }

    Raises:
        OSError: file cannot be read
        ValueError: invalid JSON
        pydantic.ValidationError: invalid values
    """
    return ClientSettings(**load_config_data(config_path))


def find_config_file() -> Optional[str]:
    """First of DEFAULT_CONFIG_PATHS that exists, or None."""
    for config_path in DEFAULT_CONFIG_PATHS:
        if Path(config_path).exists():
            return config_path
    return None


def get_settings_from_working_directory() -> ClientSettings:
    """
    Load settings from the first known config path that exists.

    Falls back to defaults (plus environment variables) when no file is found.
    """
    config_path = find_config_file()
    if config_path:
        return load_settings_from_json(config_path)

    return ClientSettings()
