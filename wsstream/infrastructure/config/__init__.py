"""
Client Configuration
====================
ClientSettings is the root; StreamSettings is the immutable endpoint
configuration handed to StreamClient at start time.
"""

from .settings import ClientSettings, LoggingSettings, LogLevel, StreamSettings
from .config_loader import (
    find_config_file,
    get_settings_from_working_directory,
    load_config_data,
    load_settings_from_json,
)

__all__ = [
    'ClientSettings',
    'LoggingSettings',
    'LogLevel',
    'StreamSettings',
    'find_config_file',
    'get_settings_from_working_directory',
    'load_config_data',
    'load_settings_from_json',
]
