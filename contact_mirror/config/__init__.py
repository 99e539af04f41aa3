"""
contact_mirror.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from contact_mirror.config.generator import generate_default_config, save_config_file
from contact_mirror.config.loader import (
    DEFAULT_CONFIG_DIR,
    ConfigError,
    ConfigLoader,
    Settings,
    resolve_config_dir,
)

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "ConfigError",
    "ConfigLoader",
    "Settings",
    "generate_default_config",
    "resolve_config_dir",
    "save_config_file",
]
