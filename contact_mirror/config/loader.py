"""
Configuration loader module for contact-mirror.

Provides YAML-based configuration file loading with support for:
- Resolving the configuration directory from arguments or environment
- Graceful handling of missing configuration files
- Type and range validation of known options
- Resolving defaults into a typed Settings object
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from contact_mirror.api.directory_api import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from contact_mirror.sync.hooks import DEFAULT_SYNC_ID_THRESHOLD

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".contact-mirror"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "CONTACT_MIRROR_CONFIG_DIR"

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# Default database file name inside the configuration directory
DEFAULT_DATABASE_FILE = "contacts.db"

# Known configuration keys and their expected types
VALID_KEYS: dict[str, type[Any] | tuple[type[Any], ...]] = {
    "base_url": str,
    "request_timeout": (int, float),
    "database_path": str,
    "sync_id_threshold": int,
    "verbose": bool,
    "log_dir": str,
    "log_retention_count": int,
}

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. CONTACT_MIRROR_CONFIG_DIR environment variable
        3. Default directory (~/.contact-mirror)

    Returns:
        Resolved Path to the configuration directory
    """
    if config_dir is None:
        config_dir = os.environ.get(CONFIG_DIR_ENV_VAR) or DEFAULT_CONFIG_DIR
    return Path(config_dir).expanduser().resolve()


@dataclass
class Settings:
    """
    Resolved application settings.

    Attributes:
        base_url: Root URL of the remote directory service
        request_timeout: HTTP timeout in seconds
        database_path: SQLite database file
        sync_id_threshold: Boundary between inbound and outbound sync
        verbose: Verbose logging
        log_dir: Directory for daily log files
        log_retention_count: Number of log files kept (0 keeps all)
    """

    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = DEFAULT_TIMEOUT
    database_path: Path = DEFAULT_CONFIG_DIR / DEFAULT_DATABASE_FILE
    sync_id_threshold: int = DEFAULT_SYNC_ID_THRESHOLD
    verbose: bool = False
    log_dir: Path = DEFAULT_CONFIG_DIR / "logs"
    log_retention_count: int = 10

    @classmethod
    def from_dict(cls, config: dict[str, Any], config_dir: Path) -> Settings:
        """
        Create Settings from a validated configuration dictionary.

        Relative paths are resolved against config_dir.

        Args:
            config: Validated configuration values (may be empty)
            config_dir: Configuration directory

        Returns:
            Settings with defaults for every missing option
        """

        def _path(key: str, default: str) -> Path:
            path = Path(config.get(key) or default).expanduser()
            return path if path.is_absolute() else config_dir / path

        return cls(
            base_url=config.get("base_url", DEFAULT_BASE_URL),
            request_timeout=float(config.get("request_timeout", DEFAULT_TIMEOUT)),
            database_path=_path("database_path", DEFAULT_DATABASE_FILE),
            sync_id_threshold=config.get(
                "sync_id_threshold", DEFAULT_SYNC_ID_THRESHOLD
            ),
            verbose=config.get("verbose", False),
            log_dir=_path("log_dir", "logs"),
            log_retention_count=config.get("log_retention_count", 10),
        )


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load_and_validate()
        settings = Settings.from_dict(config, loader.config_dir)

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.contact-mirror/ or $CONTACT_MIRROR_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    @property
    def config_path(self) -> Path:
        """Full path to the configuration file."""
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Configuration values, or an empty dict if the file doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self.config_path)

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Args:
            path: Path to the configuration file

        Returns:
            Configuration values, or an empty dict if the file doesn't exist
            or is empty

        Raises:
            ConfigError: If the file cannot be read or is not a YAML mapping
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        if config is None:
            logger.debug(f"Configuration file is empty: {path}")
            return {}

        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )

        logger.debug(f"Loaded configuration from {path}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration types and values.

        Unknown keys are ignored with a debug message.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If a known option has the wrong type or value
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        for key, value in config.items():
            expected_type = VALID_KEYS.get(key)
            if expected_type is None:
                logger.debug(f"Ignoring unknown configuration key: {key}")
                continue
            # bool is an int subclass; don't accept it for numeric options
            wrong_bool = isinstance(value, bool) and expected_type is not bool
            if wrong_bool or not isinstance(value, expected_type):
                if isinstance(expected_type, tuple):
                    type_name = " or ".join(t.__name__ for t in expected_type)
                else:
                    type_name = expected_type.__name__
                raise ConfigError(
                    f"Invalid type for '{key}': expected {type_name}, "
                    f"got {type(value).__name__}"
                )

        base_url = config.get("base_url")
        if base_url is not None and not base_url.startswith(("http://", "https://")):
            raise ConfigError(
                f"base_url must start with http:// or https://, got {base_url!r}"
            )

        if "request_timeout" in config and config["request_timeout"] <= 0:
            raise ConfigError(
                f"request_timeout must be > 0, got {config['request_timeout']}"
            )

        for key in ("sync_id_threshold", "log_retention_count"):
            if key in config and config[key] < 0:
                raise ConfigError(f"{key} must be >= 0, got {config[key]}")

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Returns:
            Validated configuration dictionary

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
