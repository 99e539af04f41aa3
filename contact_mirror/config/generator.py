"""
Configuration file generator for contact-mirror.

Generates a default YAML configuration file with every option documented
and commented out.
"""

import logging
from pathlib import Path

from contact_mirror.api.directory_api import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return f"""# Contact Mirror Configuration
# ============================
#
# Default options for contact-mirror. CLI arguments override these values.
# Save as ~/.contact-mirror/config.yaml (or set CONTACT_MIRROR_CONFIG_DIR).

# Remote Directory
# ----------------

# Root URL of the remote user directory
# Users are read from <base_url>/users/<id> and written to <base_url>/users/add
# Default: {DEFAULT_BASE_URL}
# base_url: {DEFAULT_BASE_URL}

# HTTP timeout in seconds for each remote call
# Default: 30
# request_timeout: 30


# Sync Behavior
# -------------

# Contacts with sync_id at or below this value are pulled from the remote
# directory when created; contacts above it are pushed when updated.
# New contacts without a sync_id get a random one between 0 and this value.
# Default: 100
# sync_id_threshold: 100


# Storage
# -------

# SQLite database file (relative paths are resolved against the config dir)
# Default: contacts.db
# database_path: contacts.db


# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: false

# Directory for daily log files (relative to the config dir)
# Default: logs
# log_dir: logs

# Number of daily log files to keep (0 keeps all)
# Default: 10
# log_retention_count: 10
"""


def save_config_file(path: Path, overwrite: bool = False) -> bool:
    """
    Write the default configuration to a file.

    Args:
        path: Destination file
        overwrite: Replace an existing file

    Returns:
        True if the file was written, False if it already existed

    Raises:
        OSError: If the file cannot be written
    """
    if path.exists() and not overwrite:
        logger.debug(f"Configuration file already exists: {path}")
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_default_config(), encoding="utf-8")
    logger.info(f"Wrote configuration file: {path}")
    return True
