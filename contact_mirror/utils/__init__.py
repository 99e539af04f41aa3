"""
contact_mirror.utils - Utility module

Common utilities including logging configuration.
"""

from contact_mirror.utils.logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
