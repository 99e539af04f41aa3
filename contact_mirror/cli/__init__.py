"""CLI package for contact_mirror."""

from contact_mirror.cli.formatters import (
    show_contact,
    show_contact_table,
    show_sync_result,
)
from contact_mirror.cli.main import SyncStack, build_stack, cli

__all__ = [
    "SyncStack",
    "build_stack",
    "cli",
    "show_contact",
    "show_contact_table",
    "show_sync_result",
]
