"""
Entry point for running contact_mirror as a module.

Usage:
    python -m contact_mirror --help
    python -m contact_mirror pull 17 42
    python -m contact_mirror push 1 2 3
"""

from contact_mirror.cli import cli

if __name__ == "__main__":
    cli()
