"""
Command-line interface for contact_mirror.

Provides CLI commands for managing local contacts and mirroring them
against the remote user directory.

Usage:
    # Show help
    contact-mirror --help

    # Create the database (and a commented config template)
    contact-mirror init --write-config

    # Add a contact; it is pulled from the remote directory after saving
    contact-mirror add --first-name Emily --last-name Johnson --sync-id 17

    # Change a contact; contacts with sync_id above 100 are pushed
    contact-mirror edit 3 --email emily@example.com --sync-id 250

    # Run batches directly
    contact-mirror pull 17 42
    contact-mirror push 1 2 3
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from contact_mirror import __version__
from contact_mirror.api.directory_api import DirectoryAPI
from contact_mirror.cli.formatters import (
    show_contact,
    show_contact_table,
    show_sync_result,
)
from contact_mirror.config.generator import save_config_file
from contact_mirror.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
    Settings,
    resolve_config_dir,
)
from contact_mirror.storage.db import ContactStore, PersistenceError
from contact_mirror.sync.contact import Contact
from contact_mirror.sync.engine import SyncEngine
from contact_mirror.sync.hooks import ChangeEventGate
from contact_mirror.sync.results import SaveResult
from contact_mirror.utils.logging import cleanup_old_logs, get_logger, setup_logging

# Options shared by `add` and `edit`: (option name, Contact field, help)
CONTACT_OPTIONS = (
    ("--first-name", "first_name", "First name."),
    ("--last-name", "last_name", "Last name (defaults to 'Unknown')."),
    ("--email", "email", "Email address."),
    ("--phone", "phone", "Phone number."),
    ("--sync-id", "sync_id", "Numeric external-sync identifier."),
)


@dataclass
class SyncStack:
    """Store, engine, and gate wired together for one CLI invocation."""

    store: ContactStore
    engine: SyncEngine
    gate: ChangeEventGate


def build_stack(settings: Settings) -> SyncStack:
    """
    Create the store, engine, and gate from settings.

    The gate is registered on the store and defers sync work until each
    write has committed.

    Args:
        settings: Resolved application settings

    Returns:
        SyncStack ready to use
    """
    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    store = ContactStore(str(settings.database_path))
    store.initialize()

    api = DirectoryAPI(settings.base_url, timeout=settings.request_timeout)
    engine = SyncEngine(api=api, store=store)
    gate = ChangeEventGate(
        engine, defer=store.defer, threshold=settings.sync_id_threshold
    )
    store.register_hooks(gate)
    return SyncStack(store=store, engine=engine, gate=gate)


def contact_options(func):  # type: ignore[no-untyped-def]
    """Decorate a command with the contact field options."""
    for option, field_name, help_text in reversed(CONTACT_OPTIONS):
        func = click.option(option, field_name, default=None, help=help_text)(func)
    return func


def _fail(message: str) -> None:
    logger = get_logger(__name__)
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    logger.error(message)
    sys.exit(1)


def _report_save(result: SaveResult, action: str) -> None:
    if result.success:
        click.echo(click.style(f"Contact {result.contact.id} {action}.", fg="green"))
    else:
        _fail(f"Contact not {action}: {result.error_message}")


@click.group()
@click.version_option(version=__version__, prog_name="contact-mirror")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="CONTACT_MIRROR_CONFIG_DIR",
    help="Configuration directory path (default: ~/.contact-mirror).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="CONTACT_MIRROR_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.option(
    "--base-url",
    default=None,
    help="Root URL of the remote directory (overrides the config file).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: Optional[str],
    config_file: Optional[str],
    base_url: Optional[str],
) -> None:
    """
    Contact Mirror.

    Mirrors local contacts against a remote user directory: new contacts
    are filled in from the directory, changed contacts are pushed to it.
    """
    ctx.ensure_object(dict)

    loader = ConfigLoader(config_dir=resolve_config_dir(config_dir))
    resolved_config_file = (
        Path(config_file) if config_file else loader.config_dir / DEFAULT_CONFIG_FILE
    )
    ctx.obj["config_dir"] = loader.config_dir
    ctx.obj["config_file"] = resolved_config_file

    config = {}
    try:
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Keep working with defaults rather than failing every command
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    settings = Settings.from_dict(config, loader.config_dir)
    if base_url:
        settings.base_url = base_url
    settings.verbose = verbose or settings.verbose
    ctx.obj["settings"] = settings

    setup_logging(verbose=settings.verbose, log_dir=settings.log_dir)
    if settings.log_retention_count > 0:
        cleanup_old_logs(settings.log_dir, keep_count=settings.log_retention_count)


# =============================================================================
# Setup Commands
# =============================================================================


@cli.command("init")
@click.option(
    "--write-config",
    is_flag=True,
    help="Also write a commented configuration file template.",
)
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite an existing configuration file.",
)
@click.pass_context
def init_command(ctx: click.Context, write_config: bool, force: bool) -> None:
    """
    Create the contact database.

    Examples:

        contact-mirror init

        contact-mirror init --write-config
    """
    settings: Settings = ctx.obj["settings"]

    try:
        stack = build_stack(settings)
    except (OSError, PersistenceError) as e:
        _fail(f"Could not create database: {e}")
        return

    click.echo(f"Database: {settings.database_path} ({stack.store.count()} contacts)")

    if write_config:
        config_file: Path = ctx.obj["config_file"]
        try:
            written = save_config_file(config_file, overwrite=force)
        except OSError as e:
            _fail(f"Could not write configuration file: {e}")
            return
        if written:
            click.echo(click.style(f"Configuration file: {config_file}", fg="green"))
        else:
            click.echo(
                f"Configuration file already exists: {config_file} "
                "(use --force to overwrite)"
            )


# =============================================================================
# Contact Commands
# =============================================================================


@cli.command("add")
@contact_options
@click.pass_context
def add_command(ctx: click.Context, **fields: Optional[str]) -> None:
    """
    Add a contact.

    Contacts without a sync id get a random one. Contacts whose sync id is
    at or below the threshold are filled in from the remote directory.

    Example:

        contact-mirror add --first-name Emily --sync-id 17
    """
    stack = build_stack(ctx.obj["settings"])
    contact = Contact(**{name: value for name, value in fields.items() if value})

    try:
        (result,) = stack.store.insert([contact])
    except PersistenceError as e:
        _fail(str(e))
        return

    _report_save(result, "added")
    stored = stack.store.get(contact.id) if contact.id is not None else None
    if stored is not None:
        show_contact(stored)


@cli.command("edit")
@click.argument("contact_id", type=int)
@contact_options
@click.pass_context
def edit_command(
    ctx: click.Context, contact_id: int, **fields: Optional[str]
) -> None:
    """
    Change a contact.

    Contacts whose sync id is above the threshold are pushed to the remote
    directory after saving.

    Example:

        contact-mirror edit 3 --email emily@example.com
    """
    stack = build_stack(ctx.obj["settings"])
    contact = stack.store.get(contact_id)
    if contact is None:
        _fail(f"Contact {contact_id} not found")
        return

    for name, value in fields.items():
        if value is not None:
            setattr(contact, name, value)

    try:
        (result,) = stack.store.update([contact])
    except PersistenceError as e:
        _fail(str(e))
        return

    _report_save(result, "updated")
    stored = stack.store.get(contact_id)
    if stored is not None:
        show_contact(stored)


@cli.command("list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """List stored contacts."""
    stack = build_stack(ctx.obj["settings"])
    show_contact_table(stack.store.list_contacts())


@cli.command("show")
@click.argument("contact_id", type=int)
@click.pass_context
def show_command(ctx: click.Context, contact_id: int) -> None:
    """Show every field of one contact."""
    stack = build_stack(ctx.obj["settings"])
    contact = stack.store.get(contact_id)
    if contact is None:
        _fail(f"Contact {contact_id} not found")
        return
    show_contact(contact)


# =============================================================================
# Sync Commands
# =============================================================================


@cli.command("pull")
@click.argument("sync_ids", nargs=-1, required=True)
@click.pass_context
def pull_command(ctx: click.Context, sync_ids: tuple[str, ...]) -> None:
    """
    Copy remote users onto local contacts.

    Contacts are matched by sync id; users without a local contact are
    created.

    Example:

        contact-mirror pull 17 42
    """
    stack = build_stack(ctx.obj["settings"])
    result = stack.gate.run_inbound(set(sync_ids))
    show_sync_result(result)
    if result.persistence_error:
        sys.exit(1)


@cli.command("push")
@click.argument("contact_ids", nargs=-1, required=True, type=int)
@click.pass_context
def push_command(ctx: click.Context, contact_ids: tuple[int, ...]) -> None:
    """
    Push local contacts to the remote directory.

    Example:

        contact-mirror push 1 2 3
    """
    stack = build_stack(ctx.obj["settings"])
    result = stack.gate.run_outbound(set(contact_ids))
    show_sync_result(result)
    if result.persistence_error:
        sys.exit(1)
