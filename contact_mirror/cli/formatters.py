"""CLI output formatting functions.

This module contains functions for displaying contacts and sync results
on the command line.
"""

from typing import TYPE_CHECKING, Optional

import click

if TYPE_CHECKING:
    from contact_mirror.sync.contact import Contact
    from contact_mirror.sync.engine import SyncResult

# Columns shown by `list`: (header, width)
LIST_COLUMNS = (
    ("ID", 6),
    ("SYNC ID", 8),
    ("NAME", 28),
    ("EMAIL", 34),
    ("SYNCED", 19),
)


def _cell(value: Optional[object], width: int) -> str:
    text = "" if value is None else str(value)
    if len(text) > width:
        text = text[: width - 1] + "…"
    return text.ljust(width)


def show_contact_table(contacts: list["Contact"]) -> None:
    """
    Display contacts as a fixed-width table.

    Args:
        contacts: Contacts to display
    """
    if not contacts:
        click.echo("No contacts stored.")
        return

    click.echo(" ".join(_cell(header, width) for header, width in LIST_COLUMNS))
    click.echo(" ".join("-" * width for _, width in LIST_COLUMNS))
    for contact in contacts:
        synced = (
            contact.last_synced_at.strftime("%Y-%m-%d %H:%M:%S")
            if contact.last_synced_at
            else None
        )
        values = (
            contact.id,
            contact.sync_id,
            contact.display_name(),
            contact.email,
            synced,
        )
        click.echo(
            " ".join(
                _cell(value, width)
                for value, (_, width) in zip(values, LIST_COLUMNS)
            )
        )
    click.echo(f"\n{len(contacts)} contact(s)")


def show_contact(contact: "Contact") -> None:
    """
    Display every field of one contact.

    Args:
        contact: Contact to display
    """
    mailing = ", ".join(
        part
        for part in (
            contact.mailing_street,
            contact.mailing_city,
            contact.mailing_state,
            contact.mailing_postal_code,
            contact.mailing_country,
        )
        if part
    )
    rows = [
        ("ID", contact.id),
        ("Sync ID", contact.sync_id),
        ("First name", contact.first_name),
        ("Last name", contact.last_name),
        ("Email", contact.email),
        ("Phone", contact.phone),
        ("Birth date", contact.birth_date),
        ("Mailing address", mailing or None),
        ("Last synced", contact.last_synced_at),
    ]
    for label, value in rows:
        click.echo(f"{label + ':':<17} {value if value is not None else '-'}")


def show_sync_result(result: "SyncResult") -> None:
    """
    Display the summary of a sync batch, colored by outcome.

    Args:
        result: Result returned by the sync engine
    """
    color = "green"
    if result.failures or result.stats.records_failed:
        color = "yellow"
    if result.persistence_error:
        color = "red"
    click.echo(click.style(result.summary(), fg=color))
    if not result.has_changes():
        click.echo("No contacts were written.")
