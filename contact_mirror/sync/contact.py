"""
Contact data model for directory synchronization.

Provides the local Contact record mirrored against a remote user, with
helpers for:
- Validating the numeric external-sync identifier
- Attaching per-record validation errors
- Extracting the fields that are set, for partial upserts
"""

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Optional

# Default written for blank names and outbound payload values
UNKNOWN = "Unknown"

# Columns that are written to storage (everything except the validation errors)
CONTACT_FIELDS = (
    "id",
    "sync_id",
    "first_name",
    "last_name",
    "email",
    "phone",
    "birth_date",
    "mailing_street",
    "mailing_city",
    "mailing_postal_code",
    "mailing_state",
    "mailing_country",
    "last_synced_at",
)

_NUMERIC_RE = re.compile(r"^[0-9]+$")


@dataclass
class Contact:
    """
    Local contact record mirrored against a remote directory user.

    Attributes:
        id: Primary key, assigned by the store on insert
        sync_id: Numeric external-sync identifier stored as a string
        first_name: First name
        last_name: Last name, never persisted blank
        email: Email address
        phone: Phone number
        birth_date: Date of birth
        mailing_street: Mailing address street line
        mailing_city: Mailing address city
        mailing_postal_code: Mailing address postal code
        mailing_state: Mailing address state
        mailing_country: Mailing address country
        last_synced_at: Set after a successful outbound push
        errors: Validation errors attached by record hooks (not persisted)

    Usage:
        contact = Contact(first_name="Emily", last_name="Johnson")

        # Check the external-sync identifier
        if contact.is_sync_id_numeric():
            value = contact.sync_id_value()

        # Reject the record during a store write
        contact.add_error("sync_id must be numeric")
    """

    id: Optional[int] = None
    sync_id: Optional[str] = None

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    birth_date: Optional[date] = None

    # Mailing address
    mailing_street: Optional[str] = None
    mailing_city: Optional[str] = None
    mailing_postal_code: Optional[str] = None
    mailing_state: Optional[str] = None
    mailing_country: Optional[str] = None

    last_synced_at: Optional[datetime] = None

    errors: list[str] = field(default_factory=list, compare=False, repr=False)

    def add_error(self, message: str) -> None:
        """Attach a validation error; the store will not write this record."""
        self.errors.append(message)

    def has_errors(self) -> bool:
        """Check if any validation errors are attached."""
        return bool(self.errors)

    def is_sync_id_numeric(self) -> bool:
        """
        Check if the external-sync identifier is a non-negative integer.

        Returns:
            True if sync_id consists only of ASCII digits
        """
        if self.sync_id is None:
            return False
        return bool(_NUMERIC_RE.match(self.sync_id.strip()))

    def sync_id_value(self) -> Optional[int]:
        """
        Get the external-sync identifier as an integer.

        Returns:
            Integer value, or None if sync_id is absent or not numeric
        """
        if not self.is_sync_id_numeric():
            return None
        return int(self.sync_id.strip())  # type: ignore[union-attr]

    def set_fields(self, exclude: tuple[str, ...] = ("id",)) -> dict[str, Any]:
        """
        Get the storable fields that have a value.

        Unset (None) fields are left out so an upsert does not overwrite
        existing values with nulls.

        Args:
            exclude: Field names to leave out (default: the primary key)

        Returns:
            Mapping of field name to value for every non-None field
        """
        return {
            name: getattr(self, name)
            for name in CONTACT_FIELDS
            if name not in exclude and getattr(self, name) is not None
        }

    def copy(self) -> "Contact":
        """Return a working copy that shares no mutable state."""
        return replace(self, errors=list(self.errors))

    def display_name(self) -> str:
        """Return "First Last" from whichever name parts are set."""
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts)

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return (
            f"Contact(id={self.id!r}, sync_id={self.sync_id!r}, "
            f"name={self.display_name()!r}, email={self.email!r})"
        )


def is_blank(value: Optional[str]) -> bool:
    """Check if a string is None, empty, or whitespace only."""
    return value is None or not value.strip()
