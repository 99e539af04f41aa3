"""
JSON field mapping between remote directory users and local contacts.

Provides pure functions (no I/O) for:
- Decoding a remote user's JSON into a typed RemoteUser, then a Contact
- Encoding a Contact into the outbound JSON payload

Remote user JSON structure::

    {
        "id": 17,
        "firstName": "Emily",
        "lastName": "Johnson",
        "email": "emily.johnson@x.dummyjson.com",
        "phone": "+81 965-431-3024",
        "birthDate": "1996-5-30",
        "address": {
            "address": "626 Main Street",
            "city": "Phoenix",
            "postalCode": "29112",
            "state": "Mississippi",
            "country": "United States"
        }
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from contact_mirror.sync.contact import UNKNOWN, Contact, is_blank

# Keys of the outbound payload
PAYLOAD_FIELDS = ("salesforceId", "firstName", "lastName", "email", "phone")


class MappingError(Exception):
    """Raised when a record cannot be mapped to or from JSON."""

    pass


class DecodeError(MappingError, ValueError):
    """Raised when remote JSON is malformed or has wrongly typed fields."""

    pass


class FormatError(MappingError, ValueError):
    """Raised when a date string in remote JSON cannot be parsed."""

    pass


class InvalidArgumentError(MappingError, ValueError):
    """Raised when a caller passes a contact that cannot be encoded."""

    pass


def _optional_str(
    data: dict[str, Any], key: str, context: str = "user"
) -> str | None:
    """
    Read an optional string field, casting or defaulting in one place.

    Numbers are accepted and converted to their string form; absent and
    null values become None.

    Raises:
        DecodeError: If the value is a list, object, or boolean
    """
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise DecodeError(
            f"Field '{context}.{key}' must be a string, got {type(value).__name__}"
        )
    return str(value)


def parse_date(value: str) -> date:
    """
    Parse a calendar date from the remote service.

    Accepts ``YYYY-M-D`` with or without zero padding, optionally followed
    by a time part separated by ``T`` or a space.

    Args:
        value: Date string from the remote JSON

    Returns:
        Parsed date

    Raises:
        FormatError: If the string is not a valid date
    """
    text = value.strip()
    for separator in ("T", " "):
        if separator in text:
            text = text.split(separator, 1)[0]
            break
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError as e:
        raise FormatError(f"Invalid date '{value}': {e}") from e


@dataclass
class RemoteAddress:
    """Nested address object of a remote user."""

    street: str | None = None
    city: str | None = None
    postal_code: str | None = None
    state: str | None = None
    country: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteAddress:
        """Create a RemoteAddress from the nested ``address`` object."""
        return cls(
            street=_optional_str(data, "address", "address"),
            city=_optional_str(data, "city", "address"),
            postal_code=_optional_str(data, "postalCode", "address"),
            state=_optional_str(data, "state", "address"),
            country=_optional_str(data, "country", "address"),
        )


@dataclass
class RemoteUser:
    """
    Typed view of a remote directory user.

    Attributes:
        first_name: First name
        last_name: Last name
        email: Email address
        phone: Phone number
        birth_date: Raw birth date string, parsed by to_contact()
        address: Nested address, or None if the user has none
    """

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    birth_date: str | None = None
    address: RemoteAddress | None = None

    @classmethod
    def from_dict(cls, data: Any) -> RemoteUser:
        """
        Create a RemoteUser from decoded JSON.

        Args:
            data: Result of json.loads on the response body

        Returns:
            RemoteUser with every known field validated

        Raises:
            DecodeError: If data is not an object or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise DecodeError(
                f"Remote user must be a JSON object, got {type(data).__name__}"
            )

        address = None
        raw_address = data.get("address")
        if raw_address is not None:
            if not isinstance(raw_address, dict):
                raise DecodeError(
                    f"Field 'user.address' must be an object, "
                    f"got {type(raw_address).__name__}"
                )
            address = RemoteAddress.from_dict(raw_address)

        return cls(
            first_name=_optional_str(data, "firstName"),
            last_name=_optional_str(data, "lastName"),
            email=_optional_str(data, "email"),
            phone=_optional_str(data, "phone"),
            birth_date=_optional_str(data, "birthDate"),
            address=address,
        )

    def to_contact(self) -> Contact:
        """
        Convert to a local Contact.

        The external-sync identifier is not set; callers correlate by the
        identifier they fetched.

        Raises:
            FormatError: If birth_date is present but malformed
        """
        contact = Contact(
            first_name=self.first_name,
            last_name=UNKNOWN if is_blank(self.last_name) else self.last_name,
            email=self.email,
            phone=self.phone,
        )

        if self.birth_date is not None:
            contact.birth_date = parse_date(self.birth_date)

        # Mailing fields stay unset (not blanked) when there is no address
        if self.address is not None:
            contact.mailing_street = self.address.street
            contact.mailing_city = self.address.city
            contact.mailing_postal_code = self.address.postal_code
            contact.mailing_state = self.address.state
            contact.mailing_country = self.address.country

        return contact


def decode_remote_user(json_text: str) -> Contact:
    """
    Decode a remote user JSON document into a Contact.

    Args:
        json_text: Response body from the remote per-user endpoint

    Returns:
        Contact populated from the remote user, without sync_id

    Raises:
        DecodeError: If the JSON is malformed or fields have the wrong type
        FormatError: If birthDate is malformed
    """
    try:
        data = json.loads(json_text)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Malformed remote user JSON: {e}") from e

    return RemoteUser.from_dict(data).to_contact()


def build_outbound_payload(contact: Contact) -> dict[str, str]:
    """
    Build the outbound payload mapping for a contact.

    Blank name, email, and phone values are replaced with "Unknown" on a
    working copy; the contact passed in is not modified.

    Args:
        contact: Stored contact with a primary key

    Returns:
        Flat payload mapping with every value set

    Raises:
        InvalidArgumentError: If the contact has no identifier
    """
    if contact.id is None or is_blank(str(contact.id)):
        raise InvalidArgumentError("Contact identifier is required for outbound sync")

    working = contact.copy()
    for name in ("first_name", "last_name", "email", "phone"):
        if is_blank(getattr(working, name)):
            setattr(working, name, UNKNOWN)

    return {
        "salesforceId": str(working.id),
        "firstName": working.first_name,
        "lastName": working.last_name,
        "email": working.email,
        "phone": working.phone,
    }


def encode_outbound_payload(contact: Contact) -> str:
    """
    Encode a contact as the outbound JSON payload.

    Args:
        contact: Stored contact with a primary key

    Returns:
        JSON object string with keys salesforceId, firstName, lastName,
        email and phone

    Raises:
        InvalidArgumentError: If the contact has no identifier
    """
    return json.dumps(build_outbound_payload(contact))
