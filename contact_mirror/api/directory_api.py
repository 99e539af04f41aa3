"""
Remote directory API client for contact synchronization.

Wraps the two outbound HTTP operations against the remote user directory:
- Fetching a user by its external identifier (GET <base>/users/{id})
- Creating or updating a user from a local contact (POST <base>/users/add)

Every call returns a CalloutResult rather than raising, so a batch can
skip a failed item and continue. There is no retry policy.
"""

import logging
from typing import Optional

import requests
from requests.exceptions import RequestException

from contact_mirror import __version__
from contact_mirror.sync.contact import Contact
from contact_mirror.sync.mapper import (
    DecodeError,
    FormatError,
    decode_remote_user,
    encode_outbound_payload,
)
from contact_mirror.sync.results import CalloutResult, ResultKind

# Default remote service
DEFAULT_BASE_URL = "https://dummyjson.com"

# HTTP timeout configuration
DEFAULT_TIMEOUT = 30.0  # seconds

USER_AGENT = f"contact-mirror/{__version__}"

logger = logging.getLogger(__name__)


class DirectoryAPI:
    """
    Client for the remote user directory.

    Attributes:
        base_url: Root URL of the remote service (no trailing slash)
        timeout: Request timeout in seconds
        session: requests.Session used for all calls

    Usage:
        api = DirectoryAPI("https://dummyjson.com")

        # Fetch a user and map it onto a Contact
        result = api.fetch_user("17")
        if result.ok:
            contact = result.contact

        # Push a stored contact
        result = api.push_user(contact)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the directory client.

        Args:
            base_url: Root URL of the remote service
            timeout: Request timeout in seconds (default 30)
            session: Optional session to reuse (a new one is created if None)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(
            {"Accept": "application/json", "User-Agent": USER_AGENT}
        )

    def user_url(self, external_id: str) -> str:
        """Return the per-user endpoint URL."""
        return f"{self.base_url}/users/{external_id}"

    @property
    def add_url(self) -> str:
        """Return the create/update endpoint URL."""
        return f"{self.base_url}/users/add"

    def fetch_user(self, external_id: str) -> CalloutResult:
        """
        Fetch a remote user and map it onto a Contact.

        Args:
            external_id: Remote user identifier (the contact's sync_id)

        Returns:
            CalloutResult with kind:
            - SUCCESS and the decoded contact (sync_id not set) on HTTP 200
            - NOT_FOUND for any other status
            - TRANSPORT_ERROR for network failures or a malformed 200 body
        """
        url = self.user_url(external_id)
        logger.debug(f"Fetching remote user {external_id} from {url}")

        try:
            response = self.session.get(
                url, headers={"Accept": "application/json"}, timeout=self.timeout
            )
        except RequestException as e:
            logger.warning(f"Transport error fetching remote user {external_id}: {e}")
            return CalloutResult(
                key=external_id, kind=ResultKind.TRANSPORT_ERROR, error=str(e)
            )

        if response.status_code != 200:
            logger.warning(
                f"Remote user {external_id} not available "
                f"(HTTP {response.status_code})"
            )
            return CalloutResult(
                key=external_id,
                kind=ResultKind.NOT_FOUND,
                status_code=response.status_code,
            )

        try:
            contact = decode_remote_user(response.text)
        except (DecodeError, FormatError) as e:
            logger.warning(f"Malformed response for remote user {external_id}: {e}")
            return CalloutResult(
                key=external_id,
                kind=ResultKind.TRANSPORT_ERROR,
                status_code=response.status_code,
                error=str(e),
            )

        logger.debug(f"Fetched remote user {external_id}: {contact!r}")
        return CalloutResult(
            key=external_id,
            kind=ResultKind.SUCCESS,
            contact=contact,
            status_code=response.status_code,
        )

    def push_user(self, contact: Contact) -> CalloutResult:
        """
        Create or update the remote user for a contact.

        Args:
            contact: Stored contact with a primary key

        Returns:
            CalloutResult with kind SUCCESS for HTTP 200-299, FAILURE for any
            other status, or TRANSPORT_ERROR for network failures

        Raises:
            InvalidArgumentError: If the contact has no identifier
        """
        payload = encode_outbound_payload(contact)
        key = str(contact.id)
        logger.debug(f"Pushing contact {key} to {self.add_url}")

        try:
            response = self.session.post(
                self.add_url,
                data=payload,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except RequestException as e:
            logger.warning(f"Transport error pushing contact {key}: {e}")
            return CalloutResult(
                key=key,
                kind=ResultKind.TRANSPORT_ERROR,
                contact=contact,
                error=str(e),
            )

        if 200 <= response.status_code <= 299:
            logger.debug(f"Pushed contact {key} (HTTP {response.status_code})")
            return CalloutResult(
                key=key,
                kind=ResultKind.SUCCESS,
                contact=contact,
                status_code=response.status_code,
            )

        logger.warning(f"Push of contact {key} failed (HTTP {response.status_code})")
        return CalloutResult(
            key=key,
            kind=ResultKind.FAILURE,
            contact=contact,
            status_code=response.status_code,
            error=response.text[:200] if response.text else None,
        )

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return f"DirectoryAPI(base_url={self.base_url!r}, timeout={self.timeout})"
