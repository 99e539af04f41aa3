"""
Per-item results for remote calls and storage writes.

Each remote call made during a batch produces one CalloutResult instead of
raising; the engine partitions the ordered results into successes, which
feed the single bulk write, and failures, which are logged.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from contact_mirror.sync.contact import Contact


class ResultKind(str, Enum):
    """Outcome of a single remote call."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"  # Fetch returned a non-200 status
    TRANSPORT_ERROR = "transport_error"  # Network, timeout, malformed response
    FAILURE = "failure"  # Push returned a non-2xx status


@dataclass
class CalloutResult:
    """
    Result of one remote call.

    Attributes:
        key: Item identifier (external id for fetches, primary key for pushes)
        kind: Outcome of the call
        contact: Decoded contact for successful fetches, pushed contact otherwise
        status_code: HTTP status code, if a response was received
        error: Human-readable error message for failures
    """

    key: str
    kind: ResultKind
    contact: Optional[Contact] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """True if the call succeeded."""
        return self.kind == ResultKind.SUCCESS

    def describe(self) -> str:
        """Return a one-line description for logging."""
        parts = []
        if self.status_code is not None:
            parts.append(f"HTTP {self.status_code}")
        if self.error:
            parts.append(self.error)
        if not parts:
            return f"{self.key}: {self.kind.value}"
        return f"{self.key}: {self.kind.value} ({', '.join(parts)})"


@dataclass
class SaveResult:
    """
    Result of writing one record during a bulk storage operation.

    Attributes:
        contact: The record that was written or rejected
        success: True if the record was written
        created: True if the write inserted a new row
        errors: Error messages for rejected records
    """

    contact: Contact
    success: bool
    created: bool = False
    errors: list[str] | None = None

    @property
    def error_message(self) -> str:
        """Return the joined error messages, or an empty string."""
        return "; ".join(self.errors or [])


def partition_results(
    results: Iterable[CalloutResult],
) -> tuple[list[CalloutResult], list[CalloutResult]]:
    """
    Split results into successes and failures, keeping their order.

    Args:
        results: Results in the order the calls were made

    Returns:
        Tuple of (successful results, failed results)
    """
    successes: list[CalloutResult] = []
    failures: list[CalloutResult] = []
    for result in results:
        (successes if result.ok else failures).append(result)
    return successes, failures
