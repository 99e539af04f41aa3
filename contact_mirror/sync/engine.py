"""
Sync engine for mirroring contacts against the remote directory.

Orchestrates batch synchronization in both directions:
- Inbound: fetch remote users by external id and upsert them locally
- Outbound: push local contacts to the remote service and stamp them

Remote calls are made one item at a time; all storage writes for a batch
are deferred to a single bulk operation after the call loop.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from contact_mirror.api.directory_api import DirectoryAPI
from contact_mirror.storage.db import (
    DEFAULT_EXTERNAL_KEY,
    ContactStore,
    PersistenceError,
)
from contact_mirror.sync.contact import Contact
from contact_mirror.sync.results import CalloutResult, SaveResult, partition_results

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncStats:
    """
    Statistics from a sync batch.

    Tracks counts of remote calls and storage writes.
    """

    requested: int = 0
    callouts_succeeded: int = 0
    callouts_failed: int = 0
    records_created: int = 0
    records_updated: int = 0
    records_failed: int = 0
    persistence_errors: int = 0


@dataclass
class SyncResult:
    """
    Result of a sync batch.

    Contains the per-item remote call results, the per-record storage
    results of the bulk write, and statistics.
    """

    direction: str
    callouts: list[CalloutResult] = field(default_factory=list)
    saves: list[SaveResult] = field(default_factory=list)
    persistence_error: Optional[str] = None
    stats: SyncStats = field(default_factory=SyncStats)

    @property
    def failures(self) -> list[CalloutResult]:
        """Remote calls that did not succeed."""
        return [c for c in self.callouts if not c.ok]

    def has_changes(self) -> bool:
        """Check if any record was written."""
        return any(s.success for s in self.saves)

    def summary(self) -> str:
        """
        Generate a human-readable summary of the sync batch.

        Returns:
            Formatted string summary
        """
        stats = self.stats
        lines = [
            f"{self.direction.capitalize()} sync summary:",
            f"  Requested: {stats.requested}",
            f"  Remote calls succeeded: {stats.callouts_succeeded}",
            f"  Remote calls failed: {stats.callouts_failed}",
            f"  Records created: {stats.records_created}",
            f"  Records updated: {stats.records_updated}",
        ]
        if stats.records_failed:
            lines.append(f"  Records rejected: {stats.records_failed}")
        if self.persistence_error:
            lines.append(f"  Storage error: {self.persistence_error}")

        failures = self.failures
        if failures:
            lines.append("")
            lines.append("Skipped:")
            for failure in failures:
                lines.append(f"  {failure.describe()}")

        return "\n".join(lines)


class SyncEngine:
    """
    Batch orchestrator for directory synchronization.

    Features:
    - Inbound sync keyed by the external-sync identifier
    - Outbound sync keyed by local primary key
    - Per-item failure isolation: failed items are logged and skipped
    - One bulk storage write per batch, regardless of batch size

    Usage:
        engine = SyncEngine(
            api=DirectoryAPI("https://dummyjson.com"),
            store=ContactStore('/path/to/contacts.db'),
        )

        # Copy remote users 17 and 42 onto local contacts
        result = engine.sync_inbound({"17", "42"})

        # Push local contacts 1 and 2 to the remote service
        result = engine.sync_outbound({1, 2})
        print(result.summary())
    """

    def __init__(
        self,
        api: DirectoryAPI,
        store: ContactStore,
        external_key_field: str = DEFAULT_EXTERNAL_KEY,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the sync engine.

        Args:
            api: DirectoryAPI client for the remote service
            store: ContactStore for local records
            external_key_field: Contact field holding the remote identifier
            clock: Returns the time stamped on pushed records (default: UTC now)
        """
        self.api = api
        self.store = store
        self.external_key_field = external_key_field
        self.clock = clock

    def sync_inbound(self, external_ids: Optional[Iterable[str]]) -> SyncResult:
        """
        Fetch remote users and upsert them as local contacts.

        Each fetched contact is stamped with the id it was fetched by, then
        all of them are written with one bulk upsert keyed by the external
        key field. Users that cannot be fetched are logged and skipped.

        Args:
            external_ids: Remote user identifiers (None or empty is a no-op)

        Returns:
            SyncResult for the batch
        """
        result = SyncResult(direction="inbound")
        if not external_ids:
            return result

        ids = sorted({str(i) for i in external_ids})
        result.stats.requested = len(ids)
        logger.info(f"Inbound sync of {len(ids)} remote users")

        for external_id in ids:
            callout = self.api.fetch_user(external_id)
            if callout.ok and callout.contact is not None:
                setattr(callout.contact, self.external_key_field, external_id)
            result.callouts.append(callout)

        successes, failures = partition_results(result.callouts)
        self._log_failures("inbound", failures)
        result.stats.callouts_succeeded = len(successes)
        result.stats.callouts_failed = len(failures)

        records = [c.contact for c in successes if c.contact is not None]
        if records:
            self._persist(
                result,
                lambda: self.store.bulk_upsert(records, self.external_key_field),
            )

        logger.info(
            f"Inbound sync complete: {result.stats.callouts_succeeded} fetched, "
            f"{result.stats.callouts_failed} skipped"
        )
        return result

    def sync_outbound(self, local_ids: Optional[Iterable[int]]) -> SyncResult:
        """
        Push local contacts to the remote service.

        All records are read with one bulk query. Each successfully pushed
        record gets last_synced_at set, and all of them are written with one
        bulk update. Records whose push fails are left unchanged.

        Args:
            local_ids: Primary keys of local contacts (None or empty is a no-op)

        Returns:
            SyncResult for the batch
        """
        result = SyncResult(direction="outbound")
        if not local_ids:
            return result

        id_set = set(local_ids)
        result.stats.requested = len(id_set)
        try:
            records = self.store.bulk_query(id_set)
        except PersistenceError as e:
            logger.error(f"Outbound bulk read failed: {e}")
            result.persistence_error = str(e)
            result.stats.persistence_errors += 1
            return result

        logger.info(f"Outbound sync of {len(records)} contacts")

        missing = id_set - {r.id for r in records}
        if missing:
            logger.warning(f"Contacts not found for outbound sync: {sorted(missing)}")

        for record in records:
            result.callouts.append(self.api.push_user(record))

        successes, failures = partition_results(result.callouts)
        self._log_failures("outbound", failures)
        result.stats.callouts_succeeded = len(successes)
        result.stats.callouts_failed = len(failures)

        synced: list[Contact] = []
        for callout in successes:
            if callout.contact is not None:
                callout.contact.last_synced_at = self.clock()
                synced.append(callout.contact)

        if synced:
            self._persist(result, lambda: self.store.bulk_update(synced))

        logger.info(
            f"Outbound sync complete: {result.stats.callouts_succeeded} pushed, "
            f"{result.stats.callouts_failed} skipped"
        )
        return result

    def _persist(
        self, result: SyncResult, write: Callable[[], list[SaveResult]]
    ) -> None:
        """Run the bulk write for a batch, logging rather than raising errors."""
        try:
            result.saves = write()
        except PersistenceError as e:
            logger.error(f"{result.direction.capitalize()} bulk write failed: {e}")
            result.persistence_error = str(e)
            result.stats.persistence_errors += 1
            return

        for save in result.saves:
            if not save.success:
                result.stats.records_failed += 1
                logger.error(
                    f"Could not save contact {save.contact!r}: {save.error_message}"
                )
            elif save.created:
                result.stats.records_created += 1
            else:
                result.stats.records_updated += 1

    def _log_failures(self, direction: str, failures: list[CalloutResult]) -> None:
        for failure in failures:
            logger.warning(f"Skipping {direction} item {failure.describe()}")

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return f"SyncEngine(api={self.api!r}, store={self.store!r})"
