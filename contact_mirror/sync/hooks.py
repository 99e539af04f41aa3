"""
Record hooks that decide when a contact change triggers a sync.

The gate runs before contacts are written:
- On insert, contacts get a sync_id if they have none, and those at or
  below the threshold are fetched from the remote service (inbound)
- On update, contacts above the threshold are pushed to the remote
  service (outbound)

Outbound sync writes the contacts it pushed, which runs the update hook
again. A context-local flag makes that nested call return immediately.
"""

import logging
import random
from collections.abc import Callable, Generator, Iterable, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Optional

from contact_mirror.sync.contact import Contact, is_blank
from contact_mirror.sync.engine import SyncEngine, SyncResult

# sync_id values at or below this are pulled from the remote service on
# insert; values above it are pushed to the remote service on update
DEFAULT_SYNC_ID_THRESHOLD = 100

INVALID_SYNC_ID_MESSAGE = "sync_id must be numeric"

logger = logging.getLogger(__name__)

# True while outbound sync runs in the current context
_outbound_active: ContextVar[bool] = ContextVar(
    "contact_mirror_outbound_active", default=False
)

# True while inbound sync runs in the current context
_inbound_active: ContextVar[bool] = ContextVar(
    "contact_mirror_inbound_active", default=False
)


@contextmanager
def _active(flag: ContextVar[bool]) -> Generator[None, None, None]:
    """Set a flag for the duration of the block, resetting it on any exit."""
    token = flag.set(True)
    try:
        yield
    finally:
        flag.reset(token)


def outbound_hook_active() -> bool:
    """Check if outbound sync is running in the current context."""
    return _outbound_active.get()


class ChangeEventGate:
    """
    Before-insert and before-update hooks for contact records.

    Attributes:
        engine: SyncEngine that performs the batches
        threshold: sync_id boundary between inbound and outbound sync
        rng: Random source for assigning missing sync_ids

    Usage:
        store = ContactStore(':memory:')
        engine = SyncEngine(api=DirectoryAPI(), store=store)
        gate = ChangeEventGate(engine, defer=store.defer)
        store.register_hooks(gate)

        # Inserting now assigns sync_ids and pulls remote users after commit
        store.insert([Contact(first_name="Emily")])
    """

    def __init__(
        self,
        engine: SyncEngine,
        defer: Optional[Callable[..., None]] = None,
        threshold: int = DEFAULT_SYNC_ID_THRESHOLD,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the gate.

        Args:
            engine: SyncEngine for inbound and outbound batches
            defer: Schedules a call as defer(func, *args); usually
                ContactStore.defer so sync runs after the write commits.
                If None, sync runs immediately.
            threshold: sync_id boundary (default 100)
            rng: Random source for new sync_ids (default: a new random.Random)
        """
        self.engine = engine
        self.threshold = threshold
        self.rng = rng if rng is not None else random.Random()
        self._defer = defer

    def _dispatch(self, func: Callable[..., Any], *args: Any) -> None:
        if self._defer is None:
            func(*args)
        else:
            self._defer(func, *args)

    def _validate(self, record: Contact) -> Optional[int]:
        """
        Return the numeric sync_id, or attach an error and return None.

        Surrounding whitespace is stripped from the stored value so the
        external key matches exactly when upserting.
        """
        if record.sync_id is not None:
            record.sync_id = record.sync_id.strip()
        value = record.sync_id_value()
        if value is None:
            logger.warning(f"Rejecting {record!r}: {INVALID_SYNC_ID_MESSAGE}")
            record.add_error(INVALID_SYNC_ID_MESSAGE)
        return value

    def on_before_insert(self, records: Sequence[Contact]) -> None:
        """
        Assign missing sync_ids and start inbound sync for new contacts.

        Contacts without a sync_id get a random one in [0, threshold].
        Contacts whose sync_id is not numeric get a validation error and
        are not synced. The sync_ids at or below the threshold are passed
        to one inbound batch.

        Args:
            records: Contacts about to be inserted
        """
        external_ids: set[str] = set()
        for record in records:
            if is_blank(record.sync_id):
                record.sync_id = str(self.rng.randint(0, self.threshold))
                logger.debug(f"Assigned sync_id {record.sync_id} to {record!r}")

            value = self._validate(record)
            if value is not None and value <= self.threshold:
                external_ids.add(record.sync_id)  # type: ignore[arg-type]

        # Contacts created by inbound sync were just copied from the remote
        if _inbound_active.get():
            logger.debug("Inside inbound sync, not fetching new contacts again")
            return

        self._dispatch(self.run_inbound, external_ids)

    def on_before_update(self, records: Sequence[Contact]) -> None:
        """
        Start outbound sync for updated contacts above the threshold.

        Returns immediately while outbound sync is already running in this
        context, since that sync's own bulk update lands here.

        Args:
            records: Contacts about to be updated
        """
        if _outbound_active.get():
            logger.debug("Outbound sync already active, skipping update hook")
            return

        with _active(_outbound_active):
            local_ids: set[int] = set()
            for record in records:
                value = self._validate(record)
                if value is not None and value > self.threshold:
                    if record.id is not None:
                        local_ids.add(record.id)

            self._dispatch(self.run_outbound, local_ids)

    def run_inbound(self, external_ids: Iterable[str]) -> SyncResult:
        """
        Run one inbound batch with the inbound flag set.

        Contacts the batch creates are not fetched a second time by
        on_before_insert.
        """
        with _active(_inbound_active):
            return self.engine.sync_inbound(external_ids)

    def run_outbound(self, local_ids: Iterable[int]) -> SyncResult:
        """
        Run one outbound batch with the outbound flag set.

        The batch's own bulk update does not start another outbound sync.
        """
        with _active(_outbound_active):
            return self.engine.sync_outbound(local_ids)

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return f"ChangeEventGate(threshold={self.threshold})"
