"""
SQLite storage module for local contact records.

Provides the record store the sync adapter mirrors against:
- Insert and update entry points that run record hooks before writing
- Bulk upsert keyed by an external-id field, bulk update, and bulk query
- Per-record save results for partial failures
- Work deferred by hooks, run after the write commits
"""

import logging
import sqlite3
from collections.abc import Callable, Generator, Iterable, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime
from typing import Any, Optional, Protocol

from contact_mirror.sync.contact import CONTACT_FIELDS, UNKNOWN, Contact, is_blank
from contact_mirror.sync.results import SaveResult

# SQL Schema for the contact table
SCHEMA = """
CREATE TABLE IF NOT EXISTS contacts (
    id INTEGER PRIMARY KEY,
    sync_id TEXT,
    first_name TEXT,
    last_name TEXT NOT NULL DEFAULT 'Unknown',
    email TEXT,
    phone TEXT,
    birth_date TEXT,
    mailing_street TEXT,
    mailing_city TEXT,
    mailing_postal_code TEXT,
    mailing_state TEXT,
    mailing_country TEXT,
    last_synced_at TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_contacts_sync_id ON contacts(sync_id);
"""

# Columns written on insert/update (primary key excluded)
WRITE_COLUMNS = tuple(name for name in CONTACT_FIELDS if name != "id")

# Default field used to match records during upsert
DEFAULT_EXTERNAL_KEY = "sync_id"

logger = logging.getLogger(__name__)

# Work deferred by hooks: (callable, args) pairs
DeferredQueue = list[tuple[Callable[..., Any], tuple[Any, ...]]]

# Stack of deferred-work queues, one per unit of work currently open
_pending_work: ContextVar[tuple[DeferredQueue, ...]] = ContextVar(
    "contact_mirror_pending_work", default=()
)


class PersistenceError(Exception):
    """Raised when a bulk storage operation fails as a whole."""

    pass


class RecordHooks(Protocol):
    """Callbacks run on records before they are written."""

    def on_before_insert(self, records: Sequence[Contact]) -> None: ...

    def on_before_update(self, records: Sequence[Contact]) -> None: ...


def _to_db(name: str, value: Any) -> Any:
    """Convert a Contact field value to its column value."""
    if value is None:
        return None
    if name in ("birth_date", "last_synced_at"):
        return value.isoformat()
    return value


def _from_db(name: str, value: Any) -> Any:
    """Convert a column value to its Contact field value."""
    if value is None:
        return None
    if name == "birth_date":
        return date.fromisoformat(value)
    if name == "last_synced_at":
        return datetime.fromisoformat(value)
    return value


def contact_from_row(row: sqlite3.Row) -> Contact:
    """Create a Contact from a contacts table row."""
    return Contact(**{name: _from_db(name, row[name]) for name in CONTACT_FIELDS})


class ContactStore:
    """
    SQLite store for contact records.

    Provides methods for:
    - Inserting and updating records through registered hooks
    - Bulk upsert by external id, bulk update, and bulk query
    - Deferring work until the current write has committed

    Usage:
        store = ContactStore('/path/to/contacts.db')
        store.initialize()
        store.register_hooks(gate)

        results = store.insert([Contact(first_name="Emily")])

        # Or use in-memory for testing:
        store = ContactStore(':memory:')
        store.initialize()
    """

    def __init__(self, db_path: str):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None
        self._hooks: list[RecordHooks] = []

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection to ensure
        data persists across operations. For file databases, creates
        a new connection each time.

        Returns:
            sqlite3.Connection: Database connection
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success and rolls back on error.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the contacts table if it doesn't exist."""
        with self._transaction("schema setup") as conn:
            conn.executescript(SCHEMA)

    def register_hooks(self, hooks: RecordHooks) -> None:
        """Register callbacks run before records are inserted or updated."""
        self._hooks.append(hooks)

    # =========================================================================
    # Deferred Work
    # =========================================================================

    def defer(self, func: Callable[..., Any], *args: Any) -> None:
        """
        Run work after the current write commits.

        Called outside of a write (for example directly from a script), the
        work runs immediately.

        Args:
            func: Callable to run
            *args: Positional arguments for func
        """
        stack = _pending_work.get()
        if stack:
            stack[-1].append((func, args))
        else:
            func(*args)

    def _run_unit_of_work(
        self, body: Callable[[], list[SaveResult]]
    ) -> list[SaveResult]:
        """Run hooks and writes, then the work they deferred."""
        queue: DeferredQueue = []
        token = _pending_work.set(_pending_work.get() + (queue,))
        try:
            results = body()
        finally:
            _pending_work.reset(token)

        for func, args in queue:
            func(*args)
        return results

    def _run_hooks(self, name: str, records: Sequence[Contact]) -> None:
        if not records:
            return
        for hooks in self._hooks:
            getattr(hooks, name)(records)

    # =========================================================================
    # Record Writes
    # =========================================================================

    def insert(self, records: Iterable[Contact]) -> list[SaveResult]:
        """
        Insert new records.

        Before-insert hooks run first; records they mark with errors are
        rejected. The primary key is assigned to each written record.

        Args:
            records: Records without a primary key

        Returns:
            One SaveResult per record, in input order

        Raises:
            PersistenceError: If the write fails as a whole
        """
        records = list(records)

        def body() -> list[SaveResult]:
            self._run_hooks("on_before_insert", records)
            with self._transaction() as conn:
                return [self._insert_one(conn, record) for record in records]

        return self._run_unit_of_work(body)

    def update(self, records: Iterable[Contact]) -> list[SaveResult]:
        """
        Update existing records by primary key.

        Before-update hooks run first; records they mark with errors are
        rejected. Every field is written.

        Args:
            records: Records with a primary key

        Returns:
            One SaveResult per record, in input order

        Raises:
            PersistenceError: If the write fails as a whole
        """
        records = list(records)

        def body() -> list[SaveResult]:
            self._run_hooks("on_before_update", records)
            with self._transaction() as conn:
                return [self._update_one(conn, record) for record in records]

        return self._run_unit_of_work(body)

    def bulk_update(self, records: Iterable[Contact]) -> list[SaveResult]:
        """Update a batch of records by primary key in one transaction."""
        return self.update(records)

    def bulk_upsert(
        self,
        records: Iterable[Contact],
        external_key_field: str = DEFAULT_EXTERNAL_KEY,
    ) -> list[SaveResult]:
        """
        Insert or update a batch of records keyed by an external-id field.

        A record whose key matches exactly one stored record updates it,
        writing only the fields that are set; a record with no match is
        inserted. Records whose key is missing or matches several stored
        records are rejected.

        Args:
            records: Records carrying the external key
            external_key_field: Contact field used for matching

        Returns:
            One SaveResult per record, in input order

        Raises:
            ValueError: If external_key_field is not a storable field
            PersistenceError: If the write fails as a whole
        """
        if external_key_field not in WRITE_COLUMNS:
            raise ValueError(f"Invalid external key field: {external_key_field}")

        records = list(records)

        def body() -> list[SaveResult]:
            matches = self._find_by_key(
                external_key_field,
                [getattr(r, external_key_field) for r in records],
            )

            to_insert: list[Contact] = []
            to_update: list[Contact] = []
            for record in records:
                key = getattr(record, external_key_field)
                if key is None or is_blank(str(key)):
                    record.add_error(f"Missing external id '{external_key_field}'")
                    continue
                ids = matches.get(str(key), [])
                if len(ids) > 1:
                    record.add_error(
                        f"Duplicate external id: {external_key_field}={key} "
                        f"matches {len(ids)} records"
                    )
                elif ids:
                    record.id = ids[0]
                    to_update.append(record)
                else:
                    to_insert.append(record)

            self._run_hooks("on_before_insert", to_insert)
            self._run_hooks("on_before_update", to_update)

            inserting = {id(record) for record in to_insert}
            results = []
            with self._transaction() as conn:
                for record in records:
                    if id(record) in inserting:
                        results.append(self._insert_one(conn, record))
                    else:
                        results.append(self._update_one(conn, record, partial=True))
            return results

        return self._run_unit_of_work(body)

    @contextmanager
    def _transaction(
        self, action: str = "write"
    ) -> Generator[sqlite3.Connection, None, None]:
        """Open a connection, raising PersistenceError on any SQLite failure."""
        try:
            with self.connection() as conn:
                yield conn
        except sqlite3.Error as e:
            logger.error(f"Contact {action} failed: {e}")
            raise PersistenceError(f"Contact {action} failed: {e}") from e

    def _insert_one(self, conn: sqlite3.Connection, record: Contact) -> SaveResult:
        if record.has_errors():
            return SaveResult(contact=record, success=False, errors=list(record.errors))
        if is_blank(record.last_name):
            record.last_name = UNKNOWN

        values = [_to_db(name, getattr(record, name)) for name in WRITE_COLUMNS]
        placeholders = ", ".join("?" for _ in WRITE_COLUMNS)
        try:
            cursor = conn.execute(
                f"INSERT INTO contacts ({', '.join(WRITE_COLUMNS)}) "  # nosec B608
                f"VALUES ({placeholders})",
                values,
            )
        except sqlite3.IntegrityError as e:
            return SaveResult(contact=record, success=False, errors=[str(e)])

        record.id = cursor.lastrowid
        return SaveResult(contact=record, success=True, created=True)

    def _update_one(
        self, conn: sqlite3.Connection, record: Contact, partial: bool = False
    ) -> SaveResult:
        if record.has_errors():
            return SaveResult(contact=record, success=False, errors=list(record.errors))
        if record.id is None:
            return SaveResult(
                contact=record, success=False, errors=["Missing record id"]
            )

        # Partial writes leave unset fields (including last_name) untouched
        if not partial or record.last_name is not None:
            if is_blank(record.last_name):
                record.last_name = UNKNOWN
        columns = list(record.set_fields()) if partial else list(WRITE_COLUMNS)

        assignments = [f"{name} = ?" for name in columns]
        assignments.append("updated_at = CURRENT_TIMESTAMP")
        params = [_to_db(name, getattr(record, name)) for name in columns]
        params.append(record.id)

        try:
            cursor = conn.execute(
                f"UPDATE contacts SET {', '.join(assignments)} "  # nosec B608
                "WHERE id = ?",
                params,
            )
        except sqlite3.IntegrityError as e:
            return SaveResult(contact=record, success=False, errors=[str(e)])

        if cursor.rowcount == 0:
            return SaveResult(
                contact=record,
                success=False,
                errors=[f"Contact {record.id} not found"],
            )
        return SaveResult(contact=record, success=True)

    # =========================================================================
    # Queries
    # =========================================================================

    def _find_by_key(self, key_field: str, values: list[Any]) -> dict[str, list[int]]:
        """Map each external key value to the ids of the records holding it."""
        keys = sorted({str(v) for v in values if v is not None})
        if not keys:
            return {}

        placeholders = ", ".join("?" for _ in keys)
        with self._transaction("read") as conn:
            cursor = conn.execute(
                f"SELECT id, {key_field} AS key FROM contacts "  # nosec B608
                f"WHERE {key_field} IN ({placeholders}) ORDER BY id",
                keys,
            )
            matches: dict[str, list[int]] = {}
            for row in cursor.fetchall():
                matches.setdefault(str(row["key"]), []).append(row["id"])
            return matches

    def bulk_query(self, ids: Iterable[int]) -> list[Contact]:
        """
        Read all records with the given primary keys in one query.

        Args:
            ids: Primary keys to read; unknown ids are ignored

        Returns:
            Matching records ordered by primary key

        Raises:
            PersistenceError: If the read fails
        """
        id_list = sorted(set(ids))
        if not id_list:
            return []

        placeholders = ", ".join("?" for _ in id_list)
        with self._transaction("read") as conn:
            cursor = conn.execute(
                f"SELECT * FROM contacts WHERE id IN ({placeholders}) "  # nosec B608
                "ORDER BY id",
                id_list,
            )
            return [contact_from_row(row) for row in cursor.fetchall()]

    def get(self, contact_id: int) -> Optional[Contact]:
        """
        Get a record by primary key.

        Returns:
            The record, or None if not found
        """
        found = self.bulk_query([contact_id])
        return found[0] if found else None

    def list_contacts(self) -> list[Contact]:
        """Get all records ordered by primary key."""
        with self._transaction("read") as conn:
            cursor = conn.execute("SELECT * FROM contacts ORDER BY id")
            return [contact_from_row(row) for row in cursor.fetchall()]

    def count(self) -> int:
        """Get the total number of records."""
        with self._transaction("read") as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM contacts")
            result: int = cursor.fetchone()[0]
            return result

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return f"ContactStore(db_path={self.db_path!r})"
