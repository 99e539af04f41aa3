"""
Integration tests for contact changes flowing through the sync gate.

Uses a real in-memory store, engine and gate; only the remote directory
client is mocked.
"""

import random
from unittest.mock import MagicMock

import pytest

from contact_mirror.api.directory_api import DirectoryAPI
from contact_mirror.storage.db import ContactStore
from contact_mirror.sync.contact import Contact
from contact_mirror.sync.engine import SyncEngine
from contact_mirror.sync.hooks import ChangeEventGate
from contact_mirror.sync.results import CalloutResult, ResultKind


@pytest.fixture
def api():
    """Create a mock directory client that answers every call successfully."""
    api = MagicMock(spec=DirectoryAPI)
    api.fetch_user.side_effect = lambda key: CalloutResult(
        key=key,
        kind=ResultKind.SUCCESS,
        contact=Contact(first_name="Remote", last_name=f"User{key}"),
        status_code=200,
    )
    api.push_user.side_effect = lambda contact: CalloutResult(
        key=str(contact.id), kind=ResultKind.SUCCESS, contact=contact, status_code=200
    )
    return api


@pytest.fixture
def store(api):
    """Create an in-memory store with the gate registered."""
    store = ContactStore(":memory:")
    store.initialize()
    engine = SyncEngine(api=api, store=store)
    gate = ChangeEventGate(engine, defer=store.defer, rng=random.Random(42))
    store.register_hooks(gate)
    return store


class TestInsertFlow:
    """Tests for contacts created locally."""

    def test_low_sync_id_pulled_after_commit(self, store, api):
        """Test that a new contact is filled in from the remote user."""
        counts = []

        def fetch(key):
            counts.append(store.count())
            return CalloutResult(
                key=key,
                kind=ResultKind.SUCCESS,
                contact=Contact(first_name="Emily", last_name="Johnson"),
            )

        api.fetch_user.side_effect = fetch
        contact = Contact(first_name="Draft", sync_id="17")

        store.insert([contact])

        api.fetch_user.assert_called_once_with("17")
        assert counts == [1]
        stored = store.get(contact.id)
        assert stored.first_name == "Emily"
        assert stored.last_name == "Johnson"
        assert stored.sync_id == "17"
        assert store.count() == 1
        api.push_user.assert_not_called()

    def test_padded_sync_id_updates_same_contact(self, store, api):
        """Test that a sync_id with whitespace is matched by the inbound upsert."""
        contact = Contact(first_name="Draft", sync_id=" 17")

        store.insert([contact])

        api.fetch_user.assert_called_once_with("17")
        contacts = store.list_contacts()
        assert len(contacts) == 1
        assert contacts[0].id == contact.id
        assert contacts[0].sync_id == "17"
        assert contacts[0].first_name == "Remote"

    def test_high_sync_id_not_pulled(self, store, api):
        """Test that contacts above the threshold are not fetched."""
        store.insert([Contact(first_name="Local", sync_id="250")])

        api.fetch_user.assert_not_called()
        assert store.list_contacts()[0].first_name == "Local"

    def test_missing_sync_id_assigned_and_pulled(self, store, api):
        """Test that an assigned sync_id is fetched."""
        contact = Contact(first_name="Draft")

        store.insert([contact])

        stored = store.get(contact.id)
        assert 0 <= stored.sync_id_value() <= 100
        api.fetch_user.assert_called_once_with(stored.sync_id)

    def test_invalid_sync_id_rejected(self, store, api):
        """Test that a non-numeric sync_id blocks the write and the sync."""
        (result,) = store.insert([Contact(sync_id="abc")])

        assert result.success is False
        assert "sync_id must be numeric" in result.error_message
        assert store.count() == 0
        api.fetch_user.assert_not_called()

    def test_failed_fetch_keeps_local_contact(self, store, api):
        """Test that a missing remote user leaves the contact unchanged."""
        api.fetch_user.side_effect = lambda key: CalloutResult(
            key=key, kind=ResultKind.NOT_FOUND, status_code=404
        )
        contact = Contact(first_name="Draft", sync_id="17")

        store.insert([contact])

        assert store.get(contact.id).first_name == "Draft"


class TestUpdateFlow:
    """Tests for contacts changed locally."""

    def test_high_sync_id_pushed_once(self, store, api):
        """Test that an update is pushed once and stamped."""
        contact = Contact(first_name="Emily", sync_id="250")
        store.insert([contact])

        contact.email = "emily@example.com"
        store.update([contact])

        api.push_user.assert_called_once()
        pushed = api.push_user.call_args.args[0]
        assert pushed.email == "emily@example.com"
        assert store.get(contact.id).last_synced_at is not None

    def test_low_sync_id_not_pushed(self, store, api):
        """Test that contacts at or below the threshold are not pushed."""
        contact = Contact(first_name="Emily", sync_id="17")
        store.insert([contact])

        store.update([contact])

        api.push_user.assert_not_called()

    def test_failed_push_not_stamped(self, store, api):
        """Test that a failed push leaves last_synced_at unset."""
        api.push_user.side_effect = lambda contact: CalloutResult(
            key=str(contact.id), kind=ResultKind.FAILURE, status_code=500
        )
        contact = Contact(sync_id="250")
        store.insert([contact])

        store.update([contact])

        assert store.get(contact.id).last_synced_at is None

    def test_batch_pushes_each_contact(self, store, api):
        """Test that one update of several contacts pushes each of them."""
        records = [Contact(sync_id=str(200 + i)) for i in range(3)]
        store.insert(records)

        store.update(records)

        assert api.push_user.call_count == 3
        assert all(c.last_synced_at for c in store.list_contacts())


class TestStorageFailures:
    """Tests for batches run against a store that cannot be read."""

    @pytest.fixture
    def bare_engine(self, api):
        """Create an engine over a store whose schema was never created."""
        return SyncEngine(api=api, store=ContactStore(":memory:"))

    def test_inbound_reports_persistence_error(self, bare_engine, api):
        """Test that a failed upsert lookup is reported on the result."""
        result = bare_engine.sync_inbound({"17"})

        api.fetch_user.assert_called_once_with("17")
        assert "no such table" in result.persistence_error
        assert result.stats.persistence_errors == 1
        assert result.has_changes() is False

    def test_outbound_reports_persistence_error(self, bare_engine, api):
        """Test that a failed bulk read is reported on the result."""
        result = bare_engine.sync_outbound({1})

        api.push_user.assert_not_called()
        assert "no such table" in result.persistence_error
