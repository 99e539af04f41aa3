"""
Unit tests for the change-event gate.

Tests sync_id assignment, validation, inbound/outbound routing and the
re-entrancy guard. The engine is mocked and sync runs immediately.
"""

import random
from unittest.mock import MagicMock

import pytest

from contact_mirror.sync.contact import Contact
from contact_mirror.sync.engine import SyncEngine, SyncResult
from contact_mirror.sync.hooks import (
    DEFAULT_SYNC_ID_THRESHOLD,
    INVALID_SYNC_ID_MESSAGE,
    ChangeEventGate,
    outbound_hook_active,
)


@pytest.fixture
def engine():
    """Create a mock sync engine."""
    engine = MagicMock(spec=SyncEngine)
    engine.sync_inbound.return_value = SyncResult(direction="inbound")
    engine.sync_outbound.return_value = SyncResult(direction="outbound")
    return engine


@pytest.fixture
def gate(engine):
    """Create a gate that runs sync immediately."""
    return ChangeEventGate(engine, rng=random.Random(1234))


class TestBeforeInsert:
    """Tests for on_before_insert()."""

    def test_assigns_missing_sync_id_in_range(self, gate):
        """Test that contacts without sync_id get one in [0, threshold]."""
        records = [Contact(first_name=str(i)) for i in range(200)]

        gate.on_before_insert(records)

        for record in records:
            assert record.is_sync_id_numeric()
            assert 0 <= record.sync_id_value() <= DEFAULT_SYNC_ID_THRESHOLD

    def test_blank_sync_id_is_replaced(self, gate):
        """Test that a whitespace sync_id counts as missing."""
        record = Contact(sync_id="  ")
        gate.on_before_insert([record])
        assert record.is_sync_id_numeric()

    def test_existing_sync_id_kept(self, gate):
        """Test that a present sync_id is never overwritten."""
        records = [Contact(sync_id="17"), Contact(sync_id="250")]
        gate.on_before_insert(records)
        assert [r.sync_id for r in records] == ["17", "250"]

    def test_uses_injected_rng(self, engine):
        """Test that the random source is injectable."""
        rng = MagicMock()
        rng.randint.return_value = 42
        gate = ChangeEventGate(engine, rng=rng)
        record = Contact()

        gate.on_before_insert([record])

        rng.randint.assert_called_once_with(0, 100)
        assert record.sync_id == "42"
        engine.sync_inbound.assert_called_once_with({"42"})

    def test_surrounding_whitespace_stripped(self, gate, engine):
        """Test that the stored sync_id equals the id handed to inbound sync."""
        record = Contact(sync_id=" 17 ")

        gate.on_before_insert([record])

        assert record.sync_id == "17"
        assert record.errors == []
        engine.sync_inbound.assert_called_once_with({"17"})

    def test_only_low_sync_ids_fetched(self, gate, engine):
        """Test that only sync_ids at or below the threshold are fetched."""
        gate.on_before_insert(
            [Contact(sync_id="17"), Contact(sync_id="100"), Contact(sync_id="101")]
        )
        engine.sync_inbound.assert_called_once_with({"17", "100"})

    def test_duplicate_sync_ids_fetched_once(self, gate, engine):
        """Test that equal sync_ids collapse into one id."""
        gate.on_before_insert([Contact(sync_id="17"), Contact(sync_id=" 17 ")])
        engine.sync_inbound.assert_called_once_with({"17"})

    def test_no_low_sync_ids_makes_empty_batch(self, gate, engine):
        """Test that a batch with only high ids hands over an empty set."""
        gate.on_before_insert([Contact(sync_id="500")])
        engine.sync_inbound.assert_called_once_with(set())

    def test_non_numeric_sync_id_rejected(self, gate, engine):
        """Test that non-numeric sync_ids get an error and are not fetched."""
        bad = Contact(sync_id="abc")
        good = Contact(sync_id="5")

        gate.on_before_insert([bad, good])

        assert bad.errors == [INVALID_SYNC_ID_MESSAGE]
        assert good.errors == []
        engine.sync_inbound.assert_called_once_with({"5"})

    def test_custom_threshold(self, engine):
        """Test a configured threshold."""
        gate = ChangeEventGate(engine, threshold=10, rng=random.Random(0))
        records = [Contact(sync_id="10"), Contact(sync_id="11"), Contact()]

        gate.on_before_insert(records)

        assert 0 <= records[2].sync_id_value() <= 10
        ids = engine.sync_inbound.call_args.args[0]
        assert "10" in ids
        assert "11" not in ids

    def test_deferred_dispatch(self, engine):
        """Test that sync is handed to the defer callable."""
        defer = MagicMock()
        gate = ChangeEventGate(engine, defer=defer)

        gate.on_before_insert([Contact(sync_id="17")])

        defer.assert_called_once_with(gate.run_inbound, {"17"})
        engine.sync_inbound.assert_not_called()

    def test_no_fetch_inside_inbound_sync(self, gate, engine):
        """Test that contacts created by inbound sync are not fetched again."""
        nested = Contact()

        def create_contacts(ids):
            gate.on_before_insert([nested])
            return SyncResult(direction="inbound")

        engine.sync_inbound.side_effect = create_contacts

        gate.run_inbound({"17"})

        engine.sync_inbound.assert_called_once_with({"17"})
        # Still assigned and validated
        assert nested.is_sync_id_numeric()


class TestBeforeUpdate:
    """Tests for on_before_update()."""

    def test_only_high_sync_ids_pushed(self, gate, engine):
        """Test that only contacts above the threshold are pushed."""
        gate.on_before_update(
            [
                Contact(id=1, sync_id="17"),
                Contact(id=2, sync_id="100"),
                Contact(id=3, sync_id="250"),
            ]
        )
        engine.sync_outbound.assert_called_once_with({3})

    def test_surrounding_whitespace_stripped(self, gate, engine):
        """Test that updated sync_ids are stored without whitespace."""
        record = Contact(id=4, sync_id="250 ")

        gate.on_before_update([record])

        assert record.sync_id == "250"
        engine.sync_outbound.assert_called_once_with({4})

    def test_records_without_id_skipped(self, gate, engine):
        """Test that contacts without a primary key are not pushed."""
        gate.on_before_update([Contact(sync_id="250")])
        engine.sync_outbound.assert_called_once_with(set())

    def test_non_numeric_sync_id_rejected(self, gate, engine):
        """Test that updates with a non-numeric sync_id get an error."""
        record = Contact(id=1, sync_id="12a")

        gate.on_before_update([record])

        assert record.errors == [INVALID_SYNC_ID_MESSAGE]
        engine.sync_outbound.assert_called_once_with(set())

    def test_missing_sync_id_rejected_on_update(self, gate):
        """Test that updates never assign a sync_id."""
        record = Contact(id=1)
        gate.on_before_update([record])
        assert record.sync_id is None
        assert record.has_errors()

    def test_reentrant_update_is_skipped(self, gate, engine):
        """Test that an update made by outbound sync does not push again."""
        record = Contact(id=1, sync_id="250")

        def push(ids):
            assert outbound_hook_active() is True
            gate.on_before_update([record])
            return SyncResult(direction="outbound")

        engine.sync_outbound.side_effect = push

        gate.on_before_update([record])

        engine.sync_outbound.assert_called_once_with({1})
        assert outbound_hook_active() is False

    def test_flag_reset_after_exception(self, gate, engine):
        """Test that a failing sync does not leave the guard set."""
        engine.sync_outbound.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            gate.on_before_update([Contact(id=1, sync_id="250")])

        assert outbound_hook_active() is False
        engine.sync_outbound.side_effect = None
        gate.on_before_update([Contact(id=1, sync_id="250")])
        assert engine.sync_outbound.call_count == 2

    def test_deferred_job_sets_flag(self, engine):
        """Test that a deferred outbound job still holds the guard."""
        jobs = []
        gate = ChangeEventGate(engine, defer=lambda f, *a: jobs.append((f, a)))
        def push(ids):
            assert outbound_hook_active() is True
            return SyncResult(direction="outbound")

        engine.sync_outbound.side_effect = push

        gate.on_before_update([Contact(id=1, sync_id="250")])
        assert outbound_hook_active() is False
        func, args = jobs[0]
        func(*args)

        engine.sync_outbound.assert_called_once_with({1})


class TestRunMethods:
    """Tests for run_inbound() and run_outbound()."""

    def test_run_inbound_returns_result(self, gate, engine):
        """Test that the engine result is returned."""
        assert gate.run_inbound({"1"}) is engine.sync_inbound.return_value

    def test_run_outbound_returns_result(self, gate, engine):
        """Test that the engine result is returned."""
        assert gate.run_outbound({1}) is engine.sync_outbound.return_value

    def test_repr(self, gate):
        """Test the readable representation."""
        assert repr(gate) == "ChangeEventGate(threshold=100)"
