"""Unit tests for the StockLedger contract (optimistic versioning)."""

import threading

import pytest

from stockcore.domain.exceptions import ConflictError, NotFoundError, ValidationError
from stockcore.domain.model.events import EventType
from stockcore.domain.model.value_objects import StockKey
from tests.fakes import (
    FakeClock,
    FakeStockLedger,
    RecordingPublisher,
    StallingPublisher,
    make_record,
)


def _ledger(*records, publisher=None) -> FakeStockLedger:
    return FakeStockLedger(list(records), publisher=publisher, clock=FakeClock())


class TestGet:

    def test_returns_record(self):
        ledger = _ledger(make_record("A", "L1", total=10))
        assert ledger.get("A", "L1").total_stock == 10

    def test_unknown_key_raises(self):
        ledger = _ledger()
        with pytest.raises(NotFoundError, match="No stock record for A@L1"):
            ledger.get("A", "L1")


class TestApplyDelta:

    def test_applies_and_bumps_version(self):
        ledger = _ledger(make_record("A", "L1", total=10))

        updated = ledger.apply_delta("A", "L1", 4, 0, expected_version=0)

        assert updated.reserved_stock == 4
        assert updated.version == 1
        assert ledger.get("A", "L1") == updated

    def test_stale_version_raises_conflict(self):
        ledger = _ledger(make_record("A", "L1", total=10, version=3))

        with pytest.raises(ConflictError) as exc_info:
            ledger.apply_delta("A", "L1", 1, 0, expected_version=2)

        assert exc_info.value.expected_version == 2
        assert exc_info.value.actual_version == 3
        assert exc_info.value.retryable is True
        assert ledger.get("A", "L1").reserved_stock == 0

    def test_lost_compare_and_set_raises_conflict(self):
        class RacingLedger(FakeStockLedger):
            def _compare_and_set(self, record, expected_version, on_stored):
                # another writer lands between read and write
                current = self._store[record.key]
                self._store[record.key] = current.apply(0, 1, current.last_updated)
                return super()._compare_and_set(record, expected_version, on_stored)

        ledger = RacingLedger([make_record("A", "L1", total=10)])

        with pytest.raises(ConflictError) as exc_info:
            ledger.apply_delta("A", "L1", 1, 0, expected_version=0)

        assert exc_info.value.actual_version == 1
        assert ledger.get("A", "L1").reserved_stock == 0

    def test_invariant_violation_leaves_record_untouched(self):
        ledger = _ledger(make_record("A", "L1", total=5))

        with pytest.raises(ValidationError):
            ledger.apply_delta("A", "L1", 6, 0, expected_version=0)

        assert ledger.get("A", "L1").version == 0

    def test_unknown_key_raises(self):
        with pytest.raises(NotFoundError):
            _ledger().apply_delta("A", "L1", 1, 0, expected_version=0)


class TestStockChangedEvents:

    def test_successful_change_publishes_event(self):
        publisher = RecordingPublisher()
        ledger = _ledger(make_record("A", "L1", total=10), publisher=publisher)

        ledger.apply_delta("A", "L1", 2, 5, expected_version=0)

        [event] = publisher.of_type(EventType.STOCK_CHANGED)
        assert event.key == "A@L1"
        assert event.payload["total_stock"] == 15
        assert event.payload["reserved_stock"] == 2
        assert event.payload["available_stock"] == 13
        assert event.payload["reserved_delta"] == 2
        assert event.payload["total_delta"] == 5
        assert event.payload["version"] == 1

    def test_conflict_publishes_nothing(self):
        publisher = RecordingPublisher()
        ledger = _ledger(make_record("A", "L1", total=10, version=1), publisher=publisher)

        with pytest.raises(ConflictError):
            ledger.apply_delta("A", "L1", 2, 0, expected_version=0)

        assert publisher.events == []

    def test_events_for_one_key_leave_in_version_order(self):
        publisher = StallingPublisher()
        ledger = _ledger(make_record("A", "L1", total=10), publisher=publisher)

        first = threading.Thread(target=ledger.apply_delta, args=("A", "L1", 1, 0, 0))
        first.start()
        assert publisher.first_arrived.wait(timeout=2)
        # v1 is stored but its event is still on the way out
        second = threading.Thread(target=ledger.apply_delta, args=("A", "L1", 1, 0, 1))
        second.start()
        first.join()
        second.join()

        assert [e.payload["version"] for e in publisher.events] == [1, 2]


class TestAdd:

    def test_duplicate_key_rejected(self):
        ledger = _ledger(make_record("A", "L1"))
        with pytest.raises(ValidationError, match="already exists"):
            ledger.add(make_record("A", "L1"))

    def test_add_then_find(self):
        ledger = _ledger()
        ledger.add(make_record("B", "L2", total=3))
        assert ledger.find(StockKey("B", "L2")).total_stock == 3
