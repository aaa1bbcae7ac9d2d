"""Tests for the reserve / commit / release / show / sweep use cases.

Uses in-memory fake repositories; no file I/O.
"""

from datetime import timedelta

import pytest

from stockcore.application.commit_reservation import CommitReservationHandler
from stockcore.application.dto import ReservationLineSpec
from stockcore.application.release_reservation import ReleaseReservationHandler
from stockcore.application.reserve_stock import ReserveStockHandler
from stockcore.application.show_reservation import ShowReservationHandler
from stockcore.application.sweep_reservations import SweepExpiredReservationsHandler
from stockcore.domain.exceptions import InsufficientStockError, NotFoundError, ValidationError
from stockcore.domain.service.reservation_manager import ReservationManager
from stockcore.domain.service.retry_policy import RetryPolicy
from tests.fakes import FakeClock, FakeReservationRepository, FakeStockLedger, make_record


def _setup(*records):
    clock = FakeClock()
    ledger = FakeStockLedger(list(records), clock=clock)
    repo = FakeReservationRepository()
    manager = ReservationManager(
        ledger, repo, ttl=timedelta(minutes=10), retry_policy=RetryPolicy(base_delay=0), clock=clock
    )
    return manager, ledger, repo, clock


class TestReserveStockHandler:

    def test_returns_pending_dto(self):
        manager, ledger, _, _ = _setup(make_record("MILK", "STORE-1", total=12))

        dto = ReserveStockHandler(manager).handle(
            "order-42", [ReservationLineSpec("MILK", "STORE-1", 2)]
        )

        assert dto.state == "PENDING"
        assert dto.order_ref == "order-42"
        assert [(l.sku, l.location, l.quantity) for l in dto.lines] == [("MILK", "STORE-1", 2)]
        assert dto.closed_at is None
        assert ledger.get("MILK", "STORE-1").available_stock == 10

    def test_empty_specs_rejected(self):
        manager, *_ = _setup(make_record())
        with pytest.raises(ValidationError, match="at least one line"):
            ReserveStockHandler(manager).handle("order-1", [])

    def test_invalid_quantity_rejected(self):
        manager, *_ = _setup(make_record())
        with pytest.raises(ValidationError, match="must be positive"):
            ReserveStockHandler(manager).handle("order-1", [ReservationLineSpec("A", "L1", 0)])

    def test_shortage_propagates(self):
        manager, *_ = _setup(make_record(total=1))
        with pytest.raises(InsufficientStockError):
            ReserveStockHandler(manager).handle("order-1", [ReservationLineSpec("A", "L1", 2)])


class TestCommitAndRelease:

    def test_commit(self):
        manager, ledger, _, _ = _setup(make_record(total=10))
        created = ReserveStockHandler(manager).handle("o-1", [ReservationLineSpec("A", "L1", 3)])

        dto = CommitReservationHandler(manager).handle(created.id)

        assert dto.state == "COMMITTED"
        assert dto.closed_at is not None
        assert ledger.get("A", "L1").total_stock == 7

    def test_release(self):
        manager, ledger, _, _ = _setup(make_record(total=10))
        created = ReserveStockHandler(manager).handle("o-1", [ReservationLineSpec("A", "L1", 3)])

        dto = ReleaseReservationHandler(manager).handle(created.id)

        assert dto.state == "RELEASED"
        assert ledger.get("A", "L1").available_stock == 10


class TestShowReservationHandler:

    def test_show_by_id(self):
        manager, _, repo, _ = _setup(make_record(total=10))
        created = ReserveStockHandler(manager).handle("o-1", [ReservationLineSpec("A", "L1", 3)])

        assert ShowReservationHandler(repo).handle(created.id) == created

    def test_unknown_id(self):
        _, _, repo, _ = _setup()
        with pytest.raises(NotFoundError, match="Reservation missing not found"):
            ShowReservationHandler(repo).handle("missing")

    def test_for_order_lists_oldest_first(self):
        manager, _, repo, clock = _setup(make_record(total=10))
        handler = ReserveStockHandler(manager)
        first = handler.handle("o-1", [ReservationLineSpec("A", "L1", 1)])
        ReleaseReservationHandler(manager).handle(first.id)
        clock.advance(seconds=5)
        second = handler.handle("o-1", [ReservationLineSpec("A", "L1", 2)])

        listed = ShowReservationHandler(repo).for_order("o-1")

        assert [r.id for r in listed] == [first.id, second.id]
        assert [r.state for r in listed] == ["RELEASED", "PENDING"]


class TestSweepExpiredReservationsHandler:

    def test_sweep_returns_expired(self):
        manager, ledger, _, clock = _setup(make_record(total=10))
        created = ReserveStockHandler(manager).handle("o-1", [ReservationLineSpec("A", "L1", 3)])
        clock.advance(minutes=10)

        swept = SweepExpiredReservationsHandler(manager).handle()

        assert [(r.id, r.state) for r in swept] == [(created.id, "EXPIRED")]
        assert ledger.get("A", "L1").reserved_stock == 0
