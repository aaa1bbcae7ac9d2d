from datetime import timedelta

import pytest

from stockcore.application.set_stock import SetStockHandler
from stockcore.domain.exceptions import ValidationError
from stockcore.domain.model.value_objects import ReservationLine
from stockcore.domain.service.reservation_manager import ReservationManager
from stockcore.domain.service.retry_policy import RetryPolicy
from tests.fakes import T0, FakeClock, FakeReservationRepository, FakeStockLedger, make_record


def _setup(*records):
    clock = FakeClock()
    ledger = FakeStockLedger(list(records), clock=clock)
    manager = ReservationManager(
        ledger, FakeReservationRepository(), retry_policy=RetryPolicy(base_delay=0), clock=clock
    )
    return SetStockHandler(ledger, manager, clock), ledger, manager


class TestProvisioning:

    def test_new_record_is_provisioned(self):
        handler, ledger, _ = _setup()
        expiry = T0 + timedelta(days=5)

        dto = handler.handle("YOGURT", "STORE-1", 40, low_stock_threshold=8, expires_at=expiry)

        assert dto.total == 40
        assert dto.available == 40
        assert dto.version == 0
        assert dto.low_stock_threshold == 8
        assert dto.expires_at == expiry.isoformat()
        assert ledger.get("YOGURT", "STORE-1").low_stock_threshold == 8

    def test_zero_stock_can_be_provisioned(self):
        handler, _, _ = _setup()
        assert handler.handle("A", "L1", 0).available == 0

    def test_negative_quantity_rejected(self):
        handler, _, _ = _setup()
        with pytest.raises(ValidationError, match="cannot be negative"):
            handler.handle("A", "L1", -5)

    def test_blank_sku_rejected(self):
        handler, _, _ = _setup()
        with pytest.raises(ValidationError, match="SKU is required"):
            handler.handle("", "L1", 5)


class TestRecount:

    def test_existing_record_total_is_set(self):
        handler, ledger, _ = _setup(make_record("A", "L1", total=10))

        dto = handler.handle("A", "L1", 30)

        assert dto.total == 30
        assert dto.version == 1
        assert ledger.get("A", "L1").total_stock == 30

    def test_recount_keeps_reservations(self):
        handler, _, manager = _setup(make_record("A", "L1", total=10))
        manager.reserve("o-1", [ReservationLine.of("A", "L1", 4)])

        dto = handler.handle("A", "L1", 6)

        assert dto.reserved == 4
        assert dto.available == 2

    def test_recount_below_reserved_rejected(self):
        handler, _, manager = _setup(make_record("A", "L1", total=10))
        manager.reserve("o-1", [ReservationLine.of("A", "L1", 4)])

        with pytest.raises(ValidationError, match="are reserved"):
            handler.handle("A", "L1", 3)

    def test_threshold_cannot_be_changed_after_provisioning(self):
        handler, _, _ = _setup(make_record("A", "L1", total=10))
        with pytest.raises(ValidationError, match="only be set when it is provisioned"):
            handler.handle("A", "L1", 10, low_stock_threshold=3)
