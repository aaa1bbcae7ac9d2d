"""Unit tests for the low-stock / expiry monitor."""

from datetime import timedelta

from stockcore.domain.model.events import EventType
from stockcore.domain.service.stock_monitor import StockMonitor
from tests.fakes import T0, FakeClock, FakeStockLedger, RecordingPublisher, make_record


def _monitor(*records, horizon=timedelta(days=3)):
    publisher = RecordingPublisher()
    ledger = FakeStockLedger(list(records), clock=FakeClock())
    monitor = StockMonitor(ledger, publisher, expiry_horizon=horizon, clock=FakeClock())
    return monitor, ledger, publisher


class TestLowStock:

    def test_alert_below_threshold(self):
        monitor, _, publisher = _monitor(make_record("A", "L1", total=2, low_stock_threshold=5))

        [alert] = monitor.scan()

        assert alert.type == EventType.LOW_STOCK_ALERT
        assert alert.key == "A@L1"
        assert alert.payload["available_stock"] == 2
        assert alert.payload["low_stock_threshold"] == 5
        assert publisher.events == [alert]

    def test_healthy_stock_is_silent(self):
        monitor, _, _ = _monitor(make_record("A", "L1", total=10, low_stock_threshold=5))
        assert monitor.scan() == []

    def test_repeat_scan_does_not_repeat_alert(self):
        monitor, _, _ = _monitor(make_record("A", "L1", total=2, low_stock_threshold=5))

        monitor.scan()

        assert monitor.scan() == []

    def test_ledger_change_rearms_alert(self):
        monitor, ledger, _ = _monitor(make_record("A", "L1", total=4, low_stock_threshold=5))
        monitor.scan()

        ledger.apply_delta("A", "L1", 1, 0, expected_version=0)

        [alert] = monitor.scan()
        assert alert.payload["available_stock"] == 3


class TestExpiry:

    def test_alert_inside_horizon(self):
        monitor, _, _ = _monitor(make_record("A", "L1", expires_at=T0 + timedelta(days=2)))

        [alert] = monitor.scan()

        assert alert.type == EventType.EXPIRY_ALERT
        assert alert.payload["already_expired"] is False

    def test_past_expiry_flagged(self):
        monitor, _, _ = _monitor(make_record("A", "L1", expires_at=T0 - timedelta(hours=1)))

        [alert] = monitor.scan()

        assert alert.payload["already_expired"] is True

    def test_outside_horizon_is_silent(self):
        monitor, _, _ = _monitor(make_record("A", "L1", expires_at=T0 + timedelta(days=10)))
        assert monitor.scan() == []

    def test_low_and_expiring_raise_both(self):
        monitor, _, _ = _monitor(
            make_record(
                "A", "L1", total=1, low_stock_threshold=5, expires_at=T0 + timedelta(days=1)
            )
        )

        alerts = monitor.scan()

        assert {a.type for a in alerts} == {EventType.LOW_STOCK_ALERT, EventType.EXPIRY_ALERT}

    def test_scan_never_mutates_ledger(self):
        monitor, ledger, _ = _monitor(make_record("A", "L1", total=1, low_stock_threshold=5))

        monitor.scan()

        assert ledger.get("A", "L1").version == 0
