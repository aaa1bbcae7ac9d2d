"""Tests for the in-process event bus and the JSON-lines event log."""

import json

import pytest

from stockcore.domain.exceptions import ValidationError
from stockcore.domain.model.events import DomainEvent, EventType
from stockcore.infrastructure.messaging.event_bus import InProcessEventBus
from stockcore.infrastructure.messaging.event_log import JsonlEventLog, read_events
from tests.fakes import T0


def _event(event_type=EventType.STOCK_CHANGED, **payload):
    return DomainEvent(event_type, payload or {"sku": "A", "location": "L1"}, key="A@L1")


# ── InProcessEventBus ────────────────────────────────────────────────────────


class TestInProcessEventBus:

    def test_delivers_in_publish_order(self):
        bus = InProcessEventBus(base_delay=0)
        received = []
        bus.subscribe(received.append)

        first, second = _event(), _event()
        bus.publish(first)
        bus.publish(second)

        assert received == [first, second]

    def test_filters_by_type(self):
        bus = InProcessEventBus(base_delay=0)
        received = []
        bus.subscribe(received.append, EventType.LOW_STOCK_ALERT)

        bus.publish(_event(EventType.STOCK_CHANGED))
        bus.publish(_event(EventType.LOW_STOCK_ALERT))

        assert [e.type for e in received] == [EventType.LOW_STOCK_ALERT]

    def test_failing_subscriber_is_retried(self):
        bus = InProcessEventBus(max_attempts=3, base_delay=0)
        calls = []

        def flaky(event):
            calls.append(event)
            if len(calls) < 3:
                raise RuntimeError("broker hiccup")

        bus.subscribe(flaky)
        bus.publish(_event())

        assert len(calls) == 3
        assert bus.dead_letters == []

    def test_exhausted_retries_go_to_dead_letters(self):
        bus = InProcessEventBus(max_attempts=2, base_delay=0)
        healthy = []

        def broken(event):
            raise RuntimeError("down")

        bus.subscribe(broken)
        bus.subscribe(healthy.append)
        event = _event()

        bus.publish(event)

        [dead] = bus.dead_letters
        assert dead.event == event
        assert dead.error == "down"
        assert "broken" in dead.subscriber
        assert healthy == [event]

    def test_subscriber_may_publish_follow_up(self):
        bus = InProcessEventBus(base_delay=0)
        received = []

        def chain(event):
            received.append(event.type)
            if event.type == EventType.STOCK_CHANGED:
                bus.publish(_event(EventType.LOW_STOCK_ALERT))

        bus.subscribe(chain)
        bus.publish(_event())

        assert received == [EventType.STOCK_CHANGED, EventType.LOW_STOCK_ALERT]

    def test_invalid_attempts_rejected(self):
        with pytest.raises(ValueError):
            InProcessEventBus(max_attempts=0)


# ── JsonlEventLog ────────────────────────────────────────────────────────────


class TestJsonlEventLog:

    def test_appends_one_line_per_event(self, tmp_path):
        log = JsonlEventLog(tmp_path / "events.jsonl")

        log(_event())
        log(_event(EventType.LOW_STOCK_ALERT, sku="A"))

        lines = (tmp_path / "events.jsonl").read_text().splitlines()
        assert [json.loads(l)["type"] for l in lines] == ["StockChanged", "LowStockAlert"]

    def test_read_back_preserves_identity(self, tmp_path):
        log = JsonlEventLog(tmp_path / "events.jsonl")
        event = DomainEvent(
            EventType.ORDER_PLACED, {"order_ref": "o-1"}, key="o-1", event_id="e-1", occurred_at=T0
        )

        log.append(event)

        assert log.read_all() == [event]

    def test_missing_file_reads_empty(self, tmp_path):
        assert read_events(tmp_path / "absent.jsonl") == []

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "in.jsonl"
        path.write_text('\n{"type": "PaymentFailed", "payload": {"order_ref": "o-1"}}\n\n')

        [event] = read_events(path)

        assert event.type == EventType.PAYMENT_FAILED
        assert event.order_ref == "o-1"
        assert event.event_id

    def test_unknown_type_rejected(self, tmp_path):
        path = tmp_path / "in.jsonl"
        path.write_text('{"type": "Nope", "payload": {}}\n')
        with pytest.raises(ValidationError, match="Unknown event type"):
            read_events(path)
