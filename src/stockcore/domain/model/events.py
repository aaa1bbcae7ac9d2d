"""Stock lifecycle events, outbound and inbound.

Events are plain immutable envelopes: a type, a JSON-friendly payload and
an ordering key.  Subscribers that need per-record ordering partition on
``key`` (``SKU@LOCATION`` for ledger events, the order reference for
reservation events).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from stockcore.domain.clock import system_clock
from stockcore.domain.exceptions import ValidationError
from stockcore.domain.model.reservation import Reservation
from stockcore.domain.model.stock_record import StockRecord


class EventType(Enum):
    # Published by this core
    STOCK_CHANGED = "StockChanged"
    STOCK_RESERVED = "StockReserved"
    STOCK_COMMITTED = "StockCommitted"
    STOCK_RELEASED = "StockReleased"
    LOW_STOCK_ALERT = "LowStockAlert"
    EXPIRY_ALERT = "ExpiryAlert"
    RESERVATION_REJECTED = "ReservationRejected"
    RECONCILIATION_REQUIRED = "ReconciliationRequired"

    # Consumed from external collaborators
    ORDER_PLACED = "OrderPlaced"
    PAYMENT_CONFIRMED = "PaymentConfirmed"
    PAYMENT_FAILED = "PaymentFailed"
    RETURN_PROCESSED = "ReturnProcessed"


@dataclass(frozen=True)
class DomainEvent:

    type: EventType
    payload: dict[str, Any]
    key: str | None = None
    event_id: str = field(default_factory=lambda: uuid4().hex)
    occurred_at: datetime = field(default_factory=system_clock)

    @property
    def order_ref(self) -> str | None:
        return self.payload.get("order_ref")

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "type": self.type.value,
            "key": self.key,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": self.payload,
        }

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> DomainEvent:
        try:
            event_type = EventType(raw["type"])
        except (KeyError, ValueError) as exc:
            raise ValidationError(f"Unknown event type: {raw.get('type')!r}") from exc

        kwargs: dict[str, Any] = {}
        if raw.get("event_id"):
            kwargs["event_id"] = str(raw["event_id"])
        if raw.get("occurred_at"):
            kwargs["occurred_at"] = datetime.fromisoformat(raw["occurred_at"])
        return DomainEvent(
            type=event_type,
            payload=dict(raw.get("payload") or {}),
            key=raw.get("key"),
            **kwargs,
        )


# ---------------------------------------------------------------------------
# Factories for outbound events
# ---------------------------------------------------------------------------


def _record_payload(record: StockRecord) -> dict[str, Any]:
    return {
        "sku": record.sku,
        "location": record.location,
        "total_stock": record.total_stock,
        "reserved_stock": record.reserved_stock,
        "available_stock": record.available_stock,
        "version": record.version,
    }


def _reservation_payload(reservation: Reservation) -> dict[str, Any]:
    return {
        "reservation_id": reservation.id,
        "order_ref": reservation.order_ref,
        "state": reservation.state.value,
        "lines": [
            {
                "sku": line.sku,
                "location": line.location,
                "quantity": line.quantity.value,
            }
            for line in reservation.lines
        ],
    }


def stock_changed(record: StockRecord, reserved_delta: int, total_delta: int) -> DomainEvent:
    payload = _record_payload(record)
    payload["reserved_delta"] = reserved_delta
    payload["total_delta"] = total_delta
    return DomainEvent(
        EventType.STOCK_CHANGED, payload, key=str(record.key), occurred_at=record.last_updated
    )


def stock_reserved(reservation: Reservation) -> DomainEvent:
    payload = _reservation_payload(reservation)
    payload["expires_at"] = reservation.expires_at.isoformat()
    return DomainEvent(EventType.STOCK_RESERVED, payload, key=reservation.order_ref)


def stock_committed(reservation: Reservation) -> DomainEvent:
    return DomainEvent(
        EventType.STOCK_COMMITTED, _reservation_payload(reservation), key=reservation.order_ref
    )


def stock_released(reservation: Reservation, reason: str) -> DomainEvent:
    payload = _reservation_payload(reservation)
    payload["reason"] = reason
    return DomainEvent(EventType.STOCK_RELEASED, payload, key=reservation.order_ref)


def low_stock_alert(record: StockRecord) -> DomainEvent:
    payload = _record_payload(record)
    payload["low_stock_threshold"] = record.low_stock_threshold
    return DomainEvent(EventType.LOW_STOCK_ALERT, payload, key=str(record.key))


def expiry_alert(record: StockRecord, now: datetime) -> DomainEvent:
    payload = _record_payload(record)
    payload["expires_at"] = record.expires_at.isoformat() if record.expires_at else None
    payload["already_expired"] = record.expires_at is not None and record.expires_at <= now
    return DomainEvent(EventType.EXPIRY_ALERT, payload, key=str(record.key))


def reservation_rejected(order_ref: str, reason: str, detail: dict[str, Any]) -> DomainEvent:
    payload = {"order_ref": order_ref, "reason": reason}
    payload.update(detail)
    return DomainEvent(EventType.RESERVATION_REJECTED, payload, key=order_ref)


def reconciliation_required(
    reservation_id: str | None, order_ref: str | None, state: str, trigger: str
) -> DomainEvent:
    return DomainEvent(
        EventType.RECONCILIATION_REQUIRED,
        {
            "reservation_id": reservation_id,
            "order_ref": order_ref,
            "state": state,
            "trigger": trigger,
        },
        key=order_ref,
    )
