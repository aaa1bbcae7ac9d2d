"""Application service: consume stock-affecting events from collaborators.

Translates external triggers into ReservationManager calls:

    OrderPlaced       -> reserve
    PaymentConfirmed  -> commit
    PaymentFailed     -> release
    ReturnProcessed   -> restock (or release, if the order never committed)

Delivery is at-least-once, so every handler must tolerate redelivery.  An
event's idempotency key is claimed in the processed-event store before it
is handled, so concurrent deliveries of one event run the handler once.
Business outcomes such as "not enough stock" are final and keep the claim,
while ConflictError and unexpected errors give the claim back and propagate
so the broker redelivers the event.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Callable

from stockcore.domain.exceptions import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from stockcore.domain.messaging.publisher import EventPublisher, NullPublisher
from stockcore.domain.model.events import (
    DomainEvent,
    EventType,
    reconciliation_required,
    reservation_rejected,
)
from stockcore.domain.model.reservation import Reservation, ReservationState
from stockcore.domain.model.value_objects import ReservationLine
from stockcore.domain.repository.processed_event_store import ProcessedEventStore
from stockcore.domain.repository.reservation_repository import ReservationRepository
from stockcore.domain.service.reservation_manager import ReservationManager

logger = logging.getLogger(__name__)


class StockEventConsumer:

    def __init__(
        self,
        manager: ReservationManager,
        reservation_repo: ReservationRepository,
        processed: ProcessedEventStore,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._manager = manager
        self._reservation_repo = reservation_repo
        self._processed = processed
        self._publisher = publisher or NullPublisher()
        self._handlers: dict[EventType, Callable[[DomainEvent], None]] = {
            EventType.ORDER_PLACED: self._on_order_placed,
            EventType.PAYMENT_CONFIRMED: self._on_payment_confirmed,
            EventType.PAYMENT_FAILED: self._on_payment_failed,
            EventType.RETURN_PROCESSED: self._on_return_processed,
        }

    @staticmethod
    def idempotency_key(event: DomainEvent) -> str:
        if event.order_ref:
            return f"{event.order_ref}:{event.event_id}"
        return event.event_id

    def handle(self, event: DomainEvent) -> bool:
        """Process one inbound event.

        Returns True if it was processed now, False if it was a duplicate
        or of a type this consumer does not handle.
        """
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.warning("Ignoring unsupported event type %s", event.type.value)
            return False

        key = self.idempotency_key(event)
        if not self._processed.claim(key):
            logger.info("Skipping duplicate %s event %s", event.type.value, key)
            return False

        try:
            handler(event)
        except (ValidationError, NotFoundError) as exc:
            # Redelivering an unprocessable event can never succeed, keep the claim.
            logger.error("Discarding unprocessable %s event %s: %s", event.type.value, key, exc)
            return False
        except Exception:
            self._processed.release(key)
            raise
        logger.debug("Processed %s event %s", event.type.value, key)
        return True

    # --- Handlers -------------------------------------------------------------

    def _on_order_placed(self, event: DomainEvent) -> None:
        order_ref = _require(event.payload, "order_ref")

        held = [
            r for r in self._reservation_repo.find_by_order_ref(order_ref)
            if r.state in (ReservationState.PENDING, ReservationState.COMMITTED)
        ]
        if held:
            logger.info(
                "Order %s already holds reservation %s; not reserving again",
                order_ref, held[-1].id,
            )
            return

        try:
            lines = _parse_lines(event.payload.get("lines"))
            self._manager.reserve(order_ref, lines)
        except InsufficientStockError as exc:
            self._publisher.publish(
                reservation_rejected(
                    order_ref,
                    "insufficient_stock",
                    {"shortages": [asdict(s) for s in exc.shortages]},
                )
            )
        except NotFoundError as exc:
            self._publisher.publish(
                reservation_rejected(order_ref, "unknown_stock", {"detail": str(exc)})
            )
        except ValidationError as exc:
            self._publisher.publish(
                reservation_rejected(order_ref, "invalid_request", {"detail": str(exc)})
            )

    def _on_payment_confirmed(self, event: DomainEvent) -> None:
        try:
            reservation = self._resolve(event)
            self._manager.commit(reservation.id)
        except NotFoundError as exc:
            logger.warning("Payment confirmed without a reservation: %s", exc)
            self._publisher.publish(
                reconciliation_required(
                    event.payload.get("reservation_id"), event.order_ref, "MISSING",
                    event.type.value,
                )
            )
        except InvalidStateError as exc:
            # Payment landed after the reservation was released or expired.
            logger.warning(
                "Late payment for reservation %s in state %s", exc.reservation_id, exc.state
            )
            self._publisher.publish(
                reconciliation_required(
                    exc.reservation_id, event.order_ref, exc.state, event.type.value
                )
            )

    def _on_payment_failed(self, event: DomainEvent) -> None:
        try:
            reservation = self._resolve(event)
            self._manager.release(reservation.id)
        except NotFoundError as exc:
            logger.warning("Payment failed for an order with nothing reserved: %s", exc)
        except InvalidStateError as exc:
            logger.warning(
                "Payment failure for reservation %s that is already %s",
                exc.reservation_id, exc.state,
            )
            self._publisher.publish(
                reconciliation_required(
                    exc.reservation_id, event.order_ref, exc.state, event.type.value
                )
            )

    def _on_return_processed(self, event: DomainEvent) -> None:
        if event.payload.get("lines"):
            self._manager.restock(_parse_lines(event.payload["lines"]))
            return

        reservation = self._resolve(event)
        if reservation.state == ReservationState.COMMITTED:
            self._manager.restock(list(reservation.lines))
        elif reservation.state == ReservationState.PENDING:
            self._manager.release(reservation.id)
        else:
            logger.info(
                "Return for reservation %s ignored: stock already back (%s)",
                reservation.id, reservation.state.value,
            )

    # --- Internal helpers -----------------------------------------------------

    def _resolve(self, event: DomainEvent) -> Reservation:
        """Find the reservation an event refers to, by ID or by order."""
        reservation_id = event.payload.get("reservation_id")
        if reservation_id:
            reservation = self._reservation_repo.get_by_id(reservation_id)
            if reservation is None:
                raise NotFoundError(f"Reservation {reservation_id} not found")
            return reservation

        order_ref = _require(event.payload, "order_ref")
        candidates = self._reservation_repo.find_by_order_ref(order_ref)
        if not candidates:
            raise NotFoundError(f"No reservation for order {order_ref}")
        pending = [r for r in candidates if r.is_pending]
        return pending[-1] if pending else candidates[-1]


def _require(payload: dict[str, Any], field: str) -> str:
    value = payload.get(field)
    if not value:
        raise ValidationError(f"Event payload is missing '{field}'")
    return str(value)


def _parse_lines(raw: Any) -> list[ReservationLine]:
    if not raw or not isinstance(raw, list):
        raise ValidationError("Event payload must contain a non-empty 'lines' list")
    try:
        return [
            ReservationLine.of(item["sku"], item["location"], item["quantity"])
            for item in raw
        ]
    except (KeyError, TypeError) as exc:
        raise ValidationError(f"Malformed line in event payload: {exc}") from exc
