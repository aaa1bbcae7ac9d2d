"""Domain service: Reservation Manager.

Orchestrates the reserve -> commit/release state machine on top of the
stock ledger.  It is the only component allowed to mutate stock.

Reservations are all-or-nothing across lines.  Every multi-line ledger
change goes through ``_apply_all``, which undoes the lines it already
applied when a later line fails, so no partial reservation is ever left
behind.

Terminal transitions are *claimed* on the reservation store first (a
compare-and-set on the reservation's version) and only then applied to the
ledger.  Two concurrent commits of the same reservation therefore cannot
both decrement stock.  The claim stays flagged as ``settling`` until the
ledger change is done; callers that meet a settling reservation back off
and retry instead of reporting a result that may still be rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable

from stockcore.domain.clock import Clock, system_clock
from stockcore.domain.exceptions import (
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ReservationBusyError,
    Shortage,
    ValidationError,
)
from stockcore.domain.messaging.publisher import EventPublisher, NullPublisher
from stockcore.domain.model.events import stock_committed, stock_released, stock_reserved
from stockcore.domain.model.reservation import Reservation, merge_lines
from stockcore.domain.model.stock_record import StockRecord
from stockcore.domain.model.value_objects import ReservationLine
from stockcore.domain.repository.reservation_repository import ReservationRepository
from stockcore.domain.repository.stock_ledger import StockLedger
from stockcore.domain.service.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=10)

LineStep = Callable[[ReservationLine], StockRecord]
Transition = Callable[[Reservation, datetime], bool]


class ReservationManager:

    def __init__(
        self,
        ledger: StockLedger,
        reservations: ReservationRepository,
        publisher: EventPublisher | None = None,
        ttl: timedelta = DEFAULT_TTL,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = system_clock,
    ) -> None:
        self._ledger = ledger
        self._reservations = reservations
        self._publisher = publisher or NullPublisher()
        self._ttl = ttl
        self._retry = retry_policy or RetryPolicy()
        self._clock = clock

    # --- Reserve --------------------------------------------------------------

    def reserve(self, order_ref: str, lines: list[ReservationLine]) -> Reservation:
        """Reserve every line for an order, or nothing at all.

        Phase 1 reads every record and reports *all* short lines at once so
        the caller can substitute them in one go.  Phase 2 increments
        ``reserved_stock`` line by line, re-checking availability on every
        conflict retry.
        """
        reservation = Reservation.create(order_ref, lines, self._ttl, self._clock())

        # Phase 1: validate against a fresh read of every record
        shortages: list[Shortage] = []
        for line in reservation.lines:
            record = self._ledger.get(line.sku, line.location)
            if line.quantity.value > record.available_stock:
                shortages.append(
                    Shortage(line.sku, line.location, line.quantity.value, record.available_stock)
                )
        if shortages:
            logger.info(
                "Reservation for order %s rejected: %d short line(s)",
                reservation.order_ref, len(shortages),
            )
            raise InsufficientStockError(shortages)

        # Phase 2: mutate the ledger, then persist the reservation
        self._apply_all(reservation.lines, self._reserve_line, self._unreserve_line)
        try:
            self._reservations.add(reservation)
        except Exception:
            self._compensate(reservation.lines, self._unreserve_line)
            raise

        logger.info(
            "Reserved %d unit(s) for order %s as %s (expires %s)",
            reservation.total_quantity, reservation.order_ref,
            reservation.id, reservation.expires_at.isoformat(),
        )
        self._publisher.publish(stock_reserved(reservation))
        return reservation

    # --- Commit / release -----------------------------------------------------

    def commit(self, reservation_id: str) -> Reservation:
        """Permanently deduct a PENDING reservation's stock.

        Committing an already COMMITTED reservation is a no-op.  A
        RELEASED or EXPIRED reservation raises InvalidStateError so the
        caller can reconcile (e.g. refund a payment that arrived late).
        """
        reservation, changed = self._finalize(
            reservation_id,
            lambda r, now: r.commit(now),
            self._commit_line,
            self._uncommit_line,
            self._clock(),
        )
        if changed:
            logger.info("Committed reservation %s for order %s", reservation.id, reservation.order_ref)
            self._publisher.publish(stock_committed(reservation))
        return reservation

    def release(self, reservation_id: str) -> Reservation:
        """Return a PENDING reservation's stock to availability.

        Idempotent on RELEASED and EXPIRED reservations.
        """
        reservation, changed = self._finalize(
            reservation_id,
            lambda r, now: r.release(now),
            self._unreserve_line,
            self._reserve_line,
            self._clock(),
        )
        if changed:
            logger.info("Released reservation %s for order %s", reservation.id, reservation.order_ref)
            self._publisher.publish(stock_released(reservation, reason="released"))
        return reservation

    # --- Expiry sweep ---------------------------------------------------------

    def expire_due(self, now: datetime | None = None) -> list[Reservation]:
        """Expire every PENDING reservation whose TTL has passed.

        Same ledger effect as ``release``.  A reservation that fails is
        logged and left for the next sweep; it never stops the others.
        """
        now = now or self._clock()
        expired: list[Reservation] = []

        for candidate in self._reservations.list_expired(now):
            try:
                reservation, changed = self._finalize(
                    candidate.id,
                    lambda r, at: r.expire(at),
                    self._unreserve_line,
                    self._reserve_line,
                    now,
                )
            except InvalidStateError as exc:
                logger.info("Skipping expiry of %s: already %s", candidate.id, exc.state)
                continue
            except Exception:
                logger.exception("Failed to expire reservation %s", candidate.id)
                continue

            if changed:
                logger.info(
                    "Expired reservation %s for order %s", reservation.id, reservation.order_ref
                )
                self._publisher.publish(stock_released(reservation, reason="expired"))
                expired.append(reservation)

        return expired

    # --- Stock adjustments ----------------------------------------------------

    def restock(self, lines: list[ReservationLine]) -> list[StockRecord]:
        """Add returned or delivered units back to ``total_stock``."""
        if not lines:
            raise ValidationError("Restock must contain at least one line")
        records = self._apply_all(merge_lines(lines), self._restock_line, self._unrestock_line)
        logger.info("Restocked %d line(s)", len(records))
        return records

    def adjust_total(self, sku: str, location: str, new_total: int) -> StockRecord:
        """Set ``total_stock`` to a counted value, keeping every reservation intact."""
        if new_total < 0:
            raise ValidationError("Total stock cannot be negative")

        def step() -> StockRecord:
            record = self._ledger.get(sku, location)
            if new_total < record.reserved_stock:
                raise ValidationError(
                    f"Cannot set total for {record.key} to {new_total} "
                    f"while {record.reserved_stock} unit(s) are reserved"
                )
            if new_total == record.total_stock:
                return record
            return self._ledger.apply_delta(
                sku, location, 0, new_total - record.total_stock, record.version
            )

        return self._retry.retrying()(step)

    # --- Internal: reservation claim ------------------------------------------

    def _load(self, reservation_id: str) -> Reservation:
        reservation = self._reservations.get_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    def _finalize(
        self,
        reservation_id: str,
        transition: Transition,
        apply_step: LineStep,
        undo_step: LineStep,
        now: datetime,
    ) -> tuple[Reservation, bool]:
        reservation, before = self._retry.retrying()(
            self._claim, reservation_id, transition, now
        )
        if before is None:
            return reservation, False

        try:
            self._apply_all(reservation.lines, apply_step, undo_step)
        except Exception:
            before.version = reservation.version + 1
            if not self._reservations.replace(before, reservation.version):
                logger.error("Could not revert claim on reservation %s", reservation_id)
            raise

        settled = replace(reservation, settling=False, version=reservation.version + 1)
        if not self._reservations.replace(settled, reservation.version):
            logger.error("Could not settle reservation %s", reservation_id)
        return settled, True

    def _claim(
        self,
        reservation_id: str,
        transition: Transition,
        now: datetime,
    ) -> tuple[Reservation, Reservation | None]:
        """Store the transitioned reservation flagged as ``settling``.

        Returns the claimed reservation and a copy of its previous state, or
        ``(reservation, None)`` when the transition is a no-op.  Raises
        ReservationBusyError while another caller's claim is still settling,
        so nobody reports an outcome the ledger has not seen yet.
        """
        while True:
            reservation = self._load(reservation_id)
            if reservation.settling:
                raise ReservationBusyError(
                    reservation.id, reservation.state.value, reservation.version
                )
            before = replace(reservation)
            expected = reservation.version

            if not transition(reservation, now):
                return reservation, None
            reservation.settling = True
            if self._reservations.replace(reservation, expected):
                return reservation, before
            # Lost the claim to a concurrent caller; re-evaluate on fresh state.
            logger.debug("Reservation %s changed concurrently, reloading", reservation_id)

    # --- Internal: all-or-nothing ledger application --------------------------

    def _apply_all(
        self,
        lines: list[ReservationLine],
        step: LineStep,
        undo: LineStep,
    ) -> list[StockRecord]:
        applied: list[ReservationLine] = []
        records: list[StockRecord] = []
        try:
            for line in lines:
                records.append(self._retry.retrying()(step, line))
                applied.append(line)
        except Exception:
            self._compensate(applied, undo)
            raise
        return records

    def _compensate(self, lines: list[ReservationLine], undo: LineStep) -> None:
        for line in reversed(lines):
            try:
                self._retry.retrying()(undo, line)
            except Exception:
                logger.exception("Compensation failed for %s", line.key)

    # --- Internal: single-line ledger steps -----------------------------------

    def _reserve_line(self, line: ReservationLine) -> StockRecord:
        record = self._ledger.get(line.sku, line.location)
        qty = line.quantity.value
        if qty > record.available_stock:
            raise InsufficientStockError(
                [Shortage(line.sku, line.location, qty, record.available_stock)]
            )
        return self._ledger.apply_delta(line.sku, line.location, qty, 0, record.version)

    def _unreserve_line(self, line: ReservationLine) -> StockRecord:
        record = self._ledger.get(line.sku, line.location)
        qty = line.quantity.value
        return self._ledger.apply_delta(line.sku, line.location, -qty, 0, record.version)

    def _commit_line(self, line: ReservationLine) -> StockRecord:
        record = self._ledger.get(line.sku, line.location)
        qty = line.quantity.value
        return self._ledger.apply_delta(line.sku, line.location, -qty, -qty, record.version)

    def _uncommit_line(self, line: ReservationLine) -> StockRecord:
        record = self._ledger.get(line.sku, line.location)
        qty = line.quantity.value
        return self._ledger.apply_delta(line.sku, line.location, qty, qty, record.version)

    def _restock_line(self, line: ReservationLine) -> StockRecord:
        record = self._ledger.get(line.sku, line.location)
        return self._ledger.apply_delta(
            line.sku, line.location, 0, line.quantity.value, record.version
        )

    def _unrestock_line(self, line: ReservationLine) -> StockRecord:
        record = self._ledger.get(line.sku, line.location)
        return self._ledger.apply_delta(
            line.sku, line.location, 0, -line.quantity.value, record.version
        )

