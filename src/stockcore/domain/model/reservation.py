"""Reservation aggregate: a short-lived hold on stock for one order attempt.

The Reservation owns its line quantities against the ledger until it
reaches a terminal state.  Terminal reservations are retained for audit
and never touch the ledger again.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import uuid4

from stockcore.domain.exceptions import InvalidStateError, ValidationError
from stockcore.domain.model.value_objects import Quantity, ReservationLine, StockKey


class ReservationState(Enum):
    PENDING = "PENDING"
    COMMITTED = "COMMITTED"
    RELEASED = "RELEASED"
    EXPIRED = "EXPIRED"


TERMINAL_STATES = frozenset(
    {ReservationState.COMMITTED, ReservationState.RELEASED, ReservationState.EXPIRED}
)

# ---------------------------------------------------------------------------
# Constants for business rules
# ---------------------------------------------------------------------------
MAX_LINES = 100


@dataclass
class Reservation:
    """Aggregate root for stock reservations.

    Use the ``Reservation.create()`` factory for new reservations; the
    ``__init__`` stays simple so repositories can reconstitute persisted
    reservations without re-validating.
    """

    id: str
    order_ref: str
    lines: list[ReservationLine]
    state: ReservationState
    created_at: datetime
    expires_at: datetime
    closed_at: datetime | None = None
    version: int = 0
    # a terminal state is claimed but its ledger change has not finished
    settling: bool = False

    # --- Factory (used for NEW reservations only) -----------------------------

    @staticmethod
    def create(
        order_ref: str,
        lines: list[ReservationLine],
        ttl: timedelta,
        now: datetime,
    ) -> Reservation:
        """Create a PENDING reservation, merging lines that share a key."""
        if not order_ref or not order_ref.strip():
            raise ValidationError("Order reference is required")
        if not lines:
            raise ValidationError("Reservation must contain at least one line")
        if len(lines) > MAX_LINES:
            raise ValidationError(f"Maximum {MAX_LINES} lines per reservation")
        if ttl <= timedelta(0):
            raise ValidationError("Reservation TTL must be positive")

        return Reservation(
            id=uuid4().hex,
            order_ref=order_ref.strip(),
            lines=merge_lines(lines),
            state=ReservationState.PENDING,
            created_at=now,
            expires_at=now + ttl,
        )

    # --- State transitions ----------------------------------------------------

    def commit(self, now: datetime) -> bool:
        """Transition PENDING -> COMMITTED.

        Returns False when already COMMITTED (idempotent no-op).
        """
        if self.state == ReservationState.COMMITTED:
            return False
        self._close("commit", ReservationState.COMMITTED, now)
        return True

    def release(self, now: datetime) -> bool:
        """Transition PENDING -> RELEASED.

        Returns False when already RELEASED or EXPIRED.
        """
        if self.state in (ReservationState.RELEASED, ReservationState.EXPIRED):
            return False
        self._close("release", ReservationState.RELEASED, now)
        return True

    def expire(self, now: datetime) -> bool:
        """Transition PENDING -> EXPIRED once the TTL has passed."""
        if self.state in (ReservationState.RELEASED, ReservationState.EXPIRED):
            return False
        if self.state == ReservationState.PENDING and not self.is_expired(now):
            raise ValidationError(
                f"Reservation {self.id} does not expire until {self.expires_at.isoformat()}"
            )
        self._close("expire", ReservationState.EXPIRED, now)
        return True

    # --- Computed properties --------------------------------------------------

    @property
    def is_pending(self) -> bool:
        return self.state == ReservationState.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def is_expired(self, now: datetime) -> bool:
        return self.is_pending and self.expires_at <= now

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity.value for line in self.lines)

    # --- Internal helpers -----------------------------------------------------

    def _close(self, operation: str, target: ReservationState, now: datetime) -> None:
        if self.state != ReservationState.PENDING:
            raise InvalidStateError(self.id, self.state.value, operation)
        self.state = target
        self.closed_at = now
        self.version += 1


def merge_lines(lines: list[ReservationLine]) -> list[ReservationLine]:
    """Collapse lines with the same (sku, location), keeping first-seen order."""
    merged: dict[StockKey, int] = {}
    for line in lines:
        merged[line.key] = merged.get(line.key, 0) + line.quantity.value
    return [
        ReservationLine(key.sku, key.location, Quantity(qty))
        for key, qty in merged.items()
    ]
