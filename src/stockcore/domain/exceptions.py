"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer and the event consumer can catch them uniformly.  Each
subclass carries structured data so callers never have to parse messages.
"""

from __future__ import annotations

from dataclasses import dataclass


class DomainException(Exception):
    """Base class for all domain errors."""

    retryable = False


class ValidationError(DomainException):
    """A business rule or invariant was violated."""


class NotFoundError(DomainException):
    """A referenced stock record or reservation does not exist."""


@dataclass(frozen=True)
class Shortage:
    """One line that could not be satisfied at reserve time."""

    sku: str
    location: str
    requested: int
    available: int

    def __str__(self) -> str:
        return (
            f"{self.sku}@{self.location} "
            f"(need {self.requested}, have {self.available} available)"
        )


class InsufficientStockError(DomainException):
    """Requested quantity exceeds available stock for one or more lines."""

    def __init__(self, shortages: list[Shortage]) -> None:
        self.shortages = list(shortages)
        detail = ", ".join(str(s) for s in self.shortages)
        super().__init__(f"Insufficient stock for {detail}")


class ConflictError(DomainException):
    """Optimistic-concurrency version mismatch on a stock record.

    Raised by the ledger when ``expected_version`` no longer matches the
    stored record.  Safe to retry after re-reading the record.
    """

    retryable = True

    def __init__(
        self,
        key: str,
        expected_version: int,
        actual_version: int | None = None,
        message: str | None = None,
    ) -> None:
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            message
            or f"Version conflict on {key}: expected {expected_version}, found {actual_version}"
        )


class ReservationBusyError(ConflictError):
    """Another caller's transition of this reservation is still being applied.

    Retrying after a short wait sees that caller's outcome.
    """

    def __init__(self, reservation_id: str, state: str, version: int) -> None:
        self.reservation_id = reservation_id
        self.state = state
        super().__init__(
            f"reservation {reservation_id}",
            version,
            version,
            message=f"Reservation {reservation_id} is still settling into {state}",
        )


class InvalidStateError(DomainException):
    """Operation attempted on a reservation not in the required state."""

    def __init__(self, reservation_id: str, state: str, operation: str) -> None:
        self.reservation_id = reservation_id
        self.state = state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} reservation {reservation_id} "
            f"(current state is {state}, expected PENDING)"
        )
