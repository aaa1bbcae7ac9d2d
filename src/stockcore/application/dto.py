"""Data Transfer Objects: plain containers that cross layer boundaries.

DTOs carry data between the CLI / event layers and the application layer
without exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass

from stockcore.domain.model.reservation import Reservation
from stockcore.domain.model.stock_record import StockRecord
from stockcore.domain.model.value_objects import ReservationLine


@dataclass(frozen=True)
class ReservationLineSpec:
    """Input: what the order asked for at one location."""

    sku: str
    location: str
    quantity: int

    def to_line(self) -> ReservationLine:
        return ReservationLine.of(self.sku, self.location, self.quantity)


@dataclass(frozen=True)
class ReservationLineDTO:
    sku: str
    location: str
    quantity: int


@dataclass(frozen=True)
class ReservationDTO:
    """Output: a reservation as displayed to the caller."""

    id: str
    order_ref: str
    state: str
    lines: list[ReservationLineDTO]
    created_at: str
    expires_at: str
    closed_at: str | None


@dataclass(frozen=True)
class StockLevelDTO:
    """Output: one stock record as displayed to the caller."""

    sku: str
    location: str
    total: int
    reserved: int
    available: int
    version: int
    low_stock_threshold: int
    expires_at: str | None


# --- Mapping --------------------------------------------------------------


def reservation_to_dto(reservation: Reservation) -> ReservationDTO:
    return ReservationDTO(
        id=reservation.id,
        order_ref=reservation.order_ref,
        state=reservation.state.value,
        lines=[
            ReservationLineDTO(
                sku=line.sku,
                location=line.location,
                quantity=line.quantity.value,
            )
            for line in reservation.lines
        ],
        created_at=reservation.created_at.isoformat(),
        expires_at=reservation.expires_at.isoformat(),
        closed_at=reservation.closed_at.isoformat() if reservation.closed_at else None,
    )


def stock_level_to_dto(record: StockRecord) -> StockLevelDTO:
    return StockLevelDTO(
        sku=record.sku,
        location=record.location,
        total=record.total_stock,
        reserved=record.reserved_stock,
        available=record.available_stock,
        version=record.version,
        low_stock_threshold=record.low_stock_threshold,
        expires_at=record.expires_at.isoformat() if record.expires_at else None,
    )
