"""Application service: Reserve Stock use case.

Entry point for the Order service at checkout.  Either every line is
reserved or the call fails and nothing is held; on InsufficientStockError
the caller can drop or substitute the short lines and try again.
"""

from __future__ import annotations

from stockcore.application.dto import ReservationDTO, ReservationLineSpec, reservation_to_dto
from stockcore.domain.exceptions import ValidationError
from stockcore.domain.service.reservation_manager import ReservationManager


class ReserveStockHandler:

    def __init__(self, manager: ReservationManager) -> None:
        self._manager = manager

    def handle(self, order_ref: str, specs: list[ReservationLineSpec]) -> ReservationDTO:
        if not specs:
            raise ValidationError("Reservation must contain at least one line")
        lines = [spec.to_line() for spec in specs]
        reservation = self._manager.reserve(order_ref, lines)
        return reservation_to_dto(reservation)
