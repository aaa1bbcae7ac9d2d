"""Application service: Release Reservation use case."""

from __future__ import annotations

from stockcore.application.dto import ReservationDTO, reservation_to_dto
from stockcore.domain.service.reservation_manager import ReservationManager


class ReleaseReservationHandler:

    def __init__(self, manager: ReservationManager) -> None:
        self._manager = manager

    def handle(self, reservation_id: str) -> ReservationDTO:
        """Return a pending reservation's stock to availability."""
        return reservation_to_dto(self._manager.release(reservation_id))
