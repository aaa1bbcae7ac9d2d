"""Application service: Sweep Expired Reservations use case."""

from __future__ import annotations

from stockcore.application.dto import ReservationDTO, reservation_to_dto
from stockcore.domain.service.reservation_manager import ReservationManager


class SweepExpiredReservationsHandler:

    def __init__(self, manager: ReservationManager) -> None:
        self._manager = manager

    def handle(self) -> list[ReservationDTO]:
        return [reservation_to_dto(r) for r in self._manager.expire_due()]
