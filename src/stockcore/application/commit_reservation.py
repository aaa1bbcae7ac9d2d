"""Application service: Commit Reservation use case.

Called once payment succeeds.  Safe to call twice; a commit that arrives
after the reservation was released or expired raises InvalidStateError.
"""

from __future__ import annotations

from stockcore.application.dto import ReservationDTO, reservation_to_dto
from stockcore.domain.service.reservation_manager import ReservationManager


class CommitReservationHandler:

    def __init__(self, manager: ReservationManager) -> None:
        self._manager = manager

    def handle(self, reservation_id: str) -> ReservationDTO:
        return reservation_to_dto(self._manager.commit(reservation_id))
