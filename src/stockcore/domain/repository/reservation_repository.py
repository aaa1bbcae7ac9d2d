"""Abstract repository for Reservation aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from stockcore.domain.model.reservation import Reservation


class ReservationRepository(ABC):

    @abstractmethod
    def get_by_id(self, reservation_id: str) -> Reservation | None:
        """Return a reservation by its ID, or None if not found."""

    @abstractmethod
    def find_by_order_ref(self, order_ref: str) -> list[Reservation]:
        """Return every reservation for an order, oldest first."""

    @abstractmethod
    def list_expired(self, now: datetime) -> list[Reservation]:
        """Return PENDING reservations whose ``expires_at`` is at or before *now*."""

    @abstractmethod
    def add(self, reservation: Reservation) -> None:
        """Persist a new reservation."""

    @abstractmethod
    def replace(self, reservation: Reservation, expected_version: int) -> bool:
        """Store an updated reservation if the stored version still matches.

        Returns False without writing when another caller got there first.
        """
