"""JSON-file-backed implementation of ReservationRepository."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from stockcore.domain.exceptions import ValidationError
from stockcore.domain.model.reservation import Reservation, ReservationState
from stockcore.domain.model.value_objects import Quantity, ReservationLine
from stockcore.domain.repository.reservation_repository import ReservationRepository
from stockcore.infrastructure.persistence.json_files import (
    ensure_file,
    exclusive,
    load_json,
    persist_json,
)


class JsonReservationRepository(ReservationRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        ensure_file(self._file_path)

    # --- ReservationRepository interface --------------------------------------

    def get_by_id(self, reservation_id: str) -> Reservation | None:
        for raw in load_json(self._file_path):
            if raw["id"] == reservation_id:
                return self._to_domain(raw)
        return None

    def find_by_order_ref(self, order_ref: str) -> list[Reservation]:
        matches = [
            self._to_domain(raw)
            for raw in load_json(self._file_path)
            if raw["order_ref"] == order_ref
        ]
        return sorted(matches, key=lambda r: r.created_at)

    def list_expired(self, now: datetime) -> list[Reservation]:
        expired = [
            self._to_domain(raw)
            for raw in load_json(self._file_path)
            if raw["state"] == ReservationState.PENDING.value
            and datetime.fromisoformat(raw["expires_at"]) <= now
        ]
        return sorted(expired, key=lambda r: r.expires_at)

    def add(self, reservation: Reservation) -> None:
        with exclusive(self._file_path):
            records = load_json(self._file_path)
            if any(raw["id"] == reservation.id for raw in records):
                raise ValidationError(f"Reservation {reservation.id} already exists")
            records.append(self._to_raw(reservation))
            persist_json(self._file_path, records)

    def replace(self, reservation: Reservation, expected_version: int) -> bool:
        with exclusive(self._file_path):
            records = load_json(self._file_path)
            for i, raw in enumerate(records):
                if raw["id"] == reservation.id:
                    if raw.get("version", 0) != expected_version:
                        return False
                    records[i] = self._to_raw(reservation)
                    persist_json(self._file_path, records)
                    return True
            return False

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(reservation: Reservation) -> dict:
        return {
            "id": reservation.id,
            "order_ref": reservation.order_ref,
            "state": reservation.state.value,
            "created_at": reservation.created_at.isoformat(),
            "expires_at": reservation.expires_at.isoformat(),
            "closed_at": reservation.closed_at.isoformat() if reservation.closed_at else None,
            "version": reservation.version,
            "settling": reservation.settling,
            "lines": [
                {
                    "sku": line.sku,
                    "location": line.location,
                    "quantity": line.quantity.value,
                }
                for line in reservation.lines
            ],
        }

    @staticmethod
    def _to_domain(raw: dict) -> Reservation:
        return Reservation(
            id=raw["id"],
            order_ref=raw["order_ref"],
            lines=[
                ReservationLine(
                    sku=line["sku"],
                    location=line["location"],
                    quantity=Quantity(line["quantity"]),
                )
                for line in raw["lines"]
            ],
            state=ReservationState(raw["state"]),
            created_at=datetime.fromisoformat(raw["created_at"]),
            expires_at=datetime.fromisoformat(raw["expires_at"]),
            closed_at=datetime.fromisoformat(raw["closed_at"]) if raw.get("closed_at") else None,
            version=raw.get("version", 0),
            settling=raw.get("settling", False),
        )
