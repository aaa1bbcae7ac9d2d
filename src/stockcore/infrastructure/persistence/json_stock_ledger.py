"""JSON-file-backed implementation of StockLedger.

The version check and the write happen under one exclusive file lock, so
``_compare_and_set`` is atomic for every process sharing the data file.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable

from stockcore.domain.clock import Clock, system_clock
from stockcore.domain.exceptions import ValidationError
from stockcore.domain.messaging.publisher import EventPublisher
from stockcore.domain.model.stock_record import StockRecord
from stockcore.domain.model.value_objects import StockKey
from stockcore.domain.repository.stock_ledger import StockLedger
from stockcore.infrastructure.persistence.json_files import (
    ensure_file,
    exclusive,
    load_json,
    persist_json,
)


class JsonStockLedger(StockLedger):

    def __init__(
        self,
        file_path: Path,
        publisher: EventPublisher | None = None,
        clock: Clock = system_clock,
    ) -> None:
        super().__init__(publisher, clock)
        self._file_path = file_path
        ensure_file(self._file_path)

    # --- StockLedger interface ------------------------------------------------

    def find(self, key: StockKey) -> StockRecord | None:
        for raw in load_json(self._file_path):
            if raw["sku"] == key.sku and raw["location"] == key.location:
                return self._to_domain(raw)
        return None

    def list_all(self) -> list[StockRecord]:
        return [self._to_domain(raw) for raw in load_json(self._file_path)]

    def add(self, record: StockRecord) -> None:
        with exclusive(self._file_path):
            records = load_json(self._file_path)
            if self._index_of(records, record.key) is not None:
                raise ValidationError(f"Stock record {record.key} already exists")
            records.append(self._to_raw(record))
            persist_json(self._file_path, records)

    def _compare_and_set(
        self,
        record: StockRecord,
        expected_version: int,
        on_stored: Callable[[], None],
    ) -> bool:
        with exclusive(self._file_path):
            records = load_json(self._file_path)
            index = self._index_of(records, record.key)
            if index is None or records[index]["version"] != expected_version:
                return False
            records[index] = self._to_raw(record)
            persist_json(self._file_path, records)
            on_stored()
            return True

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _index_of(records: list[dict], key: StockKey) -> int | None:
        for i, raw in enumerate(records):
            if raw["sku"] == key.sku and raw["location"] == key.location:
                return i
        return None

    @staticmethod
    def _to_raw(record: StockRecord) -> dict:
        return {
            "sku": record.sku,
            "location": record.location,
            "total_stock": record.total_stock,
            "reserved_stock": record.reserved_stock,
            "version": record.version,
            "low_stock_threshold": record.low_stock_threshold,
            "expires_at": record.expires_at.isoformat() if record.expires_at else None,
            "last_updated": record.last_updated.isoformat(),
        }

    @staticmethod
    def _to_domain(raw: dict) -> StockRecord:
        return StockRecord(
            sku=raw["sku"],
            location=raw["location"],
            total_stock=raw["total_stock"],
            reserved_stock=raw.get("reserved_stock", 0),
            version=raw.get("version", 0),
            low_stock_threshold=raw.get("low_stock_threshold", 0),
            expires_at=datetime.fromisoformat(raw["expires_at"]) if raw.get("expires_at") else None,
            last_updated=datetime.fromisoformat(raw["last_updated"]),
        )
