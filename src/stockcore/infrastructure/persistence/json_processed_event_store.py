"""JSON-file-backed implementation of ProcessedEventStore.

The file maps each idempotency key to the time it was claimed.  Keys older
than ``retention`` are dropped whenever the file is rewritten, so it is
bounded by the redelivery window instead of growing forever.  A broker that
redelivers an event later than that will have it processed again.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

from stockcore.domain.clock import Clock, system_clock
from stockcore.domain.repository.processed_event_store import ProcessedEventStore
from stockcore.infrastructure.persistence.json_files import (
    ensure_file,
    exclusive,
    load_json,
    persist_json,
)

DEFAULT_RETENTION = timedelta(days=7)


class JsonProcessedEventStore(ProcessedEventStore):

    def __init__(
        self,
        file_path: Path,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Clock = system_clock,
    ) -> None:
        if retention <= timedelta(0):
            raise ValueError("retention must be positive")
        self._file_path = file_path
        self._retention = retention
        self._clock = clock
        ensure_file(self._file_path, empty="{}")

    def contains(self, key: str) -> bool:
        return key in self._live(load_json(self._file_path))

    def claim(self, key: str) -> bool:
        with exclusive(self._file_path):
            entries = self._live(load_json(self._file_path))
            if key in entries:
                return False
            entries[key] = self._clock().isoformat()
            persist_json(self._file_path, entries)
            return True

    def release(self, key: str) -> None:
        with exclusive(self._file_path):
            entries = self._live(load_json(self._file_path))
            if entries.pop(key, None) is not None:
                persist_json(self._file_path, entries)

    def _live(self, entries: dict[str, str]) -> dict[str, str]:
        cutoff = self._clock() - self._retention
        return {
            key: claimed_at
            for key, claimed_at in entries.items()
            if datetime.fromisoformat(claimed_at) > cutoff
        }
