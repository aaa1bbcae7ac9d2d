"""Application service: Stock Query API (read path).

Reads are served from a small cache in front of the ledger.  An entry is
trusted for at most ``max_staleness`` seconds and is dropped as soon as a
``StockChanged`` event for its key arrives, so reads are eventually
consistent.  Writes never go through here; they always hit the ledger via
the ReservationManager.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Iterable

from stockcore.application.dto import StockLevelDTO, stock_level_to_dto
from stockcore.domain.model.events import DomainEvent, EventType
from stockcore.domain.model.value_objects import StockKey
from stockcore.domain.repository.stock_ledger import StockLedger

DEFAULT_MAX_STALENESS = 1.0


class AvailabilityCache:
    """Thread-safe ``StockKey -> available_stock`` map with bounded staleness."""

    def __init__(
        self,
        max_staleness: float = DEFAULT_MAX_STALENESS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_staleness = max_staleness
        self._clock = clock
        self._entries: dict[StockKey, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def get(self, key: StockKey) -> int | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, stored_at = entry
            if self._clock() - stored_at > self._max_staleness:
                del self._entries[key]
                return None
            return value

    def put(self, key: StockKey, available: int) -> None:
        with self._lock:
            self._entries[key] = (available, self._clock())

    def invalidate(self, key: StockKey) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class StockQueryService:

    def __init__(self, ledger: StockLedger, cache: AvailabilityCache | None = None) -> None:
        self._ledger = ledger
        # an empty cache is falsy (``__len__``), so test against None
        self._cache = cache if cache is not None else AvailabilityCache()

    def get_available(self, sku: str, location: str) -> int:
        """Available units for one key. Raises NotFoundError for unknown keys."""
        key = StockKey(sku, location)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        available = self._ledger.get(key.sku, key.location).available_stock
        self._cache.put(key, available)
        return available

    def get_available_batch(
        self, keys: Iterable[StockKey | tuple[str, str]]
    ) -> dict[StockKey, int]:
        result: dict[StockKey, int] = {}
        for raw in keys:
            key = raw if isinstance(raw, StockKey) else StockKey(*raw)
            result[key] = self.get_available(key.sku, key.location)
        return result

    def list_levels(self) -> list[StockLevelDTO]:
        """Every record, straight from the ledger (uncached)."""
        records = sorted(self._ledger.list_all(), key=lambda r: (r.sku, r.location))
        return [stock_level_to_dto(r) for r in records]

    # --- Cache invalidation ---------------------------------------------------

    def on_stock_changed(self, event: DomainEvent) -> None:
        """Subscriber for ``StockChanged``: drop the cached entry for its key."""
        if event.type != EventType.STOCK_CHANGED:
            return
        self._cache.invalidate(StockKey(event.payload["sku"], event.payload["location"]))
