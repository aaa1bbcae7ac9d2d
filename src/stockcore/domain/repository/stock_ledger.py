"""Abstract stock ledger: the authoritative store of StockRecords.

``apply_delta`` is the only way to change a record.  It is implemented
here once, on top of a single storage primitive that concrete stores must
make atomic per key: ``_compare_and_set``.  A row-versioned SQL update or
a key-value CAS fits the same contract.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

from stockcore.domain.clock import Clock, system_clock
from stockcore.domain.exceptions import ConflictError, NotFoundError
from stockcore.domain.messaging.publisher import EventPublisher, NullPublisher
from stockcore.domain.model.events import stock_changed
from stockcore.domain.model.stock_record import StockRecord
from stockcore.domain.model.value_objects import StockKey

logger = logging.getLogger(__name__)


class StockLedger(ABC):

    def __init__(
        self,
        publisher: EventPublisher | None = None,
        clock: Clock = system_clock,
    ) -> None:
        self._publisher = publisher or NullPublisher()
        self._clock = clock

    # --- Storage primitives ---------------------------------------------------

    @abstractmethod
    def find(self, key: StockKey) -> StockRecord | None:
        """Return the current record for a key, or None."""

    @abstractmethod
    def list_all(self) -> list[StockRecord]:
        """Return every stock record."""

    @abstractmethod
    def add(self, record: StockRecord) -> None:
        """Provision a new record. Raises ValidationError if the key exists."""

    @abstractmethod
    def _compare_and_set(
        self,
        record: StockRecord,
        expected_version: int,
        on_stored: Callable[[], None],
    ) -> bool:
        """Atomically store *record* if the stored version equals *expected_version*.

        *on_stored* must run after the write and before the per-key lock is
        released, so the next writer of that key cannot overtake it.
        Returns False, leaving the store untouched, on any mismatch.
        """

    # --- Ledger contract ------------------------------------------------------

    def get(self, sku: str, location: str) -> StockRecord:
        key = StockKey(sku, location)
        record = self.find(key)
        if record is None:
            raise NotFoundError(f"No stock record for {key}")
        return record

    def apply_delta(
        self,
        sku: str,
        location: str,
        reserved_delta: int,
        total_delta: int,
        expected_version: int,
    ) -> StockRecord:
        """Apply deltas to a record if nobody changed it since it was read.

        Raises ConflictError on a version mismatch, NotFoundError for an
        unknown key, ValidationError if the deltas would break the record's
        invariants.  Emits ``StockChanged`` on success.
        """
        current = self.get(sku, location)
        if current.version != expected_version:
            raise ConflictError(str(current.key), expected_version, current.version)

        updated = current.apply(reserved_delta, total_delta, self._clock())
        event = stock_changed(updated, reserved_delta, total_delta)

        def publish() -> None:
            logger.debug(
                "Ledger %s v%d: reserved %+d, total %+d",
                updated.key, updated.version, reserved_delta, total_delta,
            )
            self._publisher.publish(event)

        # StockChanged leaves inside the key's critical section, in version order
        if not self._compare_and_set(updated, expected_version, publish):
            latest = self.find(current.key)
            raise ConflictError(
                str(current.key),
                expected_version,
                latest.version if latest is not None else None,
            )
        return updated
