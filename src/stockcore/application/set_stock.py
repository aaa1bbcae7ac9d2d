"""Application service: Set Stock use case.

Provisions a new (SKU, location) record on behalf of the catalog, or sets
the counted total of an existing one.  Existing reservations are never
disturbed: a count below what is currently reserved is rejected.
"""

from __future__ import annotations

import logging
from datetime import datetime

from stockcore.application.dto import StockLevelDTO, stock_level_to_dto
from stockcore.domain.clock import Clock, system_clock
from stockcore.domain.exceptions import ValidationError
from stockcore.domain.model.stock_record import StockRecord
from stockcore.domain.model.value_objects import StockKey
from stockcore.domain.repository.stock_ledger import StockLedger
from stockcore.domain.service.reservation_manager import ReservationManager

logger = logging.getLogger(__name__)


class SetStockHandler:

    def __init__(
        self,
        ledger: StockLedger,
        manager: ReservationManager,
        clock: Clock = system_clock,
    ) -> None:
        self._ledger = ledger
        self._manager = manager
        self._clock = clock

    def handle(
        self,
        sku: str,
        location: str,
        quantity: int,
        low_stock_threshold: int | None = None,
        expires_at: datetime | None = None,
    ) -> StockLevelDTO:
        """Provision or recount stock for one SKU at one location."""
        if quantity < 0:
            raise ValidationError("Stock quantity cannot be negative")

        key = StockKey(sku, location)
        existing = self._ledger.find(key)
        if existing is None:
            record = StockRecord(
                sku=key.sku,
                location=key.location,
                total_stock=quantity,
                low_stock_threshold=low_stock_threshold or 0,
                expires_at=expires_at,
                last_updated=self._clock(),
            )
            self._ledger.add(record)
            logger.info("Provisioned %s with %d unit(s)", key, quantity)
            return stock_level_to_dto(record)

        # Threshold and expiry are provisioning attributes of the catalog.
        if low_stock_threshold is not None or expires_at is not None:
            raise ValidationError(
                f"Stock record {key} already exists; threshold and expiry "
                f"can only be set when it is provisioned"
            )
        record = self._manager.adjust_total(key.sku, key.location, quantity)
        logger.info("Set total for %s to %d", key, quantity)
        return stock_level_to_dto(record)
