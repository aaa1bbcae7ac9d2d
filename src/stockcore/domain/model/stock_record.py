"""StockRecord aggregate: stock held for one SKU at one location.

Records are immutable snapshots.  The ledger is the only place that swaps
one snapshot for the next, and it does so through ``apply()`` so every
change bumps the version used for optimistic concurrency.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from stockcore.domain.clock import system_clock
from stockcore.domain.exceptions import ValidationError
from stockcore.domain.model.value_objects import StockKey


@dataclass(frozen=True)
class StockRecord:
    """Aggregate root for stock levels.

    Invariants:
    - ``0 <= reserved_stock <= total_stock``
    - ``available_stock`` is never negative
    - ``version`` only ever increases
    """

    sku: str
    location: str
    total_stock: int
    reserved_stock: int = 0
    version: int = 0
    low_stock_threshold: int = 0
    expires_at: datetime | None = None
    last_updated: datetime = field(default_factory=system_clock)

    def __post_init__(self) -> None:
        StockKey(self.sku, self.location)
        if self.total_stock < 0:
            raise ValidationError(
                f"Total stock for {self.key} cannot be negative ({self.total_stock})"
            )
        if self.reserved_stock < 0:
            raise ValidationError(
                f"Reserved stock for {self.key} cannot be negative ({self.reserved_stock})"
            )
        if self.reserved_stock > self.total_stock:
            raise ValidationError(
                f"Reserved stock for {self.key} ({self.reserved_stock}) "
                f"exceeds total stock ({self.total_stock})"
            )
        if self.low_stock_threshold < 0:
            raise ValidationError("Low-stock threshold cannot be negative")

    @property
    def key(self) -> StockKey:
        return StockKey(self.sku, self.location)

    @property
    def available_stock(self) -> int:
        return self.total_stock - self.reserved_stock

    @property
    def is_low_stock(self) -> bool:
        return self.available_stock < self.low_stock_threshold

    def expires_within(self, now: datetime, horizon: timedelta) -> bool:
        """True if the batch is already past, or inside, the expiry horizon."""
        return self.expires_at is not None and self.expires_at <= now + horizon

    def apply(self, reserved_delta: int, total_delta: int, at: datetime) -> StockRecord:
        """Return the next version of this record with the deltas applied.

        Raises ValidationError if the result would violate the invariants;
        the current record is never modified.
        """
        return replace(
            self,
            total_stock=self.total_stock + total_delta,
            reserved_stock=self.reserved_stock + reserved_delta,
            version=self.version + 1,
            last_updated=at,
        )
