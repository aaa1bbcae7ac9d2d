"""Value Objects shared across the domain.

Value Objects are immutable and compared by value, not identity.
They encapsulate validation so invalid values can never exist.
"""

from __future__ import annotations

from dataclasses import dataclass

from stockcore.domain.exceptions import ValidationError


@dataclass(frozen=True)
class StockKey:
    """Composite identity of a stock record: one SKU at one location."""

    sku: str
    location: str

    def __post_init__(self) -> None:
        if not isinstance(self.sku, str) or not self.sku.strip():
            raise ValidationError("SKU is required")
        if not isinstance(self.location, str) or not self.location.strip():
            raise ValidationError("Location is required")

    def __str__(self) -> str:
        return f"{self.sku}@{self.location}"

    @staticmethod
    def parse(raw: str) -> StockKey:
        """Parse ``'SKU@LOCATION'``."""
        if "@" not in raw:
            raise ValidationError(
                f"Invalid stock key '{raw}'. Expected 'SKU@LOCATION'."
            )
        sku, location = raw.rsplit("@", 1)
        return StockKey(sku.strip(), location.strip())


@dataclass(frozen=True)
class Quantity:
    """A positive integer quantity.

    Enforces the invariant that you cannot reserve zero or negative items.
    """

    value: int

    def __post_init__(self) -> None:
        # bool is an int subclass; True is not a quantity
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise ValidationError(
                f"Quantity must be an integer, got {type(self.value).__name__}"
            )
        if self.value <= 0:
            raise ValidationError("Quantity must be positive")

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ReservationLine:
    """One (SKU, location, quantity) line of a reservation request."""

    sku: str
    location: str
    quantity: Quantity

    @property
    def key(self) -> StockKey:
        return StockKey(self.sku, self.location)

    @staticmethod
    def of(sku: str, location: str, quantity: int) -> ReservationLine:
        key = StockKey(sku, location)
        return ReservationLine(key.sku, key.location, Quantity(quantity))
