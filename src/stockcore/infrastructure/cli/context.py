"""Per-invocation CLI state shared by every command group."""

from __future__ import annotations

from functools import cached_property

import click

from stockcore.application.dto import ReservationLineSpec
from stockcore.infrastructure.bootstrap import Container, build_container
from stockcore.infrastructure.config import Settings


class AppContext:
    """Holds the resolved settings; builds the object graph on first use."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @cached_property
    def container(self) -> Container:
        return build_container(self.settings)


pass_app = click.make_pass_decorator(AppContext)


def parse_lines(raw: str) -> list[ReservationLineSpec]:
    """Parse 'SKU@LOC:3,SKU2@LOC:5' into ReservationLineSpec list."""
    specs: list[ReservationLineSpec] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair or "@" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'SKU@LOCATION:Quantity'."
            )
        key, qty_str = pair.rsplit(":", 1)
        sku, location = key.rsplit("@", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(f"Invalid quantity '{qty_str}' for '{key}'.")
        specs.append(ReservationLineSpec(sku=sku.strip(), location=location.strip(), quantity=qty))
    return specs
