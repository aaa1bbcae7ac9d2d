"""CLI commands for stock records."""

from __future__ import annotations

from datetime import datetime, timezone

import click

from stockcore.application.set_stock import SetStockHandler
from stockcore.domain.exceptions import DomainException
from stockcore.domain.model.value_objects import StockKey
from stockcore.infrastructure.cli.context import AppContext, pass_app


@click.command("set")
@click.option("--sku", required=True, help="Stock-keeping unit.")
@click.option("--location", required=True, help="Store or warehouse code.")
@click.option("--quantity", required=True, type=int, help="Total quantity in stock.")
@click.option("--threshold", type=int, default=None, help="Low-stock threshold (new records only).")
@click.option(
    "--expires-at",
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    default=None,
    help="Perishable batch expiry, UTC (new records only).",
)
@pass_app
def stock_set(
    app: AppContext,
    sku: str,
    location: str,
    quantity: int,
    threshold: int | None,
    expires_at: datetime | None,
) -> None:
    """Provision a stock record or set its counted total."""
    c = app.container
    handler = SetStockHandler(ledger=c.ledger, manager=c.manager)
    if expires_at is not None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    try:
        dto = handler.handle(
            sku=sku,
            location=location,
            quantity=quantity,
            low_stock_threshold=threshold,
            expires_at=expires_at,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Stock for {dto.sku}@{dto.location} set to {dto.total} (available {dto.available})")


@click.command("show")
@pass_app
def stock_show(app: AppContext) -> None:
    """Show current stock levels."""
    levels = app.container.query.list_levels()

    if not levels:
        click.echo("No stock records found.")
        return

    click.echo(
        f"{'SKU':<14} {'Location':<10} {'Total':>7} {'Reserved':>9} "
        f"{'Available':>10} {'Low@':>5} {'Expires':<10}"
    )
    click.echo("-" * 71)
    for line in levels:
        expires = line.expires_at[:10] if line.expires_at else "-"
        click.echo(
            f"{line.sku:<14} {line.location:<10} {line.total:>7} {line.reserved:>9} "
            f"{line.available:>10} {line.low_stock_threshold:>5} {expires:<10}"
        )


@click.command("available")
@click.argument("keys", nargs=-1, required=True)
@pass_app
def stock_available(app: AppContext, keys: tuple[str, ...]) -> None:
    """Show available units for one or more SKU@LOCATION keys."""
    try:
        parsed = [StockKey.parse(k) for k in keys]
        levels = app.container.query.get_available_batch(parsed)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    for key, available in levels.items():
        click.echo(f"{str(key):<25} {available:>6}")
