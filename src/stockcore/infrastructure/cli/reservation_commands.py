"""CLI commands for the Reservation aggregate."""

from __future__ import annotations

import click

from stockcore.application.commit_reservation import CommitReservationHandler
from stockcore.application.dto import ReservationDTO
from stockcore.application.release_reservation import ReleaseReservationHandler
from stockcore.application.reserve_stock import ReserveStockHandler
from stockcore.application.show_reservation import ShowReservationHandler
from stockcore.application.sweep_reservations import SweepExpiredReservationsHandler
from stockcore.domain.exceptions import DomainException, InsufficientStockError
from stockcore.infrastructure.cli.context import AppContext, parse_lines, pass_app


def _display_reservation(dto: ReservationDTO) -> None:
    """Shared formatting for displaying a reservation."""
    click.echo(f"Reservation {dto.id}  (state={dto.state})")
    click.echo(f"Order:    {dto.order_ref}")
    click.echo(f"Created:  {dto.created_at}")
    click.echo(f"Expires:  {dto.expires_at}")
    if dto.closed_at:
        click.echo(f"Closed:   {dto.closed_at}")
    click.echo()
    click.echo(f"  {'SKU':<14} {'Location':<10} {'Qty':>5}")
    click.echo(f"  {'-'*31}")
    for line in dto.lines:
        click.echo(f"  {line.sku:<14} {line.location:<10} {line.quantity:>5}")


@click.command("create")
@click.option("--order", "order_ref", required=True, help="Order reference.")
@click.option("--items", required=True, help="Items as 'SKU@LOC:Qty,SKU@LOC:Qty'.")
@pass_app
def reservation_create(app: AppContext, order_ref: str, items: str) -> None:
    """Reserve stock for an order (all lines or nothing)."""
    specs = parse_lines(items)
    handler = ReserveStockHandler(app.container.manager)

    try:
        dto = handler.handle(order_ref, specs)
    except InsufficientStockError as exc:
        click.echo("Some items are unavailable:", err=True)
        for shortage in exc.shortages:
            click.echo(f"  {shortage}", err=True)
        raise click.ClickException("Reservation rejected; nothing was reserved")
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_reservation(dto)


@click.command("commit")
@click.option("--id", "reservation_id", required=True, help="Reservation ID to commit.")
@pass_app
def reservation_commit(app: AppContext, reservation_id: str) -> None:
    """Commit a pending reservation (payment succeeded)."""
    handler = CommitReservationHandler(app.container.manager)

    try:
        dto = handler.handle(reservation_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Reservation {dto.id} {dto.state.lower()}.")


@click.command("release")
@click.option("--id", "reservation_id", required=True, help="Reservation ID to release.")
@pass_app
def reservation_release(app: AppContext, reservation_id: str) -> None:
    """Release a pending reservation back to available stock."""
    handler = ReleaseReservationHandler(app.container.manager)

    try:
        dto = handler.handle(reservation_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Reservation {dto.id} {dto.state.lower()}.")


@click.command("show")
@click.option("--id", "reservation_id", default=None, help="Reservation ID to display.")
@click.option("--order", "order_ref", default=None, help="Show every reservation of an order.")
@pass_app
def reservation_show(app: AppContext, reservation_id: str | None, order_ref: str | None) -> None:
    """Show details of a reservation, or all reservations of an order."""
    if not reservation_id and not order_ref:
        raise click.UsageError("Pass --id or --order")
    handler = ShowReservationHandler(app.container.reservations)

    try:
        dtos = [handler.handle(reservation_id)] if reservation_id else handler.for_order(order_ref)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not dtos:
        click.echo(f"No reservations for order {order_ref}.")
        return
    for i, dto in enumerate(dtos):
        if i:
            click.echo()
        _display_reservation(dto)


@click.command("sweep")
@pass_app
def reservation_sweep(app: AppContext) -> None:
    """Expire pending reservations whose TTL has passed."""
    expired = SweepExpiredReservationsHandler(app.container.manager).handle()
    for dto in expired:
        click.echo(f"Expired {dto.id} (order {dto.order_ref})")
    click.echo(f"{len(expired)} reservation(s) expired.")
