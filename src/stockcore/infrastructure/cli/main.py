from __future__ import annotations

from pathlib import Path

import click

from stockcore.infrastructure.cli.context import AppContext
from stockcore.infrastructure.cli.event_commands import events_consume
from stockcore.infrastructure.cli.monitor_commands import monitor_scan, worker_run
from stockcore.infrastructure.cli.reservation_commands import (
    reservation_commit,
    reservation_create,
    reservation_release,
    reservation_show,
    reservation_sweep,
)
from stockcore.infrastructure.cli.stock_commands import stock_available, stock_set, stock_show
from stockcore.infrastructure.config import Settings
from stockcore.infrastructure.logging_config import configure_logging


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding the JSON data files.",
)
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR.")
@click.option("--log-json/--no-log-json", default=None, help="Emit logs as JSON lines.")
@click.pass_context
def cli(ctx: click.Context, data_dir: Path | None, log_level: str | None, log_json: bool | None) -> None:
    """stockcore: inventory reservations without overselling"""
    try:
        settings = Settings.from_env().with_overrides(
            data_dir=data_dir,
            log_level=log_level.upper() if log_level else None,
            log_json=log_json,
        )
        configure_logging(settings.log_level, settings.log_json)
    except ValueError as exc:
        raise click.UsageError(str(exc))
    ctx.obj = AppContext(settings)


@cli.group()
def stock() -> None:
    """Manage stock records."""


@cli.group()
def reservation() -> None:
    """Manage reservations."""


@cli.group()
def monitor() -> None:
    """Low-stock and expiry monitoring."""


@cli.group()
def events() -> None:
    """Consume inbound events."""


@cli.group()
def worker() -> None:
    """Background expiry sweep and stock scan."""


# Register subcommands
stock.add_command(stock_available)
stock.add_command(stock_set)
stock.add_command(stock_show)
reservation.add_command(reservation_commit)
reservation.add_command(reservation_create)
reservation.add_command(reservation_release)
reservation.add_command(reservation_show)
reservation.add_command(reservation_sweep)
monitor.add_command(monitor_scan)
events.add_command(events_consume)
worker.add_command(worker_run)
