"""CLI commands for the low-stock / expiry monitor and the background worker."""

from __future__ import annotations

import click

from stockcore.domain.model.events import EventType
from stockcore.infrastructure.cli.context import AppContext, pass_app


@click.command("scan")
@pass_app
def monitor_scan(app: AppContext) -> None:
    """Scan stock once and print low-stock and expiry alerts."""
    alerts = app.container.monitor.scan()

    if not alerts:
        click.echo("No alerts.")
        return

    for alert in alerts:
        p = alert.payload
        if alert.type == EventType.LOW_STOCK_ALERT:
            click.echo(
                f"LOW     {alert.key:<25} available {p['available_stock']} "
                f"< threshold {p['low_stock_threshold']}"
            )
        else:
            status = "expired" if p["already_expired"] else "expires"
            click.echo(f"EXPIRY  {alert.key:<25} {status} {p['expires_at']}")


@click.command("run")
@click.option("--once", is_flag=True, default=False, help="Run a single cycle and exit.")
@pass_app
def worker_run(app: AppContext, once: bool) -> None:
    """Run the expiry sweep and stock scan periodically."""
    worker = app.container.worker()

    if once:
        result = worker.run_once()
        click.echo(f"{result.expired} reservation(s) expired, {result.alerts} alert(s) raised.")
        return

    click.echo(f"Worker running every {app.settings.scan_interval_seconds:g}s (Ctrl+C to stop)")
    try:
        worker.run_forever()
    except KeyboardInterrupt:
        worker.stop()
