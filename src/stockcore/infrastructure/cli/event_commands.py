"""CLI commands for consuming inbound events."""

from __future__ import annotations

from pathlib import Path

import click

from stockcore.domain.exceptions import DomainException
from stockcore.infrastructure.cli.context import AppContext, pass_app
from stockcore.infrastructure.messaging.event_log import read_events


@click.command("consume")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@pass_app
def events_consume(app: AppContext, file: Path) -> None:
    """Feed a JSON-lines file of inbound events to the consumer.

    Events already processed are skipped, so replaying a file is safe.
    """
    try:
        events = read_events(file)
    except (ValueError, DomainException) as exc:
        raise click.ClickException(f"Cannot read {file}: {exc}")

    consumer = app.container.consumer
    processed = skipped = 0
    for event in events:
        try:
            handled = consumer.handle(event)
        except DomainException as exc:
            raise click.ClickException(
                f"Event {event.event_id} ({event.type.value}) failed: {exc}"
            )
        if handled:
            processed += 1
        else:
            skipped += 1

    click.echo(f"{processed} event(s) processed, {skipped} skipped.")
