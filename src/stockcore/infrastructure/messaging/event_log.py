"""Append-only JSON-lines log of published events.

Subscribed to the bus for every event type.  External subscribers
(notification, analytics) tail the file; it doubles as a replay source.
"""

from __future__ import annotations

import json
from pathlib import Path

from stockcore.domain.model.events import DomainEvent
from stockcore.infrastructure.persistence.json_files import exclusive


class JsonlEventLog:

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._file_path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, event: DomainEvent) -> None:
        self.append(event)

    def append(self, event: DomainEvent) -> None:
        line = json.dumps(event.to_dict(), default=str)
        with exclusive(self._file_path):
            with open(self._file_path, "a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def read_all(self) -> list[DomainEvent]:
        return read_events(self._file_path)


def read_events(path: Path) -> list[DomainEvent]:
    """Parse a JSON-lines file of events, skipping blank lines."""
    if not path.exists():
        return []
    events: list[DomainEvent] = []
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if line:
                events.append(DomainEvent.from_dict(json.loads(line)))
    return events
