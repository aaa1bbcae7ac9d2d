"""In-process event bus with at-least-once delivery to subscribers.

Publishing is serialized, so subscribers see events in publish order.  The
ledger publishes ``StockChanged`` before releasing the key it wrote, which
makes publish order the version order for any single (SKU, location).
Subscribers must not write to the ledger themselves.  A subscriber
that raises is retried with exponential backoff; once retries run out the
event is parked in ``dead_letters`` and delivery moves on to the next
subscriber.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from tenacity import Retrying, stop_after_attempt, wait_exponential

from stockcore.domain.messaging.publisher import EventPublisher
from stockcore.domain.model.events import DomainEvent, EventType

logger = logging.getLogger(__name__)

Subscriber = Callable[[DomainEvent], None]


@dataclass(frozen=True)
class DeadLetter:
    event: DomainEvent
    subscriber: str
    error: str


class InProcessEventBus(EventPublisher):

    def __init__(self, max_attempts: int = 3, base_delay: float = 0.05) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._subscriptions: list[tuple[Subscriber, frozenset[EventType]]] = []
        # Re-entrant: subscribers may publish follow-up events.
        self._lock = threading.RLock()
        self.dead_letters: list[DeadLetter] = []

    def subscribe(self, subscriber: Subscriber, *types: EventType) -> None:
        """Register *subscriber* for the given types, or for every type if none."""
        with self._lock:
            self._subscriptions.append((subscriber, frozenset(types)))

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            for subscriber, types in list(self._subscriptions):
                if types and event.type not in types:
                    continue
                self._deliver(subscriber, event)

    def _deliver(self, subscriber: Subscriber, event: DomainEvent) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._base_delay),
            reraise=True,
        )
        try:
            retrying(subscriber, event)
        except Exception as exc:
            name = getattr(subscriber, "__qualname__", repr(subscriber))
            logger.error(
                "Giving up delivering %s %s to %s after %d attempt(s)",
                event.type.value, event.event_id, name, self._max_attempts,
                exc_info=True,
            )
            self.dead_letters.append(DeadLetter(event, name, str(exc)))
