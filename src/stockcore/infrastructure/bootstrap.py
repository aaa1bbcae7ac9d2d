"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from dataclasses import dataclass

from stockcore.application.event_consumer import StockEventConsumer
from stockcore.application.stock_query import AvailabilityCache, StockQueryService
from stockcore.domain.model.events import EventType
from stockcore.domain.service.reservation_manager import ReservationManager
from stockcore.domain.service.stock_monitor import StockMonitor
from stockcore.infrastructure.config import Settings
from stockcore.infrastructure.messaging.event_bus import InProcessEventBus
from stockcore.infrastructure.messaging.event_log import JsonlEventLog
from stockcore.infrastructure.persistence.json_processed_event_store import (
    JsonProcessedEventStore,
)
from stockcore.infrastructure.persistence.json_reservation_repository import (
    JsonReservationRepository,
)
from stockcore.infrastructure.persistence.json_stock_ledger import JsonStockLedger
from stockcore.infrastructure.worker import BackgroundWorker


@dataclass
class Container:
    settings: Settings
    bus: InProcessEventBus
    event_log: JsonlEventLog
    ledger: JsonStockLedger
    reservations: JsonReservationRepository
    processed_events: JsonProcessedEventStore
    manager: ReservationManager
    monitor: StockMonitor
    query: StockQueryService
    consumer: StockEventConsumer

    def worker(self) -> BackgroundWorker:
        return BackgroundWorker(
            self.manager, self.monitor, interval=self.settings.scan_interval_seconds
        )


def build_container(settings: Settings | None = None) -> Container:
    settings = settings or Settings.from_env()
    data_dir = settings.data_dir

    bus = InProcessEventBus()
    event_log = JsonlEventLog(data_dir / "events.jsonl")
    bus.subscribe(event_log)

    ledger = JsonStockLedger(data_dir / "stock.json", publisher=bus)
    reservations = JsonReservationRepository(data_dir / "reservations.json")
    processed_events = JsonProcessedEventStore(
        data_dir / "processed_events.json", retention=settings.processed_retention
    )

    query = StockQueryService(ledger, AvailabilityCache(settings.cache_staleness))
    bus.subscribe(query.on_stock_changed, EventType.STOCK_CHANGED)

    manager = ReservationManager(
        ledger,
        reservations,
        publisher=bus,
        ttl=settings.reservation_ttl,
        retry_policy=settings.retry_policy,
    )
    monitor = StockMonitor(ledger, publisher=bus, expiry_horizon=settings.expiry_horizon)
    consumer = StockEventConsumer(manager, reservations, processed_events, publisher=bus)

    return Container(
        settings=settings,
        bus=bus,
        event_log=event_log,
        ledger=ledger,
        reservations=reservations,
        processed_events=processed_events,
        manager=manager,
        monitor=monitor,
        query=query,
        consumer=consumer,
    )
