"""Domain service: Low-Stock / Expiry Monitor.

Periodic, read-only scan over the ledger.  It never mutates a record; it
only announces records that are running low or whose perishable batch is
close to (or past) its expiry date.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from stockcore.domain.clock import Clock, system_clock
from stockcore.domain.messaging.publisher import EventPublisher, NullPublisher
from stockcore.domain.model.events import DomainEvent, expiry_alert, low_stock_alert
from stockcore.domain.repository.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY_HORIZON = timedelta(days=3)


class StockMonitor:
    """Raises LowStockAlert / ExpiryAlert events.

    An alert is raised once per record version: scanning an unchanged
    record again stays silent, while any ledger change re-arms it.
    """

    def __init__(
        self,
        ledger: StockLedger,
        publisher: EventPublisher | None = None,
        expiry_horizon: timedelta = DEFAULT_EXPIRY_HORIZON,
        clock: Clock = system_clock,
    ) -> None:
        self._ledger = ledger
        self._publisher = publisher or NullPublisher()
        self._expiry_horizon = expiry_horizon
        self._clock = clock
        self._alerted: dict[tuple[str, str], int] = {}

    def scan(self, now: datetime | None = None) -> list[DomainEvent]:
        now = now or self._clock()
        alerts: list[DomainEvent] = []

        for record in self._ledger.list_all():
            key = str(record.key)
            if record.is_low_stock and self._arm(key, "low", record.version):
                alerts.append(low_stock_alert(record))
            if record.expires_within(now, self._expiry_horizon) and self._arm(
                key, "expiry", record.version
            ):
                alerts.append(expiry_alert(record, now))

        for alert in alerts:
            self._publisher.publish(alert)
        if alerts:
            logger.info("Stock scan raised %d alert(s)", len(alerts))
        return alerts

    def _arm(self, key: str, kind: str, version: int) -> bool:
        if self._alerted.get((key, kind)) == version:
            return False
        self._alerted[(key, kind)] = version
        return True
