"""Background worker: periodic reservation expiry and stock scans."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from stockcore.domain.service.reservation_manager import ReservationManager
from stockcore.domain.service.stock_monitor import StockMonitor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    expired: int
    alerts: int


class BackgroundWorker:
    """Runs ``expire_due`` then ``scan`` every *interval* seconds.

    Nothing ever waits on the worker: reservations past their TTL simply
    stay PENDING until the next cycle picks them up.
    """

    def __init__(
        self,
        manager: ReservationManager,
        monitor: StockMonitor,
        interval: float = 30.0,
    ) -> None:
        self._manager = manager
        self._monitor = monitor
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> SweepResult:
        expired = self._manager.expire_due()
        alerts = self._monitor.scan()
        return SweepResult(expired=len(expired), alerts=len(alerts))

    def run_forever(self) -> None:
        logger.info("Worker started (interval %.1fs)", self._interval)
        while not self._stop.is_set():
            try:
                result = self.run_once()
                logger.debug("Cycle done: %d expired, %d alert(s)", result.expired, result.alerts)
            except Exception:
                logger.exception("Worker cycle failed")
            self._stop.wait(self._interval)
        logger.info("Worker stopped")

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="stockcore-worker", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
