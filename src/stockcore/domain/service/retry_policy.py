"""Bounded retry with exponential backoff for optimistic-concurrency conflicts."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from stockcore.domain.exceptions import ConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times, and how patiently, to retry a conflicting ledger write.

    With the defaults a write is attempted once and retried three times,
    sleeping 10ms, 40ms and 160ms in between.  Only ConflictError is
    retried; every other error surfaces immediately.
    """

    max_retries: int = 3
    base_delay: float = 0.010
    factor: float = 4.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")

    def retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=self.factor),
            retry=retry_if_exception_type(ConflictError),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
