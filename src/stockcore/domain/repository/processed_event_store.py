"""Abstract store of idempotency keys for consumed events."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ProcessedEventStore(ABC):

    @abstractmethod
    def contains(self, key: str) -> bool:
        """True if an event with this idempotency key was already claimed."""

    @abstractmethod
    def claim(self, key: str) -> bool:
        """Atomically record *key*.

        Returns False if it was already recorded, so exactly one of several
        concurrent deliveries of the same event gets to process it.
        """

    @abstractmethod
    def release(self, key: str) -> None:
        """Forget a claim whose processing failed, so redelivery can retry it."""
