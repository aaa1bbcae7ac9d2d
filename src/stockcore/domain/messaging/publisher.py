"""Abstract outbound event port.

Defined in the domain layer so services can announce state changes
without knowing whether a bus, a log file or nothing is listening.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from stockcore.domain.model.events import DomainEvent


class EventPublisher(ABC):

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        """Deliver an event to every interested subscriber."""


class NullPublisher(EventPublisher):
    """Drops every event. Used when no subscriber is wired."""

    def publish(self, event: DomainEvent) -> None:
        return None
