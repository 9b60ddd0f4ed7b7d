"""
Notification sinks.

``CommerceService`` publishes domain events to a ``NotificationSink`` after
the unit of work that produced them commits.  Email, push and webhook
delivery live behind this interface outside the kernel; the sinks here
cover logging, in-process fan-out and tests.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from commerce_kernel.domain.collaborators import NotificationSink
from commerce_kernel.domain.events import DomainEvent
from commerce_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class LoggingNotificationSink(NotificationSink):
    """Writes every event to the structured log."""

    def publish(self, event: DomainEvent) -> None:
        logger.info("domain_event_published", extra=event.to_dict())


class RecordingNotificationSink(NotificationSink):
    """Keeps published events in memory, in publication order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[DomainEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_cls: type[DomainEvent]) -> list[DomainEvent]:
        return [event for event in self.events if isinstance(event, event_cls)]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class FanOutNotificationSink(NotificationSink):
    """Publishes each event to every wrapped sink, in order."""

    def __init__(self, sinks: Iterable[NotificationSink]):
        self._sinks = tuple(sinks)

    def publish(self, event: DomainEvent) -> None:
        for sink in self._sinks:
            sink.publish(event)
