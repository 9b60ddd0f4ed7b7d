"""
Domain events published to the NotificationSink.

Events are frozen dataclasses created inside a unit of work.  Services hand
them to an ``EventCollector``; the facade publishes the collected events
only after the transaction commits and drops them on rollback.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar


@dataclass(frozen=True)
class DomainEvent:
    event_type: ClassVar[str] = "domain_event"

    occurred_at: datetime

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["event_type"] = self.event_type
        return payload


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    event_type: ClassVar[str] = "order_created"

    order_id: str = ""
    order_number: str = ""
    customer_id: str = ""
    total: int = 0
    supplier_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class OrderConfirmed(DomainEvent):
    event_type: ClassVar[str] = "order_confirmed"

    order_id: str = ""
    order_number: str = ""
    payment_id: str = ""


@dataclass(frozen=True)
class PaymentFailed(DomainEvent):
    event_type: ClassVar[str] = "payment_failed"

    order_id: str = ""
    order_number: str = ""
    released_item_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    event_type: ClassVar[str] = "order_cancelled"

    order_id: str = ""
    order_number: str = ""
    reason: str | None = None
    cancelled_by: str | None = None


@dataclass(frozen=True)
class LowStockReached(DomainEvent):
    event_type: ClassVar[str] = "low_stock_reached"

    product_id: str = ""
    supplier_id: str = ""
    current_stock: int = 0
    min_stock_level: int = 0


@dataclass(frozen=True)
class ItemShipped(DomainEvent):
    event_type: ClassVar[str] = "item_shipped"

    order_id: str = ""
    item_id: str = ""
    supplier_id: str = ""
    carrier: str | None = None
    tracking_number: str | None = None


@dataclass(frozen=True)
class ItemDelivered(DomainEvent):
    event_type: ClassVar[str] = "item_delivered"

    order_id: str = ""
    item_id: str = ""
    supplier_id: str = ""


@dataclass
class EventCollector:
    """Per-unit-of-work event buffer."""

    events: list[DomainEvent] = field(default_factory=list)

    def emit(self, event: DomainEvent) -> None:
        self.events.append(event)

    def drain(self) -> list[DomainEvent]:
        drained, self.events = self.events, []
        return drained

    def clear(self) -> None:
        self.events.clear()

    def __len__(self) -> int:
        return len(self.events)
