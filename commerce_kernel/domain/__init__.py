"""
Pure domain layer.

Value objects, state machines and arithmetic for stock, discounts, pricing
and order status, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (except SystemClock)
- I/O
"""

from commerce_kernel.domain.actors import Actor, ActorRole
from commerce_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from commerce_kernel.domain.order_status import derive_order_status
from commerce_kernel.domain.pricing import CartLine, PriceBreakdown
from commerce_kernel.domain.statuses import (
    DiscountType,
    MovementType,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
    StockState,
)

__all__ = [
    "Actor",
    "ActorRole",
    "CartLine",
    "Clock",
    "DeterministicClock",
    "DiscountType",
    "MovementType",
    "OrderStatus",
    "PaymentStatus",
    "PriceBreakdown",
    "ShipmentStatus",
    "StockState",
    "SystemClock",
    "derive_order_status",
]
