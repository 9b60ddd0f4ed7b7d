"""
Order status derivation (``commerce_kernel.domain.order_status``).

``derive_order_status`` is the only place an order's status is computed from
its items.  It is pure: it reads ``shipment_status`` from each item and
nothing else, so it accepts ORM items and plain test doubles alike.

Rules
-----
* Cancelled and returned items are inactive and do not hold the order back.
* No active items left: ``cancelled``.
* Otherwise the least-progressed active item decides: ``processing``,
  ``shipped`` or ``delivered``.
* If the least-progressed item is still ``pending`` but some other item has
  moved on, the order is ``processing``.
* If every active item is ``pending``, there is nothing to derive (None); the
  order keeps whatever status payment gave it.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from commerce_kernel.domain.statuses import (
    INACTIVE_SHIPMENT_STATUSES,
    OrderStatus,
    ShipmentStatus,
    can_transition_order,
)

SHIPMENT_RANK: dict[ShipmentStatus, int] = {
    ShipmentStatus.PENDING: 0,
    ShipmentStatus.PROCESSING: 1,
    ShipmentStatus.SHIPPED: 2,
    ShipmentStatus.DELIVERED: 3,
}

_RANK_TO_ORDER_STATUS: dict[int, OrderStatus] = {
    1: OrderStatus.PROCESSING,
    2: OrderStatus.SHIPPED,
    3: OrderStatus.DELIVERED,
}


class HasShipmentStatus(Protocol):
    shipment_status: ShipmentStatus


def derive_order_status(items: Iterable[HasShipmentStatus]) -> OrderStatus | None:
    ranks = [
        SHIPMENT_RANK[item.shipment_status]
        for item in items
        if item.shipment_status not in INACTIVE_SHIPMENT_STATUSES
    ]
    if not ranks:
        return OrderStatus.CANCELLED

    lowest = min(ranks)
    if lowest == 0:
        return OrderStatus.PROCESSING if max(ranks) > 0 else None
    return _RANK_TO_ORDER_STATUS[lowest]


def next_order_status(
    current: OrderStatus, items: Iterable[HasShipmentStatus]
) -> OrderStatus | None:
    """Derived status if it is a legal move from ``current``, else None."""
    derived = derive_order_status(items)
    if derived is None or derived == current:
        return None
    if not can_transition_order(current, derived):
        return None
    return derived
