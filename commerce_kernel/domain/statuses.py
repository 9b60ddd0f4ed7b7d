"""
Status enums and transition tables (``commerce_kernel.domain.statuses``).

Responsibility
--------------
Single definition of every state machine in the kernel: order status,
payment status, item shipment status, stock movement type, item stock
state and discount type.  Each machine is a static ``dict`` of
``frozenset`` targets; every mutation checks it through
``require_*_transition`` before touching state.

Architecture position
---------------------
**Kernel domain layer**.  ZERO I/O.  Imported by models, services and
selectors alike.

State machines
--------------
Order::

    pending -> confirmed -> processing -> shipped -> delivered
    pending | confirmed | processing -> cancelled

    confirmed and processing may also skip forward, because a multi-supplier
    order can derive a later status in one step (e.g. the last unshipped
    item is cancelled while the others are already delivered).

Payment::

    pending -> paid -> refunded
       |         \\--> partially_refunded -> partially_refunded | refunded
       v
    failed

Shipment (per item)::

    pending -> processing -> shipped -> delivered
    pending | processing | shipped -> cancelled | returned
"""

from enum import Enum

from commerce_kernel.exceptions import InvalidStateTransitionError


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class ShipmentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class MovementType(str, Enum):
    """Kind of stock ledger entry."""

    STOCK_IN = "stock_in"        # current += q
    STOCK_OUT = "stock_out"      # current -= q (and reserved -= q when consuming)
    RESERVATION = "reservation"  # reserved += q
    RELEASE = "release"          # reserved -= q
    ADJUSTMENT = "adjustment"    # current += signed delta


class StockState(str, Enum):
    """What an order item's units currently are in the inventory ledger."""

    RESERVED = "reserved"
    CONSUMED = "consumed"
    RELEASED = "released"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


VALID_ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.CONFIRMED, OrderStatus.CANCELLED,
    }),
    OrderStatus.CONFIRMED: frozenset({
        OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PROCESSING: frozenset({
        OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.CANCELLED,
    }),
    OrderStatus.SHIPPED: frozenset({
        OrderStatus.DELIVERED,
    }),
    # Terminal
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

VALID_PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.PAID, PaymentStatus.FAILED,
    }),
    PaymentStatus.PAID: frozenset({
        PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED,
    }),
    PaymentStatus.PARTIALLY_REFUNDED: frozenset({
        PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED,
    }),
    # Terminal
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}

VALID_SHIPMENT_TRANSITIONS: dict[ShipmentStatus, frozenset[ShipmentStatus]] = {
    ShipmentStatus.PENDING: frozenset({
        ShipmentStatus.PROCESSING, ShipmentStatus.CANCELLED, ShipmentStatus.RETURNED,
    }),
    ShipmentStatus.PROCESSING: frozenset({
        ShipmentStatus.SHIPPED, ShipmentStatus.CANCELLED, ShipmentStatus.RETURNED,
    }),
    ShipmentStatus.SHIPPED: frozenset({
        ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED, ShipmentStatus.RETURNED,
    }),
    # Terminal
    ShipmentStatus.DELIVERED: frozenset(),
    ShipmentStatus.CANCELLED: frozenset(),
    ShipmentStatus.RETURNED: frozenset(),
}

# Order may only be cancelled from these states.
CANCELLABLE_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING,
})

# Statuses an order cannot reach unless payment has been captured.
PAYMENT_GATED_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED,
})

# Payment has been taken and not fully returned; fulfillment may progress.
CAPTURED_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset({
    PaymentStatus.PAID, PaymentStatus.PARTIALLY_REFUNDED,
})

# Admin overrides are restricted to the refund paths.
ADMIN_PAYMENT_TARGETS: frozenset[PaymentStatus] = frozenset({
    PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED,
})

TERMINAL_SHIPMENT_STATUSES: frozenset[ShipmentStatus] = frozenset(
    s for s, targets in VALID_SHIPMENT_TRANSITIONS.items() if not targets
)

# Item states that no longer count toward order progress.
INACTIVE_SHIPMENT_STATUSES: frozenset[ShipmentStatus] = frozenset({
    ShipmentStatus.CANCELLED, ShipmentStatus.RETURNED,
})


def can_transition_order(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in VALID_ORDER_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, requested: PaymentStatus) -> bool:
    return requested in VALID_PAYMENT_TRANSITIONS[current]


def can_transition_shipment(current: ShipmentStatus, requested: ShipmentStatus) -> bool:
    return requested in VALID_SHIPMENT_TRANSITIONS[current]


def require_order_transition(
    entity_id: str, current: OrderStatus, requested: OrderStatus
) -> None:
    if not can_transition_order(current, requested):
        raise InvalidStateTransitionError(
            "order", entity_id, current.value, requested.value
        )


def require_payment_transition(
    entity_id: str, current: PaymentStatus, requested: PaymentStatus
) -> None:
    if not can_transition_payment(current, requested):
        raise InvalidStateTransitionError(
            "payment", entity_id, current.value, requested.value
        )


def require_shipment_transition(
    entity_id: str, current: ShipmentStatus, requested: ShipmentStatus
) -> None:
    if not can_transition_shipment(current, requested):
        raise InvalidStateTransitionError(
            "shipment", entity_id, current.value, requested.value
        )
