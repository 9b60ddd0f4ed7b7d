"""
Kernel Invariants Contract.

These invariants are structural law for stock, reservations and orders.
They are enforced by the ledger, the order engine, database constraints and
ORM listeners.  No site configuration value may switch them off.

This module only declares them.  Enforcement is distributed across
domain/stock.py, services/inventory_ledger.py, services/order_engine.py,
services/fulfillment_coordinator.py and db/immutability.py.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the commerce kernel."""

    STOCK_BOUNDS = "stock_bounds"
    """0 <= reserved_stock <= current_stock on every inventory record.
    Enforced by domain/stock.py before every write and by CHECK constraints."""

    NO_OVERSELL = "no_oversell"
    """Concurrent reservations never exceed available stock.  Enforced by
    row locks on the inventory record plus an optimistic version column."""

    LEDGER_REPLAY = "ledger_replay"
    """Replaying a product's movements from zero reproduces its live
    counters.  Every counter change writes exactly one movement."""

    MOVEMENT_IMMUTABILITY = "movement_immutability"
    """Stock movements are append-only.  Enforced by ORM listeners."""

    CHECKOUT_ATOMICITY = "checkout_atomicity"
    """An order is persisted with all of its reservations or with none.
    Enforced by a savepoint around reservation and order insert."""

    PAID_BEFORE_FULFILLMENT = "paid_before_fulfillment"
    """No order or item progresses past confirmed/pending until payment is
    captured (paid or partially refunded)."""

    DERIVED_ORDER_STATUS = "derived_order_status"
    """After fulfillment starts, order status is computed only by
    derive_order_status(items)."""

    EXACTLY_ONCE_STOCK_EFFECT = "exactly_once_stock_effect"
    """Each order item consumes or releases its reservation at most once,
    tracked by OrderItem.stock_state."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# Enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "commerce_services",
    "commerce_config",
)
