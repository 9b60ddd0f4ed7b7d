"""
Stock counter arithmetic (``commerce_kernel.domain.stock``).

Responsibility
--------------
Pure planning and application of stock movements against the two
counters of an inventory record.  The ledger service locks a row, asks this
module for a ``StockEffect``, applies it, and writes the effect as a movement.
Replay folds the same effects from zero, so live counters and replayed
counters are computed by one function.

Architecture position
---------------------
**Kernel domain layer**.  ZERO I/O.

Invariants enforced
-------------------
* ``0 <= reserved_stock <= current_stock`` after every applied effect.
* ``quantity`` on an effect is the unsigned magnitude; ``current_delta`` and
  ``reserved_delta`` carry the signed effect on each counter.

Failure modes
-------------
* ``InsufficientStockError`` when a reservation or unreserved stock-out
  asks for more than is available.
* ``StockInvariantViolationError`` when an effect would break the bounds.
* ``InvalidQuantityError`` for non-positive or non-integer quantities.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from commerce_kernel.domain.statuses import MovementType
from commerce_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    StockInvariantViolationError,
)


@dataclass(frozen=True)
class StockCounters:
    current_stock: int = 0
    reserved_stock: int = 0

    @property
    def available(self) -> int:
        return self.current_stock - self.reserved_stock


@dataclass(frozen=True)
class StockEffect:
    """Signed change a single movement makes to the counters."""

    movement_type: MovementType
    quantity: int
    current_delta: int
    reserved_delta: int

    @property
    def available_delta(self) -> int:
        return self.current_delta - self.reserved_delta

    @property
    def is_noop(self) -> bool:
        return self.current_delta == 0 and self.reserved_delta == 0


def require_positive_quantity(quantity: object) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantityError(quantity, "must be an integer")
    if quantity <= 0:
        raise InvalidQuantityError(quantity)
    return quantity


def check_bounds(product_id: str, current_stock: int, reserved_stock: int, reason: str) -> None:
    if current_stock < 0 or reserved_stock < 0 or reserved_stock > current_stock:
        raise StockInvariantViolationError(
            product_id=product_id,
            current_stock=current_stock,
            reserved_stock=reserved_stock,
            reason=reason,
        )


def plan_reserve(product_id: str, counters: StockCounters, quantity: int) -> StockEffect:
    require_positive_quantity(quantity)
    if counters.available < quantity:
        raise InsufficientStockError(product_id, quantity, counters.available)
    return StockEffect(MovementType.RESERVATION, quantity, 0, quantity)


def plan_release(product_id: str, counters: StockCounters, quantity: int) -> StockEffect:
    """Release up to ``quantity`` reserved units; never below zero."""
    require_positive_quantity(quantity)
    released = min(quantity, counters.reserved_stock)
    return StockEffect(MovementType.RELEASE, released, 0, -released)


def plan_consume(product_id: str, counters: StockCounters, quantity: int) -> StockEffect:
    """Turn ``quantity`` reserved units into a stock-out."""
    require_positive_quantity(quantity)
    if counters.reserved_stock < quantity:
        raise StockInvariantViolationError(
            product_id=product_id,
            current_stock=counters.current_stock - quantity,
            reserved_stock=counters.reserved_stock - quantity,
            reason=f"consume of {quantity} exceeds reserved stock",
        )
    return StockEffect(MovementType.STOCK_OUT, quantity, -quantity, -quantity)


def plan_restock(
    product_id: str,
    counters: StockCounters,
    quantity: int,
    movement_type: MovementType = MovementType.STOCK_IN,
) -> StockEffect:
    require_positive_quantity(quantity)
    if movement_type not in (MovementType.STOCK_IN, MovementType.ADJUSTMENT):
        raise ValueError(f"restock cannot record a {movement_type.value} movement")
    return StockEffect(movement_type, quantity, quantity, 0)


def plan_remove(product_id: str, counters: StockCounters, quantity: int) -> StockEffect:
    """Unreserved stock-out (damage, write-off); only available units qualify."""
    require_positive_quantity(quantity)
    if counters.available < quantity:
        raise InsufficientStockError(product_id, quantity, counters.available)
    return StockEffect(MovementType.STOCK_OUT, quantity, -quantity, 0)


def plan_adjustment(product_id: str, counters: StockCounters, new_quantity: int) -> StockEffect:
    """Set current_stock to an absolute value."""
    if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
        raise InvalidQuantityError(new_quantity, "must be an integer")
    if new_quantity < 0:
        raise InvalidQuantityError(new_quantity, "must not be negative")
    if new_quantity < counters.reserved_stock:
        raise StockInvariantViolationError(
            product_id=product_id,
            current_stock=new_quantity,
            reserved_stock=counters.reserved_stock,
            reason="adjustment below reserved stock",
        )
    delta = new_quantity - counters.current_stock
    return StockEffect(MovementType.ADJUSTMENT, abs(delta), delta, 0)


def apply_effect(product_id: str, counters: StockCounters, effect: StockEffect) -> StockCounters:
    new_current = counters.current_stock + effect.current_delta
    new_reserved = counters.reserved_stock + effect.reserved_delta
    check_bounds(
        product_id,
        new_current,
        new_reserved,
        f"{effect.movement_type.value} of {effect.quantity}",
    )
    return StockCounters(new_current, new_reserved)


def replay(product_id: str, effects: Iterable[StockEffect]) -> StockCounters:
    """Fold effects from empty counters, checking bounds at every step."""
    counters = StockCounters()
    for effect in effects:
        counters = apply_effect(product_id, counters, effect)
    return counters


def is_low(current_stock: int, min_stock_level: int) -> bool:
    return current_stock <= min_stock_level
