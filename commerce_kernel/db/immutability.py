"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Inventory counters are a cache.  The stock movement log is the record they
are rebuilt from, so a movement that changes after the fact silently breaks
replay.  Orders and inventory records are never hard-deleted either: an
order is cancelled, a product record outlives the product listing.

SQLAlchemy fires events before UPDATE/DELETE statements reach the database.
The listeners below intercept them:

    session.flush()
         |
         v
    [Session.before_flush] --> _reject_deletes_before_flush() --> ImmutabilityViolationError
         |
         v
    [before_update] -------> _reject_movement_update() ------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Rule
------------------|------------------------------------------------
StockMovement     | No UPDATE, no DELETE (append-only)
InventoryRecord   | No DELETE
Order             | No DELETE
OrderItem         | No DELETE

Models are imported inline to avoid a db -> models import cycle.

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm import Session

from commerce_kernel.exceptions import ImmutabilityViolationError
from commerce_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _reject_movement_update(mapper, connection, target):
    _blocked("StockMovement", target, "UPDATE", "Stock movements are append-only")


def _delete_rules():
    from commerce_kernel.models.inventory import InventoryRecord, StockMovement
    from commerce_kernel.models.order import Order, OrderItem

    return (
        (StockMovement, "Stock movements cannot be deleted"),
        (InventoryRecord, "Inventory records are never hard-deleted"),
        (Order, "Orders are cancelled, never deleted"),
        (OrderItem, "Order items are never deleted"),
    )


def _reject_deletes_before_flush(session, flush_context, instances):
    """
    Reject deletes of protected rows before the flush plan is built.

    Mapper-level before_delete fires too late for Order: by then the unit of
    work has already scheduled the UPDATE that detaches its items.
    """
    rules = _delete_rules()
    for obj in list(session.deleted):
        for model, reason in rules:
            if isinstance(obj, model):
                _blocked(model.__name__, obj, "DELETE", reason)


def _listeners():
    from commerce_kernel.models.inventory import StockMovement

    return (
        (Session, "before_flush", _reject_deletes_before_flush),
        (StockMovement, "before_update", _reject_movement_update),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners.  Safe to call repeatedly."""
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners.  Tests only."""
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
