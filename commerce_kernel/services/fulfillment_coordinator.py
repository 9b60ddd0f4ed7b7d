"""
FulfillmentCoordinator -- per-item shipment updates from suppliers.

Responsibility:
    Applies one supplier's shipment update to one order item: checks who
    is asking, checks the item transition, consumes or releases the item's
    reserved stock, and re-derives the order status from all its items.

Architecture position:
    Kernel > Services.  Depends on OrderEngine (order lock and
    ``recompute_status``) and InventoryLedger (consume / release).

Invariants enforced:
    - Authorization happens before anything is read back to the caller or
      written.  A non-administrator never learns whether an order or item
      exists.
    - Shipment updates on one order serialize on the order row lock.
    - First entry into ``shipped`` consumes the reservation; ``cancelled``
      or ``returned`` before shipping releases it.  Each happens at most
      once per item (``stock_state``).
    - Items progress beyond ``pending`` only once payment is captured
      (paid or partially refunded).

Failure modes:
    - NotAuthorizedError, OrderNotFoundError, OrderItemNotFoundError.
    - InvalidStateTransitionError for illegal or unpaid progressions and
      for updates to terminal items.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from commerce_kernel.domain.actors import Actor
from commerce_kernel.domain.authorization import require_supplier_access
from commerce_kernel.domain.clock import Clock
from commerce_kernel.domain.collaborators import AuthorizationProvider
from commerce_kernel.domain.dtos import ShipmentOutcome, ShipmentUpdate
from commerce_kernel.domain.events import (
    EventCollector,
    ItemDelivered,
    ItemShipped,
    OrderCancelled,
)
from commerce_kernel.domain.statuses import (
    CAPTURED_PAYMENT_STATUSES,
    INACTIVE_SHIPMENT_STATUSES,
    OrderStatus,
    ShipmentStatus,
    StockState,
    require_shipment_transition,
)
from commerce_kernel.exceptions import (
    InvalidStateTransitionError,
    NotAuthorizedError,
    OrderItemNotFoundError,
    OrderNotFoundError,
)
from commerce_kernel.logging_config import LogContext, get_logger
from commerce_kernel.models.order import Order, OrderItem
from commerce_kernel.services.base import BaseService
from commerce_kernel.services.inventory_ledger import InventoryLedger
from commerce_kernel.services.order_engine import OrderEngine

logger = get_logger("services.fulfillment_coordinator")

# Item states that count as fulfillment progress and need captured payment.
_PROGRESS_STATUSES = frozenset({
    ShipmentStatus.PROCESSING, ShipmentStatus.SHIPPED, ShipmentStatus.DELIVERED,
})


class FulfillmentCoordinator(BaseService[OrderItem]):
    """
    Shipment update service.

    Contract:
        ``update_shipment`` returns a ShipmentOutcome carrying only the
        updated item, never the other suppliers' items.

    Non-goals:
        - Returned goods are not restocked automatically; a supplier
          restocks them through the ledger after inspection.
    """

    ACTION = "update shipment"

    def __init__(
        self,
        session: Session,
        clock: Clock,
        ledger: InventoryLedger,
        orders: OrderEngine,
        authorization: AuthorizationProvider,
        events: EventCollector | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._ledger = ledger
        self._orders = orders
        self._auth = authorization
        self._events = events if events is not None else EventCollector()

    def _locate(self, actor: Actor, order_id: UUID, item_id: UUID) -> tuple[Order, OrderItem]:
        is_admin = self._auth.is_administrator(actor)
        try:
            order = self._orders.lock_order(order_id)
        except OrderNotFoundError:
            if not is_admin:
                raise NotAuthorizedError(actor.actor_id, self.ACTION) from None
            raise
        item = order.item_by_id(item_id)
        if item is None:
            if not is_admin:
                raise NotAuthorizedError(actor.actor_id, self.ACTION)
            raise OrderItemNotFoundError(str(order_id), str(item_id))
        require_supplier_access(self._auth, actor, item.supplier_id, self.ACTION)
        return order, item

    @staticmethod
    def _apply_metadata(item: OrderItem, update: ShipmentUpdate) -> None:
        if update.tracking_number is not None:
            item.tracking_number = update.tracking_number
        if update.carrier is not None:
            item.carrier = update.carrier
        if update.notes is not None:
            item.notes = update.notes

    def update_shipment(
        self,
        order_id: UUID,
        item_id: UUID,
        actor: Actor,
        update: ShipmentUpdate,
    ) -> ShipmentOutcome:
        with LogContext.bind(order_id=str(order_id), actor_id=actor.actor_id):
            order, item = self._locate(actor, order_id, item_id)
            with LogContext.bind(supplier_id=item.supplier_id):
                if update.is_metadata_only:
                    self._update_metadata(item, update, actor)
                else:
                    self._transition(order, item, update, actor)
                return ShipmentOutcome(
                    order_id=order.id,
                    order_number=order.order_number,
                    order_status=order.status,
                    item=item.to_view(),
                )

    def _update_metadata(self, item: OrderItem, update: ShipmentUpdate, actor: Actor) -> None:
        if item.is_terminal:
            raise InvalidStateTransitionError(
                "shipment",
                str(item.id),
                item.shipment_status.value,
                item.shipment_status.value,
                reason="item is in a terminal state",
            )
        self._apply_metadata(item, update)
        item.updated_by_id = actor.actor_id
        self.session.flush()
        logger.info("shipment_details_updated", extra={"item_id": str(item.id)})

    def _transition(
        self, order: Order, item: OrderItem, update: ShipmentUpdate, actor: Actor
    ) -> None:
        target = update.shipment_status
        current = item.shipment_status
        require_shipment_transition(str(item.id), current, target)
        if target in _PROGRESS_STATUSES and order.payment_status not in CAPTURED_PAYMENT_STATUSES:
            raise InvalidStateTransitionError(
                "shipment",
                str(item.id),
                current.value,
                target.value,
                reason="order is not paid",
            )

        now = self._clock.now()
        if target is ShipmentStatus.SHIPPED:
            if item.stock_state is StockState.RESERVED:
                self._ledger.consume(
                    item.product_id,
                    item.quantity,
                    order_id=order.id,
                    order_item_id=item.id,
                    performed_by=actor.actor_id,
                )
                item.stock_state = StockState.CONSUMED
            item.shipped_at = now
        elif target is ShipmentStatus.DELIVERED:
            item.delivered_at = now
        elif target in INACTIVE_SHIPMENT_STATUSES and item.stock_state is StockState.RESERVED:
            self._ledger.release(
                item.product_id,
                item.quantity,
                reason=f"item_{target.value}",
                order_id=order.id,
                order_item_id=item.id,
                performed_by=actor.actor_id,
            )
            item.stock_state = StockState.RELEASED

        item.shipment_status = target
        self._apply_metadata(item, update)
        item.updated_by_id = actor.actor_id
        self.session.flush()

        logger.info(
            "shipment_status_updated",
            extra={
                "item_id": str(item.id),
                "previous_status": current.value,
                "shipment_status": target.value,
                "stock_state": item.stock_state.value,
            },
        )

        new_order_status = self._orders.recompute_status(order)
        self._emit(order, item, target, new_order_status, actor, now)

    def _emit(
        self,
        order: Order,
        item: OrderItem,
        target: ShipmentStatus,
        new_order_status: OrderStatus | None,
        actor: Actor,
        now: datetime,
    ) -> None:
        if target is ShipmentStatus.SHIPPED:
            self._events.emit(
                ItemShipped(
                    occurred_at=now,
                    order_id=str(order.id),
                    item_id=str(item.id),
                    supplier_id=item.supplier_id,
                    carrier=item.carrier,
                    tracking_number=item.tracking_number,
                )
            )
        elif target is ShipmentStatus.DELIVERED:
            self._events.emit(
                ItemDelivered(
                    occurred_at=now,
                    order_id=str(order.id),
                    item_id=str(item.id),
                    supplier_id=item.supplier_id,
                )
            )
        if new_order_status is OrderStatus.CANCELLED:
            self._events.emit(
                OrderCancelled(
                    occurred_at=now,
                    order_id=str(order.id),
                    order_number=order.order_number,
                    reason=order.cancellation_reason,
                    cancelled_by=actor.actor_id,
                )
            )
