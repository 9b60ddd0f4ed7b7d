"""
OrderEngine -- checkout and the order / payment state machines.

Responsibility:
    Turns a priced cart into a persisted order with stock reserved for
    every line, and moves orders through payment confirmation, payment
    failure, cancellation and refund overrides.

Architecture position:
    Kernel > Services.  Depends on InventoryLedger (reserve / release),
    PricingCalculator, DiscountEngine (record_usage) and SequenceService
    (order numbers).  FulfillmentCoordinator calls ``recompute_status``.

Invariants enforced:
    - Checkout atomicity: reservations, the discount use and the order
      insert share one savepoint.  Any failure rolls all of them back and
      no order row exists.
    - Lock order: order row first, then product rows in sorted product id
      order.  Checkout has no order row yet, so it starts at the products.
    - An order never moves beyond ``confirmed`` unless payment has been
      captured (``paid`` or ``partially_refunded``).
    - Every status change is checked against the tables in
      ``domain/statuses.py``.
    - Each item's stock is released at most once (``stock_state``).

Failure modes:
    - EmptyCartError, InsufficientStockError, ProductNotFoundError,
      InvalidDiscountCodeError from checkout.
    - OrderNotFoundError for unknown orders (NotAuthorizedError instead
      when the caller is not an administrator).
    - InvalidStateTransitionError, InvalidRefundAmountError.
    - OptimisticLockError on a stale order version.

Audit relevance:
    Every stock effect is a ledger movement tagged with the order and item
    ids; cancellations record who and why.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from commerce_kernel.domain.actors import Actor
from commerce_kernel.domain.authorization import require_administrator, require_order_access
from commerce_kernel.domain.clock import Clock
from commerce_kernel.domain.collaborators import AuthorizationProvider
from commerce_kernel.domain.dtos import OrderView
from commerce_kernel.domain.events import (
    EventCollector,
    OrderCancelled,
    OrderConfirmed,
    OrderCreated,
    PaymentFailed,
)
from commerce_kernel.domain.order_status import next_order_status
from commerce_kernel.domain.pricing import CartLine, PriceBreakdown, merge_quantities
from commerce_kernel.domain.statuses import (
    ADMIN_PAYMENT_TARGETS,
    CANCELLABLE_ORDER_STATUSES,
    CAPTURED_PAYMENT_STATUSES,
    PAYMENT_GATED_ORDER_STATUSES,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
    StockState,
    require_order_transition,
    require_payment_transition,
)
from commerce_kernel.exceptions import (
    EmptyCartError,
    InvalidDiscountCodeError,
    InvalidRefundAmountError,
    InvalidStateTransitionError,
    NotAuthorizedError,
    OptimisticLockError,
    OrderNotFoundError,
)
from commerce_kernel.logging_config import LogContext, get_logger
from commerce_kernel.models.order import Order, OrderItem
from commerce_kernel.services.base import BaseService
from commerce_kernel.services.discount_engine import DiscountEngine
from commerce_kernel.services.inventory_ledger import SYSTEM_ACTOR, InventoryLedger
from commerce_kernel.services.pricing_calculator import InvalidDiscountPolicy, PricingCalculator
from commerce_kernel.services.sequence_service import SequenceService

logger = get_logger("services.order_engine")

ORDER_NUMBER_FORMAT = "ORD-{:08d}"

# Item shipment states that a cancellation moves to ``cancelled``.
_UNSHIPPED = frozenset({ShipmentStatus.PENDING, ShipmentStatus.PROCESSING})


def format_order_number(sequence: int) -> str:
    return ORDER_NUMBER_FORMAT.format(sequence)


class OrderEngine(BaseService[Order]):
    """
    Order lifecycle service.

    Contract:
        Returns OrderView DTOs.  Flushes; the caller commits.

    Guarantees:
        - ``mark_paid`` and ``mark_payment_failed`` are idempotent.
        - A cancelled or failed order holds no reserved stock.

    Non-goals:
        - Does not talk to the payment gateway; the webhook adapter calls
          ``mark_paid`` / ``mark_payment_failed``.
        - Does not restock returned goods.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        ledger: InventoryLedger,
        pricing: PricingCalculator,
        discounts: DiscountEngine,
        sequences: SequenceService,
        authorization: AuthorizationProvider,
        events: EventCollector | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._ledger = ledger
        self._pricing = pricing
        self._discounts = discounts
        self._sequences = sequences
        self._auth = authorization
        self._events = events if events is not None else EventCollector()

    # ------------------------------------------------------------------
    # Order access
    # ------------------------------------------------------------------

    def lock_order(self, order_id: UUID) -> Order:
        """Load the order with ``SELECT ... FOR UPDATE``."""
        order = self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def _lock_for(self, actor: Actor, order_id: UUID, action: str) -> Order:
        try:
            order = self.lock_order(order_id)
        except OrderNotFoundError:
            if not self._auth.is_administrator(actor):
                raise NotAuthorizedError(actor.actor_id, action) from None
            raise
        require_order_access(self._auth, actor, order.customer_id, action)
        return order

    def _flush(self, order: Order) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            logger.warning("order_version_conflict", extra={"order_id": str(order.id)})
            raise OptimisticLockError("Order", str(order.id)) from exc

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_order(
        self,
        customer_id: str,
        cart_lines: Sequence[CartLine],
        shipping_address: Mapping[str, object],
        discount_code: str | None = None,
        *,
        on_invalid_discount: InvalidDiscountPolicy = "reject",
    ) -> OrderView:
        """
        Price the cart, reserve stock for every line and persist the order.

        Lines for the same product are merged into one reservation and
        products are locked in sorted id order, so two checkouts sharing
        products cannot deadlock.
        """
        if not cart_lines:
            raise EmptyCartError()
        if not customer_id:
            raise ValueError("customer_id is required")
        if not isinstance(shipping_address, Mapping):
            raise ValueError("shipping_address must be a mapping")

        now = self._clock.now()
        breakdown = self._pricing.price(
            cart_lines,
            discount_code,
            as_of=now,
            on_invalid_discount=on_invalid_discount,
        )

        order_id = uuid4()
        item_ids = [uuid4() for _ in cart_lines]
        lines_per_product = Counter(line.product_id for line in cart_lines)
        single_line_item = {
            line.product_id: item_id
            for line, item_id in zip(cart_lines, item_ids)
            if lines_per_product[line.product_id] == 1
        }

        with LogContext.bind(order_id=str(order_id), actor_id=customer_id):
            with self.session.begin_nested():
                suppliers: dict[str, str] = {}
                for product_id, quantity in merge_quantities(cart_lines):
                    snapshot = self._ledger.reserve(
                        product_id,
                        quantity,
                        order_id=order_id,
                        order_item_id=single_line_item.get(product_id),
                        performed_by=customer_id,
                    )
                    suppliers[product_id] = snapshot.supplier_id

                if breakdown.discount_code is not None:
                    breakdown = self._count_discount_use(
                        breakdown, cart_lines, now, on_invalid_discount
                    )

                sequence = self._sequences.next_value(SequenceService.ORDER_NUMBER)
                order = Order(
                    id=order_id,
                    order_number=format_order_number(sequence),
                    order_sequence=sequence,
                    customer_id=customer_id,
                    status=OrderStatus.PENDING,
                    payment_status=PaymentStatus.PENDING,
                    currency=breakdown.currency,
                    subtotal=breakdown.subtotal,
                    discount_code=breakdown.discount_code,
                    discount_amount=breakdown.discount_amount,
                    tax_rate=breakdown.tax_rate,
                    tax=breakdown.tax,
                    shipping_cost=breakdown.shipping_cost,
                    total=breakdown.total,
                    shipping_address=dict(shipping_address),
                    placed_at=now,
                    created_by_id=customer_id,
                )
                for line_number, (line, item_id) in enumerate(zip(cart_lines, item_ids), start=1):
                    order.items.append(
                        OrderItem(
                            id=item_id,
                            line_number=line_number,
                            product_id=line.product_id,
                            product_name=line.product_name,
                            supplier_id=suppliers[line.product_id],
                            quantity=line.quantity,
                            unit_price=line.unit_price,
                            line_total=line.line_total,
                            shipment_status=ShipmentStatus.PENDING,
                            stock_state=StockState.RESERVED,
                            created_by_id=customer_id,
                        )
                    )
                self.session.add(order)
                self.session.flush()

            view = order.to_view()
            logger.info(
                "order_created",
                extra={
                    "order_number": view.order_number,
                    "item_count": len(view.items),
                    "total": view.total,
                    "discount_code": view.discount_code,
                },
            )

        self._events.emit(
            OrderCreated(
                occurred_at=now,
                order_id=str(view.id),
                order_number=view.order_number,
                customer_id=customer_id,
                total=view.total,
                supplier_ids=view.supplier_ids,
            )
        )
        return view

    def _count_discount_use(
        self,
        breakdown: PriceBreakdown,
        cart_lines: Sequence[CartLine],
        now: datetime,
        on_invalid_discount: InvalidDiscountPolicy,
    ) -> PriceBreakdown:
        """
        Count one use of the breakdown's code under its row lock.

        A concurrent checkout may have taken the last use since pricing.
        Under ``ignore`` the cart is re-priced without the code.
        """
        try:
            self._discounts.record_usage(breakdown.discount_code, as_of=now)
        except InvalidDiscountCodeError as exc:
            if on_invalid_discount == "reject":
                raise
            logger.info(
                "discount_ignored",
                extra={"discount_code": exc.discount_code, "reason": exc.reason},
            )
            return self._pricing.price(cart_lines, None, as_of=now)
        return breakdown

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    def mark_paid(self, order_id: UUID, payment_id: str) -> OrderView:
        """
        Record a successful payment and confirm a pending order.

        Replaying the same ``payment_id`` is a no-op; a different id on an
        already paid order is rejected.
        """
        if not payment_id:
            raise ValueError("payment_id is required")

        with LogContext.bind(order_id=str(order_id)):
            order = self.lock_order(order_id)

            if order.payment_status is PaymentStatus.PAID and order.payment_id == payment_id:
                logger.info("payment_already_recorded", extra={"payment_id": payment_id})
                return order.to_view()
            if order.payment_status is PaymentStatus.PAID:
                raise InvalidStateTransitionError(
                    "payment",
                    str(order.id),
                    order.payment_status.value,
                    PaymentStatus.PAID.value,
                    reason="order already paid with a different payment id",
                )
            if order.status is OrderStatus.CANCELLED:
                raise InvalidStateTransitionError(
                    "payment",
                    str(order.id),
                    order.payment_status.value,
                    PaymentStatus.PAID.value,
                    reason="order is cancelled",
                )
            require_payment_transition(str(order.id), order.payment_status, PaymentStatus.PAID)

            now = self._clock.now()
            order.payment_status = PaymentStatus.PAID
            order.payment_id = payment_id
            order.paid_at = now
            order.updated_by_id = SYSTEM_ACTOR
            if order.status is OrderStatus.PENDING:
                order.status = OrderStatus.CONFIRMED
                order.confirmed_at = now
            self._flush(order)

            logger.info(
                "order_paid",
                extra={"payment_id": payment_id, "status": order.status.value},
            )
            self._events.emit(
                OrderConfirmed(
                    occurred_at=now,
                    order_id=str(order.id),
                    order_number=order.order_number,
                    payment_id=payment_id,
                )
            )
            return order.to_view()

    def mark_payment_failed(self, order_id: UUID) -> OrderView:
        """
        Record a failed payment, release the order's stock and cancel it.

        Idempotent: a second call on a failed order changes nothing.
        """
        with LogContext.bind(order_id=str(order_id)):
            order = self.lock_order(order_id)
            if order.payment_status is PaymentStatus.FAILED:
                logger.info("payment_failure_already_recorded")
                return order.to_view()
            require_payment_transition(str(order.id), order.payment_status, PaymentStatus.FAILED)

            now = self._clock.now()
            order.payment_status = PaymentStatus.FAILED
            order.updated_by_id = SYSTEM_ACTOR
            released = self._release_items(order, "payment_failed", SYSTEM_ACTOR)

            cancelled = order.status is not OrderStatus.CANCELLED
            if cancelled:
                require_order_transition(str(order.id), order.status, OrderStatus.CANCELLED)
                self._set_cancelled(order, "payment_failed")
            self._flush(order)

            logger.warning("payment_failed", extra={"released_items": len(released)})
            self._events.emit(
                PaymentFailed(
                    occurred_at=now,
                    order_id=str(order.id),
                    order_number=order.order_number,
                    released_item_ids=tuple(str(item_id) for item_id in released),
                )
            )
            if cancelled:
                self._events.emit(
                    OrderCancelled(
                        occurred_at=now,
                        order_id=str(order.id),
                        order_number=order.order_number,
                        reason="payment_failed",
                        cancelled_by=SYSTEM_ACTOR,
                    )
                )
            return order.to_view()

    def update_admin_payment_status(
        self,
        order_id: UUID,
        new_status: PaymentStatus,
        actor: Actor,
        refund_amount: int | None = None,
    ) -> OrderView:
        """
        Administrator refund override.

        ``refund_amount`` is the cumulative amount refunded so far.  It is
        required for ``partially_refunded`` and must stay below the total;
        ``refunded`` defaults it to the total.  No inventory effect.
        """
        action = "update payment status"
        require_administrator(self._auth, actor, action)

        with LogContext.bind(order_id=str(order_id), actor_id=actor.actor_id):
            order = self.lock_order(order_id)
            if new_status not in ADMIN_PAYMENT_TARGETS:
                raise InvalidStateTransitionError(
                    "payment",
                    str(order.id),
                    order.payment_status.value,
                    new_status.value,
                    reason="administrators may only record refunds",
                )
            require_payment_transition(str(order.id), order.payment_status, new_status)

            previous = order.refund_amount or 0
            if new_status is PaymentStatus.REFUNDED and refund_amount is None:
                refund_amount = order.total
            if (
                refund_amount is None
                or isinstance(refund_amount, bool)
                or not isinstance(refund_amount, int)
                or refund_amount <= previous
                or refund_amount > order.total
                or (new_status is PaymentStatus.PARTIALLY_REFUNDED and refund_amount >= order.total)
            ):
                raise InvalidRefundAmountError(str(order.id), refund_amount, order.total)

            order.payment_status = new_status
            order.refund_amount = refund_amount
            order.refunded_at = self._clock.now()
            order.updated_by_id = actor.actor_id
            self._flush(order)

            logger.info(
                "payment_status_overridden",
                extra={"payment_status": new_status.value, "refund_amount": refund_amount},
            )
            return order.to_view()

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel_order(self, order_id: UUID, actor: Actor, reason: str | None = None) -> OrderView:
        """
        Cancel an order that has not shipped in full.

        Still-reserved items are released and unshipped items cancelled;
        shipped items and consumed stock are left as they are.
        """
        with LogContext.bind(order_id=str(order_id), actor_id=actor.actor_id):
            order = self._lock_for(actor, order_id, "cancel order")
            if order.status not in CANCELLABLE_ORDER_STATUSES:
                raise InvalidStateTransitionError(
                    "order",
                    str(order.id),
                    order.status.value,
                    OrderStatus.CANCELLED.value,
                    reason=f"cannot cancel from {order.status.value}",
                )

            released = self._release_items(order, reason or "order_cancelled", actor.actor_id)
            self._set_cancelled(order, reason)
            order.updated_by_id = actor.actor_id
            self._flush(order)

            logger.info(
                "order_cancelled",
                extra={"reason": reason, "released_items": len(released)},
            )
            self._events.emit(
                OrderCancelled(
                    occurred_at=self._clock.now(),
                    order_id=str(order.id),
                    order_number=order.order_number,
                    reason=reason,
                    cancelled_by=actor.actor_id,
                )
            )
            return order.to_view()

    def _set_cancelled(self, order: Order, reason: str | None) -> None:
        order.status = OrderStatus.CANCELLED
        order.cancelled_at = self._clock.now()
        order.cancellation_reason = reason

    def _release_items(self, order: Order, reason: str, performed_by: str) -> list[UUID]:
        """Release reserved items (product id order) and cancel unshipped ones."""
        released: list[UUID] = []
        for item in sorted(order.items, key=lambda i: (i.product_id, i.line_number)):
            if item.stock_state is StockState.RESERVED:
                self._ledger.release(
                    item.product_id,
                    item.quantity,
                    reason=reason,
                    order_id=order.id,
                    order_item_id=item.id,
                    performed_by=performed_by,
                )
                item.stock_state = StockState.RELEASED
                released.append(item.id)
            if item.shipment_status in _UNSHIPPED:
                item.shipment_status = ShipmentStatus.CANCELLED
                item.updated_by_id = performed_by
        return released

    # ------------------------------------------------------------------
    # Derived status
    # ------------------------------------------------------------------

    def recompute_status(self, order: Order) -> OrderStatus | None:
        """
        Apply the status derived from the order's items.

        Returns the new status, or None if nothing changed.  The caller
        holds the order row lock.
        """
        target = next_order_status(order.status, order.items)
        if target is None:
            return None
        if (
            target in PAYMENT_GATED_ORDER_STATUSES
            and order.payment_status not in CAPTURED_PAYMENT_STATUSES
        ):
            raise InvalidStateTransitionError(
                "order",
                str(order.id),
                order.status.value,
                target.value,
                reason="order is not paid",
            )

        previous = order.status
        if target is OrderStatus.CANCELLED:
            self._set_cancelled(order, order.cancellation_reason or "all_items_cancelled")
        else:
            order.status = target
        self._flush(order)
        logger.info(
            "order_status_derived",
            extra={
                "order_id": str(order.id),
                "previous_status": previous.value,
                "status": target.value,
            },
        )
        return target
