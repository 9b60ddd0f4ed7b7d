"""
commerce_services.commerce_service -- the facade the API layer calls.

Responsibility:
    One method per storefront operation.  Each call is one unit of work:
    open a session, build a CommerceOrchestrator, run the operation,
    commit, then publish the domain events it produced.  Authorization
    for inventory and admin operations is checked here; order and
    shipment authorization lives in the kernel services.

Architecture position:
    Services -- outer shell.  Sits above commerce_kernel and
    commerce_config; nothing in the kernel imports it.

Invariants enforced:
    - Events are published only after commit; a rolled-back unit of work
      publishes nothing.
    - ``OptimisticLockError`` is retried up to ``retry_attempts`` times,
      each attempt in a fresh session.  Every other error propagates
      after rollback.
    - Non-administrators never learn whether an order or product they
      may not see exists.

Failure modes:
    - Every kernel exception, unchanged.
    - NotAuthorizedError for inventory and admin operations.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from commerce_kernel.db.engine import get_session_factory
from commerce_kernel.domain.actors import Actor
from commerce_kernel.domain.authorization import (
    RoleBasedAuthorization,
    require_administrator,
    require_order_access,
    require_supplier_access,
)
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.domain.collaborators import (
    AuthorizationProvider,
    NotificationSink,
    SettingsProvider,
)
from commerce_kernel.domain.discounts import DiscountInfo, DiscountQuote
from commerce_kernel.domain.dtos import (
    DiscountCodeView,
    InventorySnapshot,
    InventorySummary,
    OrderView,
    ReconstructionReport,
    ShipmentOutcome,
    ShipmentUpdate,
    StockMovementView,
    SupplierOrderView,
)
from commerce_kernel.domain.events import DomainEvent, EventCollector
from commerce_kernel.domain.pricing import CartLine, PriceBreakdown
from commerce_kernel.domain.statuses import (
    DiscountType,
    MovementType,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
)
from commerce_kernel.exceptions import (
    NotAuthorizedError,
    OptimisticLockError,
    OrderNotFoundError,
    ProductNotFoundError,
)
from commerce_kernel.logging_config import LogContext, get_logger
from commerce_services.commerce_orchestrator import CommerceOrchestrator
from commerce_services.notifications import LoggingNotificationSink
from commerce_services.payloads import parse_checkout_request
from commerce_services.reservation_sweeper import ReservationSweeper, SweepResult

logger = get_logger("services.commerce_service")

T = TypeVar("T")

DEFAULT_RETRY_ATTEMPTS = 3


class CommerceService:
    """
    Storefront facade.

    Contract:
        Methods take the authenticated ``Actor`` first, then typed
        arguments, and return frozen DTOs.  ``place_order`` is the one
        entry point that accepts a raw request body.

    Non-goals:
        - Does not authenticate; the Actor is trusted as given.
        - Does not deliver notifications itself; it hands events to the
          configured NotificationSink.
    """

    def __init__(
        self,
        settings: SettingsProvider,
        *,
        session_factory: Callable[[], Session] | None = None,
        clock: Clock | None = None,
        authorization: AuthorizationProvider | None = None,
        notifications: NotificationSink | None = None,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    ):
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        self._settings = settings
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or SystemClock()
        self._auth = authorization or RoleBasedAuthorization()
        self._notifications = notifications or LoggingNotificationSink()
        self._retry_attempts = retry_attempts

    @classmethod
    def from_configuration(
        cls,
        config_path: Path | str | None = None,
        **kwargs: Any,
    ) -> CommerceService:
        """Facade over the YAML site configuration (bundled default if no path)."""
        from commerce_config.bridges import YamlSettingsProvider

        provider = YamlSettingsProvider(config_path)
        kwargs.setdefault("retry_attempts", provider.configuration.retry_attempts)
        return cls(provider, **kwargs)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor: Actor | None,
        work: Callable[[CommerceOrchestrator], T],
    ) -> T:
        actor_id = actor.actor_id if actor is not None else None
        with LogContext.bind(correlation_id=str(uuid4()), actor_id=actor_id):
            attempt = 0
            while True:
                attempt += 1
                events = EventCollector()
                try:
                    result = self._attempt(work, events)
                except OptimisticLockError as exc:
                    if attempt == self._retry_attempts:
                        logger.error(
                            "operation_retries_exhausted",
                            extra={"operation": operation, "attempts": attempt},
                        )
                        raise
                    logger.warning(
                        "operation_retrying",
                        extra={
                            "operation": operation,
                            "attempt": attempt,
                            "entity_type": exc.entity_type,
                            "entity_id": exc.entity_id,
                        },
                    )
                    continue
                self._publish(events.drain())
                return result

    def _attempt(
        self, work: Callable[[CommerceOrchestrator], T], events: EventCollector
    ) -> T:
        session = self._session_factory()
        try:
            orchestrator = CommerceOrchestrator(
                session,
                self._settings,
                clock=self._clock,
                authorization=self._auth,
                events=events,
            )
            result = work(orchestrator)
            session.commit()
            return result
        except Exception:
            session.rollback()
            events.clear()
            raise
        finally:
            session.close()

    def _publish(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            try:
                self._notifications.publish(event)
            except Exception:
                # Already committed: report, do not fail the operation.
                logger.exception(
                    "notification_publish_failed",
                    extra={"event_type": event.event_type},
                )

    # ------------------------------------------------------------------
    # Authorization helpers
    # ------------------------------------------------------------------

    def _product_supplier(
        self, orch: CommerceOrchestrator, actor: Actor, product_id: str, action: str
    ) -> str:
        """Supplier of ``product_id`` once ``actor`` is allowed to act on it."""
        try:
            supplier_id = orch.ledger.supplier_of(product_id)
        except ProductNotFoundError:
            if not self._auth.is_administrator(actor):
                raise NotAuthorizedError(actor.actor_id, action) from None
            raise
        require_supplier_access(self._auth, actor, supplier_id, action)
        return supplier_id

    def _supplier_scope(self, actor: Actor, supplier_id: str | None, action: str) -> str | None:
        """Administrators may see everything; suppliers only themselves."""
        if self._auth.is_administrator(actor):
            return supplier_id
        scope = supplier_id or actor.supplier_id
        if scope is None:
            raise NotAuthorizedError(actor.actor_id, action)
        require_supplier_access(self._auth, actor, scope, action)
        return scope

    # ------------------------------------------------------------------
    # Checkout and orders
    # ------------------------------------------------------------------

    def price_cart(
        self,
        cart_lines: Sequence[CartLine],
        discount_code: str | None = None,
        *,
        as_of: datetime | None = None,
        on_invalid_discount: str = "reject",
    ) -> PriceBreakdown:
        return self._run(
            "price_cart",
            None,
            lambda o: o.pricing.price(
                cart_lines, discount_code, as_of=as_of, on_invalid_discount=on_invalid_discount
            ),
        )

    def create_order(
        self,
        actor: Actor,
        cart_lines: Sequence[CartLine],
        shipping_address: Mapping[str, Any],
        discount_code: str | None = None,
        *,
        on_invalid_discount: str = "reject",
    ) -> OrderView:
        """Check out ``cart_lines`` for the calling customer."""
        return self._run(
            "create_order",
            actor,
            lambda o: o.orders.create_order(
                actor.actor_id,
                cart_lines,
                shipping_address,
                discount_code,
                on_invalid_discount=on_invalid_discount,
            ),
        )

    def place_order(self, actor: Actor, payload: Mapping[str, Any]) -> OrderView:
        """``create_order`` from a raw checkout request body."""
        request = parse_checkout_request(payload)
        return self.create_order(
            actor,
            request.cart_lines,
            request.shipping_address,
            request.discount_code,
            on_invalid_discount=request.on_invalid_discount,
        )

    def cancel_order(self, actor: Actor, order_id: UUID, reason: str | None = None) -> OrderView:
        return self._run(
            "cancel_order", actor, lambda o: o.orders.cancel_order(order_id, actor, reason)
        )

    def mark_paid(self, order_id: UUID, payment_id: str) -> OrderView:
        return self._run("mark_paid", None, lambda o: o.orders.mark_paid(order_id, payment_id))

    def mark_payment_failed(self, order_id: UUID) -> OrderView:
        return self._run(
            "mark_payment_failed", None, lambda o: o.orders.mark_payment_failed(order_id)
        )

    def update_admin_payment_status(
        self,
        actor: Actor,
        order_id: UUID,
        new_status: PaymentStatus,
        refund_amount: int | None = None,
    ) -> OrderView:
        return self._run(
            "update_admin_payment_status",
            actor,
            lambda o: o.orders.update_admin_payment_status(
                order_id, new_status, actor, refund_amount
            ),
        )

    def get_order(self, actor: Actor, order_id: UUID) -> OrderView:
        action = "view order"

        def work(o: CommerceOrchestrator) -> OrderView:
            view = o.order_reads.find(order_id)
            if view is None:
                if not self._auth.is_administrator(actor):
                    raise NotAuthorizedError(actor.actor_id, action)
                raise OrderNotFoundError(str(order_id))
            require_order_access(self._auth, actor, view.customer_id, action)
            return view

        return self._run("get_order", actor, work)

    def customer_orders(
        self,
        actor: Actor,
        customer_id: str | None = None,
        *,
        status: OrderStatus | None = None,
        limit: int | None = None,
    ) -> list[OrderView]:
        customer_id = customer_id or actor.actor_id
        require_order_access(self._auth, actor, customer_id, "list orders")
        return self._run(
            "customer_orders",
            actor,
            lambda o: o.order_reads.customer_orders(customer_id, status=status, limit=limit),
        )

    def all_orders(
        self,
        actor: Actor,
        *,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
        placed_since: datetime | None = None,
        placed_until: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[OrderView]:
        require_administrator(self._auth, actor, "list all orders")
        return self._run(
            "all_orders",
            actor,
            lambda o: o.order_reads.all_orders(
                status=status,
                payment_status=payment_status,
                placed_since=placed_since,
                placed_until=placed_until,
                limit=limit,
                offset=offset,
            ),
        )

    def supplier_orders(
        self,
        actor: Actor,
        supplier_id: str | None = None,
        *,
        shipment_status: ShipmentStatus | None = None,
    ) -> list[SupplierOrderView]:
        scope = self._supplier_scope(actor, supplier_id, "list supplier orders")
        if scope is None:
            raise ValueError("supplier_id is required for administrators")
        return self._run(
            "supplier_orders",
            actor,
            lambda o: o.order_reads.supplier_orders(scope, shipment_status=shipment_status),
        )

    # ------------------------------------------------------------------
    # Fulfillment
    # ------------------------------------------------------------------

    def update_shipment(
        self, actor: Actor, order_id: UUID, item_id: UUID, update: ShipmentUpdate
    ) -> ShipmentOutcome:
        return self._run(
            "update_shipment",
            actor,
            lambda o: o.fulfillment.update_shipment(order_id, item_id, actor, update),
        )

    def sweep_expired_reservations(self, timeout_minutes: int | None = None) -> SweepResult:
        return self._run(
            "sweep_expired_reservations",
            Actor.system(),
            lambda o: ReservationSweeper(o).sweep(timeout_minutes),
        )

    # ------------------------------------------------------------------
    # Discounts
    # ------------------------------------------------------------------

    def validate_discount(self, code: str, as_of: datetime | None = None) -> DiscountInfo:
        return self._run("validate_discount", None, lambda o: o.discounts.validate(code, as_of))

    def quote_discount(
        self, code: str, subtotal: int, as_of: datetime | None = None
    ) -> DiscountQuote:
        return self._run(
            "quote_discount", None, lambda o: o.discounts.quote(code, subtotal, as_of)
        )

    def create_discount_code(
        self,
        actor: Actor,
        code: str,
        discount_type: DiscountType,
        value: Decimal | int,
        **options: Any,
    ) -> DiscountCodeView:
        require_administrator(self._auth, actor, "create discount code")
        return self._run(
            "create_discount_code",
            actor,
            lambda o: o.discounts.create_code(
                code, discount_type, value, created_by=actor.actor_id, **options
            ),
        )

    def activate_discount_code(self, actor: Actor, code: str) -> DiscountCodeView:
        require_administrator(self._auth, actor, "activate discount code")
        return self._run(
            "activate_discount_code", actor, lambda o: o.discounts.activate(code, actor.actor_id)
        )

    def deactivate_discount_code(self, actor: Actor, code: str) -> DiscountCodeView:
        require_administrator(self._auth, actor, "deactivate discount code")
        return self._run(
            "deactivate_discount_code",
            actor,
            lambda o: o.discounts.deactivate(code, actor.actor_id),
        )

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def list_product(
        self,
        actor: Actor,
        product_id: str,
        supplier_id: str,
        *,
        initial_stock: int = 0,
        **thresholds: Any,
    ) -> InventorySnapshot:
        require_supplier_access(self._auth, actor, supplier_id, "list product")
        return self._run(
            "list_product",
            actor,
            lambda o: o.ledger.list_product(
                product_id,
                supplier_id,
                initial_stock=initial_stock,
                performed_by=actor.actor_id,
                **thresholds,
            ),
        )

    def restock(
        self,
        actor: Actor,
        product_id: str,
        quantity: int,
        reason: str | None = None,
        *,
        as_adjustment: bool = False,
        cost: int | None = None,
        notes: str | None = None,
    ) -> InventorySnapshot:
        action = "restock product"

        def work(o: CommerceOrchestrator) -> InventorySnapshot:
            self._product_supplier(o, actor, product_id, action)
            return o.ledger.restock(
                product_id,
                quantity,
                reason,
                as_adjustment=as_adjustment,
                cost=cost,
                notes=notes,
                performed_by=actor.actor_id,
            )

        return self._run("restock", actor, work)

    def remove_stock(
        self,
        actor: Actor,
        product_id: str,
        quantity: int,
        reason: str,
        *,
        notes: str | None = None,
    ) -> InventorySnapshot:
        action = "remove stock"

        def work(o: CommerceOrchestrator) -> InventorySnapshot:
            self._product_supplier(o, actor, product_id, action)
            return o.ledger.remove_stock(
                product_id, quantity, reason, notes=notes, performed_by=actor.actor_id
            )

        return self._run("remove_stock", actor, work)

    def adjust_stock(
        self,
        actor: Actor,
        product_id: str,
        new_quantity: int,
        reason: str,
        *,
        notes: str | None = None,
    ) -> InventorySnapshot:
        action = "adjust stock"

        def work(o: CommerceOrchestrator) -> InventorySnapshot:
            self._product_supplier(o, actor, product_id, action)
            return o.ledger.adjust_stock(
                product_id, new_quantity, reason, notes=notes, performed_by=actor.actor_id
            )

        return self._run("adjust_stock", actor, work)

    def update_thresholds(self, actor: Actor, product_id: str, **thresholds: Any) -> InventorySnapshot:
        action = "update inventory thresholds"

        def work(o: CommerceOrchestrator) -> InventorySnapshot:
            self._product_supplier(o, actor, product_id, action)
            return o.ledger.update_thresholds(
                product_id, performed_by=actor.actor_id, **thresholds
            )

        return self._run("update_thresholds", actor, work)

    def get_inventory(self, actor: Actor, product_id: str) -> InventorySnapshot:
        def work(o: CommerceOrchestrator) -> InventorySnapshot:
            self._product_supplier(o, actor, product_id, "view inventory")
            return o.inventory.snapshot(product_id)

        return self._run("get_inventory", actor, work)

    def low_stock_products(
        self, actor: Actor, supplier_id: str | None = None
    ) -> list[InventorySnapshot]:
        scope = self._supplier_scope(actor, supplier_id, "view low stock")
        return self._run(
            "low_stock_products", actor, lambda o: o.inventory.low_stock_products(scope)
        )

    def stock_movement_history(
        self,
        actor: Actor,
        product_id: str,
        *,
        movement_type: MovementType | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[StockMovementView]:
        def work(o: CommerceOrchestrator) -> list[StockMovementView]:
            self._product_supplier(o, actor, product_id, "view stock movements")
            return o.inventory.movement_history(
                product_id, movement_type=movement_type, since=since, until=until, limit=limit
            )

        return self._run("stock_movement_history", actor, work)

    def supplier_movement_history(
        self,
        actor: Actor,
        supplier_id: str | None = None,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[StockMovementView]:
        scope = self._supplier_scope(actor, supplier_id, "view stock movements")
        if scope is None:
            raise ValueError("supplier_id is required for administrators")
        return self._run(
            "supplier_movement_history",
            actor,
            lambda o: o.inventory.supplier_movement_history(scope, limit=limit, offset=offset),
        )

    def inventory_summary(self, actor: Actor, supplier_id: str | None = None) -> InventorySummary:
        scope = self._supplier_scope(actor, supplier_id, "view inventory summary")
        return self._run(
            "inventory_summary", actor, lambda o: o.inventory.inventory_summary(scope)
        )

    def verify_reconstruction(self, actor: Actor, product_id: str) -> ReconstructionReport:
        require_administrator(self._auth, actor, "verify stock ledger")

        def work(o: CommerceOrchestrator) -> ReconstructionReport:
            report = o.inventory.verify_reconstruction(product_id)
            if not report.matches:
                logger.error(
                    "stock_ledger_mismatch",
                    extra={
                        "product_id": product_id,
                        "live_current_stock": report.live_current_stock,
                        "replayed_current_stock": report.replayed_current_stock,
                        "live_reserved_stock": report.live_reserved_stock,
                        "replayed_reserved_stock": report.replayed_reserved_stock,
                    },
                )
            return report

        return self._run("verify_reconstruction", actor, work)
