"""
CommerceService facade: units of work, publication after commit,
authorization and optimistic-lock retries.

Uses ``session_factory`` (real commits, tables emptied afterwards).
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from commerce_kernel.domain.dtos import ShipmentUpdate
from commerce_kernel.domain.events import (
    LowStockReached,
    OrderCancelled,
    OrderConfirmed,
    OrderCreated,
)
from commerce_kernel.domain.statuses import (
    DiscountType,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
)
from commerce_kernel.exceptions import (
    InsufficientStockError,
    InvalidPayloadError,
    NotAuthorizedError,
    OptimisticLockError,
    OrderNotFoundError,
    ProductNotFoundError,
)
from commerce_services.commerce_service import CommerceService
from tests.conftest import SHIPPING_ADDRESS, SUPPLIER_A, SUPPLIER_B, cart


@pytest.fixture
def order(commerce_service, catalogue, customer):
    return commerce_service.create_order(
        customer, cart(("P-A", 2, 1000), ("P-B", 1, 2500)), SHIPPING_ADDRESS
    )


class TestUnitOfWork:
    def test_checkout_commits_and_publishes(self, commerce_service, order, admin, notifications):
        assert commerce_service.get_order(admin, order.id).order_number == order.order_number
        (created,) = notifications.of_type(OrderCreated)
        assert created.order_id == str(order.id)

    def test_failed_checkout_publishes_nothing(
        self, commerce_service, catalogue, customer, admin, notifications
    ):
        notifications.clear()
        with pytest.raises(InsufficientStockError):
            commerce_service.create_order(
                customer, cart(("P-A", 2, 1000), ("P-B", 50, 100)), SHIPPING_ADDRESS
            )

        assert notifications.events == []
        assert commerce_service.get_inventory(admin, "P-A").reserved_stock == 0
        assert commerce_service.customer_orders(customer) == []

    def test_events_emitted_before_a_failure_are_dropped(
        self, commerce_service, catalogue, notifications
    ):
        notifications.clear()

        def work(orch):
            orch.ledger.remove_stock("P-A", 8, "damaged")  # emits LowStockReached
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            commerce_service._run("scripted_operation", None, work)
        assert notifications.events == []

    def test_low_stock_published_after_commit(
        self, commerce_service, catalogue, supplier_a, notifications
    ):
        commerce_service.remove_stock(supplier_a, "P-A", 8, "damaged")
        (low,) = notifications.of_type(LowStockReached)
        assert low.product_id == "P-A"
        assert low.current_stock == 2

    def test_publish_failure_does_not_undo_commit(
        self, session_factory, settings_provider, deterministic_clock, admin, captured_logs
    ):
        class BrokenSink:
            def publish(self, event):
                raise ConnectionError("smtp down")

        service = CommerceService(
            settings_provider,
            session_factory=session_factory,
            clock=deterministic_clock,
            notifications=BrokenSink(),
        )
        service.list_product(admin, "P-A", SUPPLIER_A, initial_stock=10, min_stock_level=2)
        service.remove_stock(admin, "P-A", 9, "damaged")

        assert service.get_inventory(admin, "P-A").current_stock == 1
        assert any(r["message"] == "notification_publish_failed" for r in captured_logs())

    def test_retry_attempts_must_be_positive(self, settings_provider, session_factory):
        with pytest.raises(ValueError):
            CommerceService(settings_provider, session_factory=session_factory, retry_attempts=0)


class TestRetries:
    def test_optimistic_lock_conflict_is_retried(self, commerce_service, captured_logs):
        attempts = []

        def work(orch):
            attempts.append(orch.session)
            if len(attempts) < 3:
                raise OptimisticLockError("Order", "o-1")
            return "done"

        assert commerce_service._run("scripted_operation", None, work) == "done"
        assert len(attempts) == 3
        assert len({id(s) for s in attempts}) == 3
        retries = [r for r in captured_logs() if r["message"] == "operation_retrying"]
        assert [r["attempt"] for r in retries] == [1, 2]

    def test_retries_exhausted(self, commerce_service, captured_logs):
        attempts = []

        def work(orch):
            attempts.append(1)
            raise OptimisticLockError("Order", "o-1")

        with pytest.raises(OptimisticLockError):
            commerce_service._run("scripted_operation", None, work)
        assert len(attempts) == 3
        assert any(r["message"] == "operation_retries_exhausted" for r in captured_logs())

    def test_other_errors_are_not_retried(self, commerce_service):
        attempts = []

        def work(orch):
            attempts.append(1)
            raise OrderNotFoundError("o-1")

        with pytest.raises(OrderNotFoundError):
            commerce_service._run("scripted_operation", None, work)
        assert len(attempts) == 1


class TestOrders:
    def test_place_order_from_payload(self, commerce_service, catalogue, customer):
        view = commerce_service.place_order(
            customer,
            {
                "items": [{"product_id": "P-A", "quantity": "2", "unit_price": 1000}],
                "shipping_address": SHIPPING_ADDRESS,
            },
        )
        assert view.customer_id == customer.actor_id
        assert view.subtotal == 2000

    def test_bad_payload_touches_nothing(self, commerce_service, catalogue, customer, admin):
        with pytest.raises(InvalidPayloadError):
            commerce_service.place_order(customer, {"items": [], "shipping_address": {}})
        assert commerce_service.get_inventory(admin, "P-A").reserved_stock == 0

    def test_payment_and_shipment_flow(
        self, commerce_service, order, supplier_a, supplier_b, notifications
    ):
        commerce_service.mark_paid(order.id, "pay-1")
        item_a, item_b = order.items

        for status in (ShipmentStatus.PROCESSING, ShipmentStatus.SHIPPED):
            commerce_service.update_shipment(
                supplier_a, order.id, item_a.id, ShipmentUpdate(shipment_status=status)
            )
        outcome = commerce_service.update_shipment(
            supplier_b, order.id, item_b.id, ShipmentUpdate(shipment_status=ShipmentStatus.CANCELLED)
        )

        assert outcome.order_status is OrderStatus.SHIPPED
        assert len(notifications.of_type(OrderConfirmed)) == 1

    def test_customer_cannot_see_other_orders(self, commerce_service, order, other_customer):
        with pytest.raises(NotAuthorizedError):
            commerce_service.get_order(other_customer, order.id)
        with pytest.raises(NotAuthorizedError):
            commerce_service.customer_orders(other_customer, order.customer_id)

    def test_missing_order_masked_for_customers(self, commerce_service, customer, admin):
        with pytest.raises(NotAuthorizedError):
            commerce_service.get_order(customer, uuid4())
        with pytest.raises(OrderNotFoundError):
            commerce_service.get_order(admin, uuid4())

    def test_cancel_publishes(self, commerce_service, order, customer, notifications, admin):
        commerce_service.cancel_order(customer, order.id, "no longer needed")
        (cancelled,) = notifications.of_type(OrderCancelled)
        assert cancelled.reason == "no longer needed"
        assert commerce_service.get_inventory(admin, "P-B").reserved_stock == 0

    def test_admin_refund(self, commerce_service, order, admin):
        commerce_service.mark_paid(order.id, "pay-1")
        view = commerce_service.update_admin_payment_status(
            admin, order.id, PaymentStatus.REFUNDED
        )
        assert view.refund_amount == view.total

    def test_supplier_orders_scope(self, commerce_service, order, supplier_a, admin):
        (view,) = commerce_service.supplier_orders(supplier_a)
        assert [i.product_id for i in view.items] == ["P-A"]
        with pytest.raises(NotAuthorizedError):
            commerce_service.supplier_orders(supplier_a, SUPPLIER_B)
        with pytest.raises(ValueError):
            commerce_service.supplier_orders(admin)
        assert len(commerce_service.supplier_orders(admin, SUPPLIER_B)) == 1

    def test_all_orders_for_administrators(self, commerce_service, order, admin, customer):
        assert [o.id for o in commerce_service.all_orders(admin)] == [order.id]
        assert commerce_service.all_orders(admin, payment_status=PaymentStatus.PAID) == []
        commerce_service.mark_paid(order.id, "pay-1")
        paid = commerce_service.all_orders(admin, payment_status=PaymentStatus.PAID)
        assert [o.status for o in paid] == [OrderStatus.CONFIRMED]
        with pytest.raises(NotAuthorizedError):
            commerce_service.all_orders(customer)

    def test_sweep_cancels_stale_orders(
        self, commerce_service, order, deterministic_clock, admin
    ):
        deterministic_clock.advance(minutes=31)
        result = commerce_service.sweep_expired_reservations()
        assert result.cancelled_order_ids == (order.id,)
        assert commerce_service.get_order(admin, order.id).status is OrderStatus.CANCELLED


class TestInventoryAccess:
    def test_supplier_manages_own_products(self, commerce_service, catalogue, supplier_a):
        snapshot = commerce_service.restock(supplier_a, "P-A", 5, "delivery", cost=120)
        assert snapshot.current_stock == 15
        assert commerce_service.adjust_stock(supplier_a, "P-A", 12, "count").current_stock == 12
        assert (
            commerce_service.update_thresholds(supplier_a, "P-A", reorder_point=6).reorder_point
            == 6
        )
        history = commerce_service.stock_movement_history(supplier_a, "P-A")
        assert history[-1].performed_by == supplier_a.actor_id

    def test_supplier_cannot_touch_other_products(self, commerce_service, catalogue, supplier_b):
        with pytest.raises(NotAuthorizedError):
            commerce_service.restock(supplier_b, "P-A", 5, "delivery")
        with pytest.raises(NotAuthorizedError):
            commerce_service.get_inventory(supplier_b, "P-A")
        with pytest.raises(NotAuthorizedError):
            commerce_service.list_product(supplier_b, "P-NEW", SUPPLIER_A)

    def test_unknown_product_masked_for_suppliers(self, commerce_service, supplier_a, admin):
        with pytest.raises(NotAuthorizedError):
            commerce_service.restock(supplier_a, "P-NOPE", 1, "delivery")
        with pytest.raises(ProductNotFoundError):
            commerce_service.restock(admin, "P-NOPE", 1, "delivery")

    def test_customers_have_no_inventory_views(self, commerce_service, catalogue, customer):
        with pytest.raises(NotAuthorizedError):
            commerce_service.low_stock_products(customer)
        with pytest.raises(NotAuthorizedError):
            commerce_service.inventory_summary(customer)
        with pytest.raises(NotAuthorizedError):
            commerce_service.verify_reconstruction(customer, "P-A")

    def test_supplier_summary_defaults_to_own_supplier(
        self, commerce_service, catalogue, supplier_a, admin
    ):
        assert commerce_service.inventory_summary(supplier_a).total_products == 1
        assert commerce_service.inventory_summary(admin).total_products == 2

    def test_supplier_movement_feed_scope(
        self, commerce_service, order, supplier_a, supplier_b, admin
    ):
        feed = commerce_service.supplier_movement_history(supplier_a)
        assert [(m.product_id, m.sequence) for m in feed] == [("P-A", 2), ("P-A", 1)]
        assert feed[0].order_id == order.id
        assert len(commerce_service.supplier_movement_history(supplier_a, limit=1)) == 1

        with pytest.raises(NotAuthorizedError):
            commerce_service.supplier_movement_history(supplier_b, SUPPLIER_A)
        with pytest.raises(ValueError):
            commerce_service.supplier_movement_history(admin)
        assert len(commerce_service.supplier_movement_history(admin, SUPPLIER_B)) == 2

    def test_reconstruction(self, commerce_service, order, admin):
        report = commerce_service.verify_reconstruction(admin, "P-A")
        assert report.matches
        assert report.live_reserved_stock == 2


class TestDiscounts:
    def test_admin_only(self, commerce_service, customer):
        with pytest.raises(NotAuthorizedError):
            commerce_service.create_discount_code(customer, "X", DiscountType.FIXED, 100)

    def test_lifecycle(self, commerce_service, admin):
        view = commerce_service.create_discount_code(
            admin, "save20", DiscountType.PERCENTAGE, Decimal("20")
        )
        assert view.code == "SAVE20"
        assert commerce_service.quote_discount("SAVE20", 10000).discount_amount == 2000

        commerce_service.deactivate_discount_code(admin, "SAVE20")
        breakdown = commerce_service.price_cart(
            cart(("P-A", 1, 10000)), "SAVE20", on_invalid_discount="ignore"
        )
        assert breakdown.discount_rejection == "inactive"

        commerce_service.activate_discount_code(admin, "SAVE20")
        assert commerce_service.validate_discount("save20").code == "SAVE20"


def test_from_configuration_uses_bundled_defaults(session_factory, deterministic_clock):
    service = CommerceService.from_configuration(
        session_factory=session_factory, clock=deterministic_clock
    )
    breakdown = service.price_cart(cart(("P-A", 1, 10000)))
    assert breakdown.currency == "LKR"
    assert breakdown.tax == 800
