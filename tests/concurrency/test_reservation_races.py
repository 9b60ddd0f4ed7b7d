"""
Concurrent checkouts and shipment updates through the facade.

Each worker thread runs its own unit of work (its own session).  A barrier
releases all workers at once.  On PostgreSQL the product rows are locked
with SELECT ... FOR UPDATE; on SQLite every transaction takes the write
lock with BEGIN IMMEDIATE.  Either way no product may be oversold.
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from commerce_kernel.domain.dtos import ShipmentUpdate
from commerce_kernel.domain.statuses import OrderStatus, ShipmentStatus
from commerce_kernel.exceptions import InsufficientStockError
from tests.conftest import SHIPPING_ADDRESS, SUPPLIER_A, cart

pytestmark = pytest.mark.slow_locks


def run_concurrently(calls):
    """Run zero-argument callables together; return (results, errors)."""
    barrier = Barrier(len(calls))

    def worker(call):
        barrier.wait()
        try:
            return call(), None
        except Exception as exc:  # collected for assertions
            return None, exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        outcomes = list(pool.map(worker, calls))
    results = [r for r, e in outcomes if e is None]
    errors = [e for r, e in outcomes if e is not None]
    return results, errors


def test_two_checkouts_for_the_last_units(commerce_service, admin, customer, other_customer):
    commerce_service.list_product(admin, "P-1", SUPPLIER_A, initial_stock=5)

    def checkout(actor):
        return lambda: commerce_service.create_order(
            actor, cart(("P-1", 3, 1000)), SHIPPING_ADDRESS
        )

    results, errors = run_concurrently([checkout(customer), checkout(other_customer)])

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], InsufficientStockError)
    assert errors[0].shortfall == 1
    snapshot = commerce_service.get_inventory(admin, "P-1")
    assert (snapshot.current_stock, snapshot.reserved_stock) == (5, 3)


def test_many_buyers_never_oversell(commerce_service, admin, customer):
    commerce_service.list_product(admin, "P-1", SUPPLIER_A, initial_stock=6)

    def checkout():
        return commerce_service.create_order(customer, cart(("P-1", 1, 1000)), SHIPPING_ADDRESS)

    results, errors = run_concurrently([checkout] * 10)

    assert len(results) == 6
    assert all(isinstance(e, InsufficientStockError) for e in errors)
    assert commerce_service.get_inventory(admin, "P-1").reserved_stock == 6
    assert commerce_service.verify_reconstruction(admin, "P-1").matches
    numbers = sorted(order.order_number for order in results)
    assert numbers == [f"ORD-{n:08d}" for n in range(1, 7)]


def test_opposite_cart_order_does_not_deadlock(commerce_service, catalogue, admin, customer):
    forward = cart(("P-A", 1, 1000), ("P-B", 1, 1000))
    backward = cart(("P-B", 1, 1000), ("P-A", 1, 1000))

    results, errors = run_concurrently(
        [
            lambda: commerce_service.create_order(customer, forward, SHIPPING_ADDRESS),
            lambda: commerce_service.create_order(customer, backward, SHIPPING_ADDRESS),
        ]
    )

    assert errors == []
    assert len(results) == 2
    assert commerce_service.get_inventory(admin, "P-A").reserved_stock == 2
    assert commerce_service.get_inventory(admin, "P-B").reserved_stock == 2


def test_suppliers_ship_the_same_order_at_once(
    commerce_service, catalogue, admin, customer, supplier_a, supplier_b
):
    order = commerce_service.create_order(
        customer, cart(("P-A", 2, 1000), ("P-B", 1, 2500)), SHIPPING_ADDRESS
    )
    commerce_service.mark_paid(order.id, "pay-1")
    item_a, item_b = order.items

    def ship(actor, item):
        def _ship():
            for status in (ShipmentStatus.PROCESSING, ShipmentStatus.SHIPPED):
                outcome = commerce_service.update_shipment(
                    actor, order.id, item.id, ShipmentUpdate(shipment_status=status)
                )
            return outcome

        return _ship

    results, errors = run_concurrently([ship(supplier_a, item_a), ship(supplier_b, item_b)])

    assert errors == []
    assert len(results) == 2
    final = commerce_service.get_order(admin, order.id)
    assert final.status is OrderStatus.SHIPPED
    assert commerce_service.get_inventory(admin, "P-A").current_stock == 8
    assert commerce_service.get_inventory(admin, "P-B").current_stock == 9
