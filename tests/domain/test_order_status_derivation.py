"""Order status derived from item shipment statuses."""

from dataclasses import dataclass

import pytest

from commerce_kernel.domain.order_status import derive_order_status, next_order_status
from commerce_kernel.domain.statuses import OrderStatus, ShipmentStatus

S = ShipmentStatus


@dataclass
class Item:
    shipment_status: ShipmentStatus


def items(*statuses):
    return [Item(s) for s in statuses]


@pytest.mark.parametrize(
    "statuses, expected",
    [
        ((S.PENDING,), None),
        ((S.PENDING, S.PENDING), None),
        ((S.PROCESSING,), OrderStatus.PROCESSING),
        ((S.SHIPPED, S.PENDING), OrderStatus.PROCESSING),
        ((S.SHIPPED, S.PROCESSING), OrderStatus.PROCESSING),
        ((S.SHIPPED, S.SHIPPED), OrderStatus.SHIPPED),
        ((S.DELIVERED, S.SHIPPED), OrderStatus.SHIPPED),
        ((S.DELIVERED, S.DELIVERED), OrderStatus.DELIVERED),
        ((S.DELIVERED, S.CANCELLED), OrderStatus.DELIVERED),
        ((S.SHIPPED, S.RETURNED), OrderStatus.SHIPPED),
        ((S.CANCELLED, S.CANCELLED), OrderStatus.CANCELLED),
        ((S.CANCELLED, S.RETURNED), OrderStatus.CANCELLED),
        ((S.PENDING, S.CANCELLED), None),
    ],
)
def test_derive_order_status(statuses, expected):
    assert derive_order_status(items(*statuses)) == expected


def test_no_items_is_cancelled():
    assert derive_order_status([]) is OrderStatus.CANCELLED


class TestNextOrderStatus:
    def test_confirmed_to_processing(self):
        assert next_order_status(
            OrderStatus.CONFIRMED, items(S.SHIPPED, S.PENDING)
        ) is OrderStatus.PROCESSING

    def test_unchanged_status_returns_none(self):
        assert next_order_status(OrderStatus.SHIPPED, items(S.SHIPPED)) is None

    def test_confirmed_may_jump_to_delivered(self):
        assert next_order_status(
            OrderStatus.CONFIRMED, items(S.DELIVERED, S.CANCELLED)
        ) is OrderStatus.DELIVERED

    def test_illegal_move_is_ignored(self):
        # A delivered order never moves back.
        assert next_order_status(OrderStatus.DELIVERED, items(S.SHIPPED)) is None

    def test_shipped_order_is_not_cancelled_by_returns(self):
        assert next_order_status(OrderStatus.SHIPPED, items(S.RETURNED)) is None
