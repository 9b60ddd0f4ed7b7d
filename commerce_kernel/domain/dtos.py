"""
Immutable DTOs returned by services and selectors.

Services and selectors hand these frozen dataclasses to callers instead of
ORM instances, so nothing outside the kernel can mutate a row by accident.
``ShipmentUpdate`` is the one inbound value: the typed form of a supplier's
shipment request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from commerce_kernel.domain.statuses import (
    DiscountType,
    MovementType,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
    StockState,
)


@dataclass(frozen=True)
class InventorySnapshot:
    product_id: str
    supplier_id: str
    current_stock: int
    reserved_stock: int
    min_stock_level: int
    max_stock_level: int | None
    reorder_point: int | None
    reorder_quantity: int | None
    unit_cost: int | None
    movement_count: int
    last_restocked_at: datetime | None
    last_stock_out_at: datetime | None

    @property
    def available_stock(self) -> int:
        return self.current_stock - self.reserved_stock

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock_level

    @property
    def is_out_of_stock(self) -> bool:
        return self.available_stock <= 0

    @property
    def needs_reorder(self) -> bool:
        return self.reorder_point is not None and self.available_stock <= self.reorder_point


@dataclass(frozen=True)
class StockMovementView:
    id: UUID
    product_id: str
    sequence: int
    movement_type: MovementType
    quantity: int
    current_delta: int
    reserved_delta: int
    previous_stock: int
    new_stock: int
    reason: str | None
    performed_by: str
    notes: str | None
    cost: int | None
    order_id: UUID | None
    order_item_id: UUID | None
    occurred_at: datetime

    @property
    def available_delta(self) -> int:
        return self.current_delta - self.reserved_delta


@dataclass(frozen=True)
class InventorySummary:
    total_products: int
    total_units: int
    reserved_units: int
    available_units: int
    low_stock_count: int
    out_of_stock_count: int
    stock_value: int


@dataclass(frozen=True)
class ReconstructionReport:
    """Live counters next to the counters replayed from the movement log."""

    product_id: str
    live_current_stock: int
    live_reserved_stock: int
    replayed_current_stock: int
    replayed_reserved_stock: int
    movement_count: int

    @property
    def matches(self) -> bool:
        return (
            self.live_current_stock == self.replayed_current_stock
            and self.live_reserved_stock == self.replayed_reserved_stock
        )


@dataclass(frozen=True)
class DiscountCodeView:
    id: UUID
    code: str
    discount_type: DiscountType
    value: Decimal
    name: str | None
    description: str | None
    start_date: datetime | None
    end_date: datetime | None
    is_active: bool
    minimum_order_amount: int | None
    maximum_discount_amount: int | None
    usage_limit: int | None
    used_count: int


@dataclass(frozen=True)
class OrderItemView:
    id: UUID
    line_number: int
    product_id: str
    product_name: str | None
    supplier_id: str
    quantity: int
    unit_price: int
    line_total: int
    shipment_status: ShipmentStatus
    stock_state: StockState
    carrier: str | None
    tracking_number: str | None
    notes: str | None
    shipped_at: datetime | None
    delivered_at: datetime | None


@dataclass(frozen=True)
class OrderView:
    id: UUID
    order_number: str
    customer_id: str
    status: OrderStatus
    payment_status: PaymentStatus
    currency: str
    subtotal: int
    discount_code: str | None
    discount_amount: int
    tax_rate: Decimal
    tax: int
    shipping_cost: int
    total: int
    shipping_address: dict
    payment_id: str | None
    refund_amount: int | None
    cancellation_reason: str | None
    placed_at: datetime
    paid_at: datetime | None
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    refunded_at: datetime | None
    items: tuple[OrderItemView, ...]

    @property
    def supplier_ids(self) -> tuple[str, ...]:
        return tuple(sorted({item.supplier_id for item in self.items}))


@dataclass(frozen=True)
class SupplierOrderView:
    """An order as one supplier sees it: only that supplier's items."""

    order_id: UUID
    order_number: str
    status: OrderStatus
    payment_status: PaymentStatus
    placed_at: datetime
    shipping_address: dict
    items: tuple[OrderItemView, ...]

    @property
    def supplier_total(self) -> int:
        return sum(item.line_total for item in self.items)


@dataclass(frozen=True)
class ShipmentUpdate:
    """
    Supplier shipment request for one item.

    A None ``shipment_status`` is a metadata-only update.  Fields left as
    None are not changed.
    """

    shipment_status: ShipmentStatus | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    notes: str | None = None

    @property
    def is_metadata_only(self) -> bool:
        return self.shipment_status is None


@dataclass(frozen=True)
class ShipmentOutcome:
    """The updated item and the order status after the update."""

    order_id: UUID
    order_number: str
    order_status: OrderStatus
    item: OrderItemView
