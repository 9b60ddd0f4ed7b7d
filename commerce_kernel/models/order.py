"""
Module: commerce_kernel.models.order
Responsibility: ORM persistence for orders and their items.
Architecture position: Kernel > Models.  May import from db/ and the
    domain value objects (statuses, DTOs) only.

Invariants enforced:
    - order_number and order_sequence are unique; both come from the
      "order_number" sequence and are never reused.
    - Amounts are non-negative minor units; discount never exceeds subtotal.
    - status / payment_status / shipment_status / stock_state only hold
      values of their enums (CHECK constraints from non-native enums).
    - Orders and items are never deleted (db/immutability.py).
    - Concurrent writers on one order are detected through version_id_col;
      fulfillment additionally locks the order row.

Failure modes:
    - IntegrityError on duplicate order_number or (order_id, line_number).
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commerce_kernel.db.base import TrackedBase, UUIDString
from commerce_kernel.db.types import (
    Currency,
    ExternalId,
    LongText,
    MinorUnits,
    Quantity,
    Rate,
    ShortText,
    status_column_type,
)
from commerce_kernel.domain.dtos import OrderItemView, OrderView
from commerce_kernel.domain.statuses import (
    TERMINAL_SHIPMENT_STATUSES,
    OrderStatus,
    PaymentStatus,
    ShipmentStatus,
    StockState,
)


class Order(TrackedBase):
    """
    Order aggregate root.

    Contract:
        Priced once at creation; the discount code and amount, tax rate and
        currency are frozen copies, never live references.  Status moves only
        through OrderEngine and FulfillmentCoordinator, both of which check
        the transition tables in domain/statuses.py.

    Non-goals:
        - Does not store payment card or gateway details beyond payment_id.
    """

    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_order_subtotal_non_negative"),
        CheckConstraint(
            "discount_amount >= 0 AND discount_amount <= subtotal",
            name="ck_order_discount_within_subtotal",
        ),
        CheckConstraint("tax >= 0", name="ck_order_tax_non_negative"),
        CheckConstraint("shipping_cost >= 0", name="ck_order_shipping_non_negative"),
        CheckConstraint("total >= 0", name="ck_order_total_non_negative"),
        CheckConstraint(
            "refund_amount IS NULL OR (refund_amount > 0 AND refund_amount <= total)",
            name="ck_order_refund_within_total",
        ),
        Index("idx_order_customer", "customer_id"),
        Index("idx_order_status", "status"),
        Index("idx_order_payment_status", "payment_status", "placed_at"),
    )

    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    order_sequence: Mapped[int] = mapped_column(nullable=False, unique=True)
    customer_id: Mapped[ExternalId] = mapped_column(nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        status_column_type(OrderStatus, "order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        status_column_type(PaymentStatus, "payment_status"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )

    # Price snapshot
    currency: Mapped[Currency] = mapped_column(nullable=False)
    subtotal: Mapped[MinorUnits] = mapped_column(nullable=False)
    discount_code: Mapped[ExternalId | None] = mapped_column(nullable=True)
    discount_amount: Mapped[MinorUnits] = mapped_column(nullable=False, default=0)
    tax_rate: Mapped[Rate] = mapped_column(nullable=False)
    tax: Mapped[MinorUnits] = mapped_column(nullable=False)
    shipping_cost: Mapped[MinorUnits] = mapped_column(nullable=False)
    total: Mapped[MinorUnits] = mapped_column(nullable=False)

    shipping_address: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Payment
    payment_id: Mapped[ExternalId | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    refund_amount: Mapped[MinorUnits | None] = mapped_column(nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Lifecycle timestamps
    placed_at: Mapped[datetime] = mapped_column(nullable=False)
    confirmed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[ShortText | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    items: Mapped[list[OrderItem]] = relationship(
        back_populates="order",
        order_by="OrderItem.line_number",
        lazy="selectin",
        cascade="save-update, merge",
    )

    __mapper_args__ = {"version_id_col": version}

    def item_by_id(self, item_id: UUID) -> OrderItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_view(self) -> OrderView:
        return OrderView(
            id=self.id,
            order_number=self.order_number,
            customer_id=self.customer_id,
            status=self.status,
            payment_status=self.payment_status,
            currency=self.currency,
            subtotal=self.subtotal,
            discount_code=self.discount_code,
            discount_amount=self.discount_amount,
            tax_rate=self.tax_rate,
            tax=self.tax,
            shipping_cost=self.shipping_cost,
            total=self.total,
            shipping_address=dict(self.shipping_address),
            payment_id=self.payment_id,
            refund_amount=self.refund_amount,
            cancellation_reason=self.cancellation_reason,
            placed_at=self.placed_at,
            paid_at=self.paid_at,
            confirmed_at=self.confirmed_at,
            cancelled_at=self.cancelled_at,
            refunded_at=self.refunded_at,
            items=tuple(item.to_view() for item in self.items),
        )

    def __repr__(self) -> str:
        return (
            f"<Order {self.order_number} status={self.status.value} "
            f"payment={self.payment_status.value} total={self.total}>"
        )


class OrderItem(TrackedBase):
    """
    One product line of an order, fulfilled by a single supplier.

    ``stock_state`` records what the line's units are in the inventory
    ledger (reserved, consumed or released) so that consume and release
    happen at most once per item.
    """

    __tablename__ = "order_items"

    __table_args__ = (
        UniqueConstraint("order_id", "line_number", name="uq_order_item_line"),
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_item_price_non_negative"),
        Index("idx_order_item_supplier", "supplier_id"),
        Index("idx_order_item_product", "product_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(nullable=False)

    product_id: Mapped[ExternalId] = mapped_column(nullable=False)
    product_name: Mapped[ShortText | None] = mapped_column(nullable=True)
    supplier_id: Mapped[ExternalId] = mapped_column(nullable=False)

    quantity: Mapped[Quantity] = mapped_column(nullable=False)
    unit_price: Mapped[MinorUnits] = mapped_column(nullable=False)
    line_total: Mapped[MinorUnits] = mapped_column(nullable=False)

    shipment_status: Mapped[ShipmentStatus] = mapped_column(
        status_column_type(ShipmentStatus, "shipment_status"),
        nullable=False,
        default=ShipmentStatus.PENDING,
    )
    stock_state: Mapped[StockState] = mapped_column(
        status_column_type(StockState, "stock_state"),
        nullable=False,
        default=StockState.RESERVED,
    )

    carrier: Mapped[ShortText | None] = mapped_column(nullable=True)
    tracking_number: Mapped[ShortText | None] = mapped_column(nullable=True)
    notes: Mapped[LongText | None] = mapped_column(nullable=True)

    shipped_at: Mapped[datetime | None] = mapped_column(nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)

    order: Mapped[Order] = relationship(back_populates="items")

    @property
    def is_terminal(self) -> bool:
        return self.shipment_status in TERMINAL_SHIPMENT_STATUSES

    def to_view(self) -> OrderItemView:
        return OrderItemView(
            id=self.id,
            line_number=self.line_number,
            product_id=self.product_id,
            product_name=self.product_name,
            supplier_id=self.supplier_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            line_total=self.line_total,
            shipment_status=self.shipment_status,
            stock_state=self.stock_state,
            carrier=self.carrier,
            tracking_number=self.tracking_number,
            notes=self.notes,
            shipped_at=self.shipped_at,
            delivered_at=self.delivered_at,
        )

    def __repr__(self) -> str:
        return (
            f"<OrderItem {self.product_id} x{self.quantity} "
            f"shipment={self.shipment_status.value} stock={self.stock_state.value}>"
        )
