"""
Module: commerce_kernel.selectors.order_selector
Responsibility: Read-only order queries: lookup by id or number, a
    customer's order list, the administrator's list of every order, a
    supplier's view of the orders it fulfils, and the unpaid orders the
    reservation sweep should cancel.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Supplier views contain only that supplier's items.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from commerce_kernel.domain.dtos import OrderView, SupplierOrderView
from commerce_kernel.domain.statuses import OrderStatus, PaymentStatus, ShipmentStatus
from commerce_kernel.exceptions import OrderNotFoundError
from commerce_kernel.models.order import Order, OrderItem
from commerce_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector[Order]):
    """Selector for order reads.  Authorization is the caller's job."""

    def find(self, order_id: UUID) -> OrderView | None:
        order = self.session.get(Order, order_id)
        return order.to_view() if order is not None else None

    def get(self, order_id: UUID) -> OrderView:
        view = self.find(order_id)
        if view is None:
            raise OrderNotFoundError(str(order_id))
        return view

    def get_by_number(self, order_number: str) -> OrderView:
        order = self.session.execute(
            select(Order).where(Order.order_number == order_number)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_number)
        return order.to_view()

    def customer_orders(
        self,
        customer_id: str,
        *,
        status: OrderStatus | None = None,
        limit: int | None = None,
    ) -> list[OrderView]:
        """A customer's orders, newest first."""
        query = select(Order).where(Order.customer_id == customer_id)
        if status is not None:
            query = query.where(Order.status == status)
        query = query.order_by(Order.order_sequence.desc())
        if limit is not None:
            query = query.limit(limit)
        return [order.to_view() for order in self.session.scalars(query)]

    def all_orders(
        self,
        *,
        status: OrderStatus | None = None,
        payment_status: PaymentStatus | None = None,
        placed_since: datetime | None = None,
        placed_until: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[OrderView]:
        """
        Every order, newest first, a page at a time.

        Args:
            status: Only orders in this status.
            payment_status: Only orders with this payment status.
            placed_since: Only orders placed at or after this instant.
            placed_until: Only orders placed at or before this instant.
            limit: Page size; non-positive returns an empty page.
            offset: Orders to skip.
        """
        if offset < 0:
            raise ValueError("offset must be >= 0")
        if limit <= 0:
            return []
        query = select(Order)
        if status is not None:
            query = query.where(Order.status == status)
        if payment_status is not None:
            query = query.where(Order.payment_status == payment_status)
        if placed_since is not None:
            query = query.where(Order.placed_at >= placed_since)
        if placed_until is not None:
            query = query.where(Order.placed_at <= placed_until)
        query = query.order_by(Order.order_sequence.desc()).offset(offset).limit(limit)
        return [order.to_view() for order in self.session.scalars(query)]

    def supplier_orders(
        self,
        supplier_id: str,
        *,
        shipment_status: ShipmentStatus | None = None,
    ) -> list[SupplierOrderView]:
        """
        Orders containing at least one of the supplier's items, newest
        first, each trimmed to the supplier's items.
        """
        item_filter = OrderItem.supplier_id == supplier_id
        if shipment_status is not None:
            item_filter = item_filter & (OrderItem.shipment_status == shipment_status)
        order_ids = select(OrderItem.order_id).where(item_filter)
        orders = self.session.scalars(
            select(Order).where(Order.id.in_(order_ids)).order_by(Order.order_sequence.desc())
        )

        views = []
        for order in orders:
            items = tuple(
                item.to_view()
                for item in order.items
                if item.supplier_id == supplier_id
                and (shipment_status is None or item.shipment_status == shipment_status)
            )
            views.append(
                SupplierOrderView(
                    order_id=order.id,
                    order_number=order.order_number,
                    status=order.status,
                    payment_status=order.payment_status,
                    placed_at=order.placed_at,
                    shipping_address=dict(order.shipping_address),
                    items=items,
                )
            )
        return views

    def stale_unpaid_order_ids(self, placed_before: datetime) -> list[UUID]:
        """Pending, unpaid orders placed before ``placed_before``, oldest first."""
        return list(
            self.session.scalars(
                select(Order.id)
                .where(
                    Order.status == OrderStatus.PENDING,
                    Order.payment_status == PaymentStatus.PENDING,
                    Order.placed_at < placed_before,
                )
                .order_by(Order.placed_at, Order.order_sequence)
            )
        )
