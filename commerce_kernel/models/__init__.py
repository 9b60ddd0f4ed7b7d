"""ORM models for the commerce kernel."""

from commerce_kernel.models.discount import DiscountCode
from commerce_kernel.models.inventory import InventoryRecord, StockMovement
from commerce_kernel.models.order import Order, OrderItem
from commerce_kernel.models.sequence import SequenceCounter

__all__ = [
    "DiscountCode",
    "InventoryRecord",
    "Order",
    "OrderItem",
    "SequenceCounter",
    "StockMovement",
]
