"""Selectors for the commerce kernel (read side)."""

from commerce_kernel.selectors.base import BaseSelector
from commerce_kernel.selectors.inventory_selector import InventorySelector
from commerce_kernel.selectors.order_selector import OrderSelector

__all__ = [
    "BaseSelector",
    "InventorySelector",
    "OrderSelector",
]
