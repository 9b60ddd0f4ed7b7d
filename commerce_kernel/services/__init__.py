"""Services for the commerce kernel (write side)."""

from commerce_kernel.services.discount_engine import DiscountEngine
from commerce_kernel.services.fulfillment_coordinator import FulfillmentCoordinator
from commerce_kernel.services.inventory_ledger import InventoryLedger
from commerce_kernel.services.order_engine import OrderEngine, format_order_number
from commerce_kernel.services.pricing_calculator import PricingCalculator
from commerce_kernel.services.sequence_service import SequenceService

__all__ = [
    "DiscountEngine",
    "FulfillmentCoordinator",
    "InventoryLedger",
    "OrderEngine",
    "PricingCalculator",
    "SequenceService",
    "format_order_number",
]
