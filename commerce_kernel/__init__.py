"""
Commerce Kernel - order fulfillment and inventory reservation.

A transactional core for a multi-supplier storefront with:
- Per-product stock counters backed by an append-only movement ledger
- All-or-nothing checkout reservations
- Explicit order, payment and shipment state machines
- Per-supplier fulfillment with derived order status
- Typed errors and structured logging
"""

__version__ = "0.1.0"
