"""
Cart pricing (``commerce_kernel.domain.pricing``).

Responsibility
--------------
Pure derivation of subtotal, discount, tax, shipping and total for a cart
snapshot.  The pricing calculator service resolves the discount code and
the current settings, then calls ``compute_breakdown``.

Architecture position
---------------------
**Kernel domain layer**.  ZERO I/O.

Rules
-----
* ``subtotal = sum(unit_price x quantity)``
* ``discount`` within ``[0, subtotal]``
* ``tax = round_half_up((subtotal - discount) x tax_rate)``
* ``shipping = 0`` if ``subtotal - discount > free_shipping_threshold``
  else ``flat_shipping_rate``
* ``total = subtotal - discount + tax + shipping``
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from commerce_kernel.domain.collaborators import CommerceSettings
from commerce_kernel.domain.discounts import DiscountInfo
from commerce_kernel.domain.money import apply_rate, require_minor_units
from commerce_kernel.domain.stock import require_positive_quantity


@dataclass(frozen=True)
class CartLine:
    """One line of a cart snapshot; ``unit_price`` in minor units."""

    product_id: str
    quantity: int
    unit_price: int
    product_name: str | None = None

    def __post_init__(self) -> None:
        if not self.product_id:
            raise ValueError("product_id must not be empty")
        require_positive_quantity(self.quantity)
        require_minor_units(self.unit_price, "unit_price")

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    discount_amount: int
    tax: int
    shipping_cost: int
    total: int
    currency: str
    tax_rate: Decimal
    discount_code: str | None = None
    discount_rejection: str | None = None

    @property
    def taxable_amount(self) -> int:
        return self.subtotal - self.discount_amount


def subtotal_of(lines: Iterable[CartLine]) -> int:
    return sum(line.line_total for line in lines)


def shipping_for(taxable_amount: int, settings: CommerceSettings) -> int:
    if taxable_amount > settings.free_shipping_threshold:
        return 0
    return settings.flat_shipping_rate


def compute_breakdown(
    lines: Sequence[CartLine],
    settings: CommerceSettings,
    discount: DiscountInfo | None = None,
    *,
    discount_rejection: str | None = None,
) -> PriceBreakdown:
    subtotal = subtotal_of(lines)
    discount_amount = discount.amount_for(subtotal) if discount is not None else 0
    discount_amount = min(max(discount_amount, 0), subtotal)

    taxable = subtotal - discount_amount
    tax = apply_rate(taxable, settings.tax_rate)
    shipping_cost = shipping_for(taxable, settings)
    total = max(taxable + tax + shipping_cost, 0)

    return PriceBreakdown(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax=tax,
        shipping_cost=shipping_cost,
        total=total,
        currency=settings.currency,
        tax_rate=settings.tax_rate,
        discount_code=discount.code if discount is not None else None,
        discount_rejection=discount_rejection,
    )


def merge_quantities(lines: Iterable[CartLine]) -> list[tuple[str, int]]:
    """Total quantity per product, sorted by product id (the lock order)."""
    merged: dict[str, int] = {}
    for line in lines:
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return sorted(merged.items())
