"""Cart pricing arithmetic (commerce_kernel.domain.pricing)."""

from decimal import Decimal

import pytest

from commerce_kernel.domain.collaborators import CommerceSettings
from commerce_kernel.domain.discounts import DiscountInfo
from commerce_kernel.domain.pricing import (
    CartLine,
    compute_breakdown,
    merge_quantities,
    shipping_for,
)
from commerce_kernel.domain.statuses import DiscountType
from commerce_kernel.exceptions import InvalidQuantityError

SETTINGS = CommerceSettings()  # 8% tax, free shipping above 5000, flat 500

SAVE20 = DiscountInfo(code="SAVE20", discount_type=DiscountType.PERCENTAGE, value=Decimal("20"))


def line(product_id="P-1", quantity=1, unit_price=1000):
    return CartLine(product_id=product_id, quantity=quantity, unit_price=unit_price)


class TestCartLine:
    def test_line_total(self):
        assert line(quantity=3, unit_price=250).line_total == 750

    def test_zero_quantity_rejected(self):
        with pytest.raises(InvalidQuantityError):
            line(quantity=0)

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            line(unit_price=-1)

    def test_empty_product_rejected(self):
        with pytest.raises(ValueError):
            line(product_id="")


class TestBreakdown:
    def test_discounted_order_over_free_shipping_threshold(self):
        breakdown = compute_breakdown([line(quantity=2, unit_price=5000)], SETTINGS, SAVE20)
        assert breakdown.subtotal == 10000
        assert breakdown.discount_amount == 2000
        assert breakdown.tax == 640
        assert breakdown.shipping_cost == 0
        assert breakdown.total == 8640
        assert breakdown.discount_code == "SAVE20"

    def test_small_order_pays_flat_shipping(self):
        breakdown = compute_breakdown([line(unit_price=1000)], SETTINGS)
        assert breakdown.tax == 80
        assert breakdown.shipping_cost == 500
        assert breakdown.total == 1580

    def test_threshold_is_strict(self):
        assert shipping_for(5000, SETTINGS) == 500
        assert shipping_for(5001, SETTINGS) == 0

    def test_discount_can_push_order_below_free_shipping(self):
        # 6000 - 20% = 4800, not above 5000
        breakdown = compute_breakdown([line(unit_price=6000)], SETTINGS, SAVE20)
        assert breakdown.shipping_cost == 500

    def test_total_identity(self):
        breakdown = compute_breakdown(
            [line("P-1", 3, 1234), line("P-2", 1, 999)], SETTINGS, SAVE20
        )
        assert breakdown.total == (
            breakdown.subtotal - breakdown.discount_amount + breakdown.tax + breakdown.shipping_cost
        )

    def test_currency_and_rate_are_copied(self):
        settings = CommerceSettings(tax_rate=Decimal("0.15"), currency="USD")
        breakdown = compute_breakdown([line()], settings)
        assert breakdown.currency == "USD"
        assert breakdown.tax_rate == Decimal("0.15")
        assert breakdown.tax == 150

    def test_rejection_is_recorded(self):
        breakdown = compute_breakdown([line()], SETTINGS, discount_rejection="expired")
        assert breakdown.discount_amount == 0
        assert breakdown.discount_rejection == "expired"


def test_merge_quantities_sorts_and_sums():
    lines = [line("P-2", 1), line("P-1", 2), line("P-2", 3)]
    assert merge_quantities(lines) == [("P-1", 2), ("P-2", 4)]


class TestSettingsValidation:
    def test_tax_rate_must_be_decimal(self):
        with pytest.raises(TypeError):
            CommerceSettings(tax_rate=0.08)

    def test_tax_rate_is_a_fraction(self):
        with pytest.raises(ValueError):
            CommerceSettings(tax_rate=Decimal("8"))

    def test_currency_code(self):
        with pytest.raises(ValueError):
            CommerceSettings(currency="RUPEES")
