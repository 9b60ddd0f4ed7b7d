"""PricingCalculator: discount resolution and live settings."""

from datetime import timedelta
from decimal import Decimal

import pytest

from commerce_kernel.domain.collaborators import CommerceSettings, SettingsProvider
from commerce_kernel.domain.statuses import DiscountType
from commerce_kernel.exceptions import EmptyCartError, InvalidDiscountCodeError
from commerce_kernel.services.pricing_calculator import PricingCalculator
from tests.conftest import cart


class MutableSettings(SettingsProvider):
    def __init__(self, settings):
        self.settings = settings

    def current(self):
        return self.settings


def test_save20_on_ten_thousand(pricing, discounts):
    discounts.create_code("SAVE20", DiscountType.PERCENTAGE, Decimal("20"))

    breakdown = pricing.price(cart(("P-1", 2, 5000)), "save20")

    assert breakdown.subtotal == 10000
    assert breakdown.discount_amount == 2000
    assert breakdown.tax == 640
    assert breakdown.shipping_cost == 0
    assert breakdown.total == 8640
    assert breakdown.discount_code == "SAVE20"
    assert breakdown.currency == "LKR"


def test_no_code(pricing):
    breakdown = pricing.price(cart(("P-1", 1, 2000)))
    assert breakdown.discount_amount == 0
    assert breakdown.discount_code is None
    assert breakdown.total == 2000 + 160 + 500


def test_blank_code_is_ignored(pricing):
    assert pricing.price(cart(("P-1", 1, 2000)), "  ").discount_code is None


def test_empty_cart(pricing):
    with pytest.raises(EmptyCartError):
        pricing.price([])


def test_unknown_policy(pricing):
    with pytest.raises(ValueError):
        pricing.price(cart(("P-1", 1, 100)), on_invalid_discount="warn")


class TestInvalidDiscountPolicy:
    @pytest.fixture
    def expired(self, discounts, deterministic_clock):
        now = deterministic_clock.now()
        return discounts.create_code(
            "EXPIRED10",
            DiscountType.PERCENTAGE,
            Decimal("10"),
            end_date=now - timedelta(days=1),
        )

    def test_reject_raises(self, pricing, expired):
        with pytest.raises(InvalidDiscountCodeError) as exc_info:
            pricing.price(cart(("P-1", 1, 10000)), "EXPIRED10")
        assert exc_info.value.reason == "expired"

    def test_ignore_prices_without_discount(self, pricing, expired, captured_logs):
        breakdown = pricing.price(
            cart(("P-1", 1, 10000)), "EXPIRED10", on_invalid_discount="ignore"
        )
        assert breakdown.discount_amount == 0
        assert breakdown.discount_code is None
        assert breakdown.discount_rejection == "expired"
        assert any(r["message"] == "discount_ignored" for r in captured_logs())

    def test_as_of_before_expiry_applies(self, pricing, expired, deterministic_clock):
        as_of = deterministic_clock.now() - timedelta(days=2)
        breakdown = pricing.price(cart(("P-1", 1, 10000)), "EXPIRED10", as_of=as_of)
        assert breakdown.discount_amount == 1000


def test_tax_rate_read_on_every_call(discounts, deterministic_clock):
    settings = MutableSettings(CommerceSettings())
    calculator = PricingCalculator(discounts, settings, deterministic_clock)
    lines = cart(("P-1", 1, 10000))

    assert calculator.price(lines).tax == 800
    settings.settings = CommerceSettings(tax_rate=Decimal("0.15"))
    assert calculator.price(lines).tax == 1500
