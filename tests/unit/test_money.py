"""
Unit tests for minor-unit money arithmetic.

Verifies:
- Half-up rounding, halves away from zero
- Rate and percentage application
- Minor-unit validation rejects bools, floats and negatives
"""

from decimal import Decimal

import pytest

from commerce_kernel.domain.money import (
    apply_rate,
    is_minor_units,
    percent_of,
    require_minor_units,
    round_half_up,
)


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("0.5", 1),
            ("1.5", 2),
            ("2.5", 3),
            ("2.4999", 2),
            ("-0.5", -1),
            ("10", 10),
        ],
    )
    def test_rounds_halves_away_from_zero(self, value, expected):
        assert round_half_up(Decimal(value)) == expected

    def test_returns_int(self):
        assert isinstance(round_half_up(Decimal("3.7")), int)


class TestApplyRate:
    def test_tax_on_discounted_subtotal(self):
        assert apply_rate(8000, Decimal("0.08")) == 640

    def test_rounding_of_fractional_tax(self):
        # 1234 * 0.08 = 98.72
        assert apply_rate(1234, Decimal("0.08")) == 99

    def test_zero_rate(self):
        assert apply_rate(5000, Decimal("0")) == 0


class TestPercentOf:
    def test_twenty_percent(self):
        assert percent_of(10000, Decimal("20")) == 2000

    def test_fractional_percent_rounds_half_up(self):
        # 999 * 12.5 / 100 = 124.875
        assert percent_of(999, Decimal("12.5")) == 125


class TestMinorUnits:
    @pytest.mark.parametrize("value", [0, 1, 10_000])
    def test_accepts_non_negative_ints(self, value):
        assert is_minor_units(value)
        assert require_minor_units(value, "amount") == value

    @pytest.mark.parametrize("value", [-1, 1.5, True, "100", None, Decimal("10")])
    def test_rejects_everything_else(self, value):
        assert not is_minor_units(value)
        with pytest.raises(ValueError, match="amount"):
            require_minor_units(value, "amount")
