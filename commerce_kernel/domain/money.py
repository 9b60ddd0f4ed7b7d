"""
Money arithmetic in integer minor units.

All amounts in the kernel are ``int`` counts of the smallest currency unit.
Rates and percentages are ``Decimal``.  Rounding happens once per derived
amount, half-up, through ``round_half_up``; nothing else rounds money.
"""

from decimal import ROUND_HALF_UP, Decimal

_ONE = Decimal(1)
_HUNDRED = Decimal(100)


def round_half_up(value: Decimal) -> int:
    """Round a Decimal amount to whole minor units, halves away from zero."""
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def apply_rate(amount: int, rate: Decimal) -> int:
    """amount x rate, rounded. ``rate`` is a fraction (0.08 for 8%)."""
    return round_half_up(Decimal(amount) * rate)


def percent_of(amount: int, percent: Decimal) -> int:
    """amount x percent / 100, rounded."""
    return round_half_up(Decimal(amount) * percent / _HUNDRED)


def is_minor_units(value: object) -> bool:
    """True for a non-negative int that is not a bool."""
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def require_minor_units(value: object, field: str) -> int:
    if not is_minor_units(value):
        raise ValueError(f"{field} must be a non-negative integer amount, got {value!r}")
    return value
