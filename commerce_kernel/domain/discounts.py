"""
Discount rules (``commerce_kernel.domain.discounts``).

Pure validation and pricing of a discount code.  The discount engine reads
the row, converts it to a ``DiscountInfo`` and delegates here; pricing uses
``DiscountInfo.amount_for``.  Nothing in this module touches the session.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from commerce_kernel.domain.money import percent_of, round_half_up
from commerce_kernel.domain.statuses import DiscountType
from commerce_kernel.exceptions import InvalidDiscountDefinitionError

_ZERO = Decimal(0)
_HUNDRED = Decimal(100)


class DiscountRejection(str, Enum):
    """Reason a code cannot be applied."""

    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    NOT_YET_ACTIVE = "not_yet_active"
    USAGE_LIMIT_REACHED = "usage_limit_reached"


def normalize_code(code: str) -> str:
    """Trim and upper-case; codes compare case-insensitively."""
    return code.strip().upper()


@dataclass(frozen=True)
class DiscountInfo:
    """Immutable view of a discount code that passed validation."""

    code: str
    discount_type: DiscountType
    value: Decimal
    name: str | None = None
    description: str | None = None
    minimum_order_amount: int | None = None
    maximum_discount_amount: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    def amount_for(self, subtotal: int) -> int:
        return compute_discount_amount(
            self.discount_type,
            self.value,
            subtotal,
            minimum_order_amount=self.minimum_order_amount,
            maximum_discount_amount=self.maximum_discount_amount,
        )


@dataclass(frozen=True)
class DiscountQuote:
    code: str
    subtotal: int
    discount_amount: int
    final_amount: int


def check_applicability(
    *,
    is_active: bool,
    start_date: datetime | None,
    end_date: datetime | None,
    usage_limit: int | None,
    used_count: int,
    as_of: datetime,
) -> DiscountRejection | None:
    """Return why a code cannot be used at ``as_of``, or None.

    The validity window is inclusive at both ends.
    """
    if not is_active:
        return DiscountRejection.INACTIVE
    if start_date is not None and as_of < start_date:
        return DiscountRejection.NOT_YET_ACTIVE
    if end_date is not None and as_of > end_date:
        return DiscountRejection.EXPIRED
    if usage_limit is not None and used_count >= usage_limit:
        return DiscountRejection.USAGE_LIMIT_REACHED
    return None


def compute_discount_amount(
    discount_type: DiscountType,
    value: Decimal,
    subtotal: int,
    *,
    minimum_order_amount: int | None = None,
    maximum_discount_amount: int | None = None,
) -> int:
    """Discount in minor units, always within [0, subtotal].

    Below ``minimum_order_amount`` the discount is zero.  Percentages are
    clamped to [0, 100]; ``maximum_discount_amount`` caps percentage
    discounts; fixed amounts are capped at the subtotal.
    """
    if subtotal <= 0:
        return 0
    if minimum_order_amount is not None and subtotal < minimum_order_amount:
        return 0

    if discount_type is DiscountType.PERCENTAGE:
        percent = min(max(value, _ZERO), _HUNDRED)
        amount = percent_of(subtotal, percent)
        if maximum_discount_amount is not None:
            amount = min(amount, maximum_discount_amount)
    else:
        amount = max(round_half_up(value), 0)

    return min(amount, subtotal)


def quote(info: DiscountInfo, subtotal: int) -> DiscountQuote:
    amount = info.amount_for(subtotal)
    return DiscountQuote(
        code=info.code,
        subtotal=subtotal,
        discount_amount=amount,
        final_amount=subtotal - amount,
    )


def validate_definition(
    code: str,
    discount_type: DiscountType,
    value: Decimal,
    *,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    minimum_order_amount: int | None = None,
    maximum_discount_amount: int | None = None,
    usage_limit: int | None = None,
) -> None:
    """Reject malformed definitions at creation time."""
    if not code:
        raise InvalidDiscountDefinitionError(code, "code must not be empty")
    if len(code) > 64:
        raise InvalidDiscountDefinitionError(code, "code longer than 64 characters")
    if value < _ZERO:
        raise InvalidDiscountDefinitionError(code, "value must not be negative")
    if discount_type is DiscountType.FIXED and value != value.to_integral_value():
        raise InvalidDiscountDefinitionError(
            code, "fixed value must be a whole number of minor units"
        )
    if start_date is not None and end_date is not None and end_date < start_date:
        raise InvalidDiscountDefinitionError(code, "end_date precedes start_date")
    for field, amount in (
        ("minimum_order_amount", minimum_order_amount),
        ("maximum_discount_amount", maximum_discount_amount),
        ("usage_limit", usage_limit),
    ):
        if amount is not None and (isinstance(amount, bool) or amount < 0):
            raise InvalidDiscountDefinitionError(code, f"{field} must not be negative")
