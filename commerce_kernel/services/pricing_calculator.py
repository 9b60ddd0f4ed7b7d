"""
PricingCalculator -- prices a cart snapshot.

Resolves the discount code through the DiscountEngine and the live site
settings through the SettingsProvider, then hands both to the pure
``domain.pricing.compute_breakdown``.  Reads only; never writes.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Literal

from commerce_kernel.domain.clock import Clock
from commerce_kernel.domain.collaborators import SettingsProvider
from commerce_kernel.domain.pricing import CartLine, PriceBreakdown, compute_breakdown
from commerce_kernel.exceptions import EmptyCartError, InvalidDiscountCodeError
from commerce_kernel.logging_config import get_logger
from commerce_kernel.services.discount_engine import DiscountEngine

logger = get_logger("services.pricing_calculator")

InvalidDiscountPolicy = Literal["reject", "ignore"]


class PricingCalculator:
    """
    Cart pricing service.

    Contract:
        ``price`` is deterministic for a given cart, code, settings and
        ``as_of``.  The tax rate is read from settings on every call, never
        cached.

    Guarantees:
        - With ``on_invalid_discount="reject"`` an unusable code raises
          InvalidDiscountCodeError.
        - With ``"ignore"`` the code is dropped and the breakdown records
          the rejection reason.
    """

    def __init__(self, discounts: DiscountEngine, settings: SettingsProvider, clock: Clock):
        self._discounts = discounts
        self._settings = settings
        self._clock = clock

    def price(
        self,
        cart_lines: Sequence[CartLine],
        discount_code: str | None = None,
        as_of: datetime | None = None,
        on_invalid_discount: InvalidDiscountPolicy = "reject",
    ) -> PriceBreakdown:
        if not cart_lines:
            raise EmptyCartError()
        if on_invalid_discount not in ("reject", "ignore"):
            raise ValueError(f"Unknown invalid-discount policy: {on_invalid_discount!r}")

        as_of = as_of or self._clock.now()
        settings = self._settings.current()

        discount = None
        rejection = None
        if discount_code is not None and discount_code.strip():
            try:
                discount = self._discounts.validate(discount_code, as_of)
            except InvalidDiscountCodeError as exc:
                if on_invalid_discount == "reject":
                    raise
                rejection = exc.reason
                logger.info(
                    "discount_ignored",
                    extra={"discount_code": exc.discount_code, "reason": exc.reason},
                )

        breakdown = compute_breakdown(
            cart_lines, settings, discount, discount_rejection=rejection
        )
        logger.debug(
            "cart_priced",
            extra={
                "subtotal": breakdown.subtotal,
                "discount_amount": breakdown.discount_amount,
                "tax": breakdown.tax,
                "shipping_cost": breakdown.shipping_cost,
                "total": breakdown.total,
            },
        )
        return breakdown
