"""
Module: commerce_kernel.models.discount
Responsibility: ORM persistence for discount codes.
Architecture position: Kernel > Models.

Invariants enforced:
    - code is stored normalized (trimmed, upper-case) and is unique.
    - used_count never exceeds usage_limit when a limit is set; the discount
      engine increments it under a row lock inside the checkout transaction.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from commerce_kernel.db.base import TrackedBase
from commerce_kernel.db.types import (
    DiscountValue,
    ExternalId,
    LongText,
    MinorUnits,
    ShortText,
    status_column_type,
)
from commerce_kernel.domain.dtos import DiscountCodeView
from commerce_kernel.domain.statuses import DiscountType


class DiscountCode(TrackedBase):
    """
    A discount code definition.

    ``value`` is a percent for percentage codes and minor units for fixed
    codes.  Orders copy the code and computed amount; they never point here.
    """

    __tablename__ = "discount_codes"

    __table_args__ = (
        CheckConstraint("value >= 0", name="ck_discount_value_non_negative"),
        CheckConstraint("used_count >= 0", name="ck_discount_used_count_non_negative"),
        CheckConstraint(
            "usage_limit IS NULL OR used_count <= usage_limit",
            name="ck_discount_usage_within_limit",
        ),
    )

    code: Mapped[ExternalId] = mapped_column(nullable=False, unique=True)
    discount_type: Mapped[DiscountType] = mapped_column(
        status_column_type(DiscountType, "discount_type"),
        nullable=False,
    )
    value: Mapped[DiscountValue] = mapped_column(nullable=False)

    name: Mapped[ShortText | None] = mapped_column(nullable=True)
    description: Mapped[LongText | None] = mapped_column(nullable=True)

    start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)

    minimum_order_amount: Mapped[MinorUnits | None] = mapped_column(nullable=True)
    maximum_discount_amount: Mapped[MinorUnits | None] = mapped_column(nullable=True)
    usage_limit: Mapped[int | None] = mapped_column(nullable=True)
    used_count: Mapped[int] = mapped_column(nullable=False, default=0)

    def to_view(self) -> DiscountCodeView:
        return DiscountCodeView(
            id=self.id,
            code=self.code,
            discount_type=self.discount_type,
            value=self.value,
            name=self.name,
            description=self.description,
            start_date=self.start_date,
            end_date=self.end_date,
            is_active=self.is_active,
            minimum_order_amount=self.minimum_order_amount,
            maximum_discount_amount=self.maximum_discount_amount,
            usage_limit=self.usage_limit,
            used_count=self.used_count,
        )

    def __repr__(self) -> str:
        return f"<DiscountCode {self.code} {self.discount_type.value} {self.value}>"
