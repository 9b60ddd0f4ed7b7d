"""
DiscountEngine -- discount code lifecycle and validation.

Responsibility:
    Creates, activates and deactivates discount codes; validates a code
    at a point in time; quotes its amount against a subtotal; counts its
    usage at checkout.  The rules themselves live in ``domain/discounts.py``.

Architecture position:
    Kernel > Services.  Leaf component.  Used by PricingCalculator
    (validate) and OrderEngine (record_usage).

Invariants enforced:
    - Codes are unique after normalization (trim + upper-case).
    - ``validate`` and ``quote`` never mutate.
    - ``used_count`` is incremented under a row lock, in the caller's
      transaction, so a rolled-back checkout does not consume a use.

Failure modes:
    - InvalidDiscountCodeError(reason=not_found | inactive | expired |
      not_yet_active | usage_limit_reached).
    - DuplicateCodeError on create_code collision.
    - InvalidDiscountDefinitionError on malformed definitions.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from commerce_kernel.domain import discounts
from commerce_kernel.domain.clock import Clock
from commerce_kernel.domain.discounts import DiscountInfo, DiscountQuote, DiscountRejection
from commerce_kernel.domain.dtos import DiscountCodeView
from commerce_kernel.domain.statuses import DiscountType
from commerce_kernel.exceptions import (
    DuplicateCodeError,
    InvalidDiscountCodeError,
    InvalidDiscountDefinitionError,
)
from commerce_kernel.logging_config import get_logger
from commerce_kernel.models.discount import DiscountCode
from commerce_kernel.services.base import BaseService

logger = get_logger("services.discount_engine")


class DiscountEngine(BaseService[DiscountCode]):
    """
    Discount code service.

    Contract:
        All public methods accept codes in any case and with surrounding
        whitespace; they operate on the normalized form.

    Non-goals:
        - Does not authorize.  Creating and toggling codes is an
          administrator action checked by the facade.
    """

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    def _find(self, normalized: str, *, lock: bool = False) -> DiscountCode | None:
        stmt = select(DiscountCode).where(DiscountCode.code == normalized)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def _reject(self, code: str, reason: DiscountRejection) -> InvalidDiscountCodeError:
        logger.info(
            "discount_code_rejected",
            extra={"discount_code": code, "reason": reason.value},
        )
        return InvalidDiscountCodeError(code, reason.value)

    @staticmethod
    def _to_info(row: DiscountCode) -> DiscountInfo:
        return DiscountInfo(
            code=row.code,
            discount_type=row.discount_type,
            value=Decimal(row.value),
            name=row.name,
            description=row.description,
            minimum_order_amount=row.minimum_order_amount,
            maximum_discount_amount=row.maximum_discount_amount,
            start_date=row.start_date,
            end_date=row.end_date,
        )

    def _check(self, row: DiscountCode, as_of: datetime) -> None:
        reason = discounts.check_applicability(
            is_active=row.is_active,
            start_date=row.start_date,
            end_date=row.end_date,
            usage_limit=row.usage_limit,
            used_count=row.used_count,
            as_of=as_of,
        )
        if reason is not None:
            raise self._reject(row.code, reason)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, code: str, as_of: datetime | None = None) -> DiscountInfo:
        """Return the code's terms if it can be applied at ``as_of``."""
        normalized = discounts.normalize_code(code)
        row = self._find(normalized) if normalized else None
        if row is None:
            raise self._reject(normalized or code, DiscountRejection.NOT_FOUND)
        self._check(row, as_of or self._clock.now())
        return self._to_info(row)

    def quote(self, code: str, subtotal: int, as_of: datetime | None = None) -> DiscountQuote:
        """Discount and final amount for ``subtotal`` (the storefront preview)."""
        info = self.validate(code, as_of)
        return discounts.quote(info, subtotal)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_code(
        self,
        code: str,
        discount_type: DiscountType,
        value: Decimal | int,
        *,
        name: str | None = None,
        description: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        is_active: bool = True,
        minimum_order_amount: int | None = None,
        maximum_discount_amount: int | None = None,
        usage_limit: int | None = None,
        created_by: str = "system",
    ) -> DiscountCodeView:
        normalized = discounts.normalize_code(code)
        if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
            raise InvalidDiscountDefinitionError(normalized, "value must be a Decimal or int")
        value = Decimal(value)
        discounts.validate_definition(
            normalized,
            discount_type,
            value,
            start_date=start_date,
            end_date=end_date,
            minimum_order_amount=minimum_order_amount,
            maximum_discount_amount=maximum_discount_amount,
            usage_limit=usage_limit,
        )

        if self._find(normalized) is not None:
            raise DuplicateCodeError(normalized)

        row = DiscountCode(
            code=normalized,
            discount_type=discount_type,
            value=value,
            name=name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            is_active=is_active,
            minimum_order_amount=minimum_order_amount,
            maximum_discount_amount=maximum_discount_amount,
            usage_limit=usage_limit,
            used_count=0,
            created_by_id=created_by,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(row)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            raise DuplicateCodeError(normalized) from exc

        logger.info(
            "discount_code_created",
            extra={
                "discount_code": normalized,
                "discount_type": discount_type.value,
                "value": str(value),
            },
        )
        return row.to_view()

    def _set_active(self, code: str, active: bool, performed_by: str) -> DiscountCodeView:
        normalized = discounts.normalize_code(code)
        row = self._find(normalized, lock=True)
        if row is None:
            raise self._reject(normalized, DiscountRejection.NOT_FOUND)
        if row.is_active != active:
            row.is_active = active
            row.updated_by_id = performed_by
            self.session.flush()
            logger.info(
                "discount_code_activated" if active else "discount_code_deactivated",
                extra={"discount_code": normalized},
            )
        return row.to_view()

    def activate(self, code: str, performed_by: str = "system") -> DiscountCodeView:
        return self._set_active(code, True, performed_by)

    def deactivate(self, code: str, performed_by: str = "system") -> DiscountCodeView:
        return self._set_active(code, False, performed_by)

    def record_usage(self, code: str, as_of: datetime | None = None) -> DiscountCodeView:
        """
        Count one use of ``code``.

        Re-validates under the row lock, so two checkouts racing for the
        last use of a limited code cannot both succeed.
        """
        normalized = discounts.normalize_code(code)
        row = self._find(normalized, lock=True)
        if row is None:
            raise self._reject(normalized, DiscountRejection.NOT_FOUND)
        self._check(row, as_of or self._clock.now())
        row.used_count += 1
        self.session.flush()
        logger.debug(
            "discount_code_used",
            extra={"discount_code": normalized, "used_count": row.used_count},
        )
        return row.to_view()

    def get(self, code: str) -> DiscountCodeView:
        normalized = discounts.normalize_code(code)
        row = self._find(normalized)
        if row is None:
            raise InvalidDiscountCodeError(normalized, DiscountRejection.NOT_FOUND.value)
        return row.to_view()
