"""
Boundary payload parsing (``commerce_services.payloads``).

Request bodies and gateway callbacks arrive as untyped mappings.  This
module turns them into the frozen, typed values the kernel accepts, so no
dict ever crosses into ``commerce_kernel``.  Pure; ZERO I/O.

Every failure raises ``InvalidPayloadError(field, reason)`` naming the
offending field path (``items[1].quantity``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from commerce_kernel.domain.dtos import ShipmentUpdate
from commerce_kernel.domain.pricing import CartLine
from commerce_kernel.domain.statuses import DiscountType, PaymentStatus, ShipmentStatus
from commerce_kernel.exceptions import CommerceKernelError, InvalidPayloadError

_ON_INVALID_DISCOUNT = ("reject", "ignore")

PAYMENT_SUCCEEDED = frozenset({"succeeded", "success", "paid", "completed"})
PAYMENT_FAILED = frozenset({"failed", "declined", "cancelled", "canceled", "error"})


# -----------------------------------------------------------------------------
# Typed requests
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class CheckoutRequest:
    cart_lines: tuple[CartLine, ...]
    shipping_address: dict[str, Any]
    discount_code: str | None = None
    on_invalid_discount: str = "reject"


@dataclass(frozen=True)
class PaymentCallback:
    """A gateway's verdict on one order's payment."""

    order_id: UUID
    succeeded: bool
    payment_id: str | None = None
    gateway_status: str = ""


@dataclass(frozen=True)
class DiscountDefinition:
    code: str
    discount_type: DiscountType
    value: Decimal
    options: dict[str, Any] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Field helpers
# -----------------------------------------------------------------------------


def _require_mapping(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise InvalidPayloadError(path, "must be an object")
    return value


def _require(payload: Mapping[str, Any], key: str, path: str = "") -> Any:
    if key not in payload or payload[key] is None:
        raise InvalidPayloadError(path + key, "is required")
    return payload[key]


def parse_str(value: Any, path: str, *, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise InvalidPayloadError(path, "must be a string")
    value = value.strip()
    if not value and not allow_empty:
        raise InvalidPayloadError(path, "must not be empty")
    return value


def _optional_str(payload: Mapping[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    return parse_str(value, key, allow_empty=True) or None


def parse_int(value: Any, path: str) -> int:
    """Integers, or strings holding one; floats and bools are rejected."""
    if isinstance(value, bool):
        raise InvalidPayloadError(path, "must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise InvalidPayloadError(path, "must be an integer") from None
    raise InvalidPayloadError(path, "must be an integer")


def _optional_int(payload: Mapping[str, Any], key: str) -> int | None:
    value = payload.get(key)
    return None if value is None else parse_int(value, key)


def parse_decimal(value: Any, path: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidPayloadError(path, "must be a number")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidPayloadError(path, "must be a number") from None
    if not result.is_finite():
        raise InvalidPayloadError(path, "must be finite")
    return result


def parse_uuid(value: Any, path: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise InvalidPayloadError(path, "must be a UUID string")
    try:
        return UUID(value.strip())
    except ValueError:
        raise InvalidPayloadError(path, "must be a UUID string") from None


def parse_datetime(value: Any, path: str) -> datetime:
    """ISO-8601 instant; a value without an offset is read as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise InvalidPayloadError(path, "must be an ISO-8601 datetime") from None
    else:
        raise InvalidPayloadError(path, "must be an ISO-8601 datetime")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_enum(enum_cls, value: Any, path: str):
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise InvalidPayloadError(path, "must be a string")
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidPayloadError(path, f"must be one of: {allowed}") from None


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------


def parse_cart_lines(value: Any, path: str = "items") -> tuple[CartLine, ...]:
    if not isinstance(value, list) or not value:
        raise InvalidPayloadError(path, "must be a non-empty list")
    lines = []
    for index, raw in enumerate(value):
        line_path = f"{path}[{index}]."
        line = _require_mapping(raw, f"{path}[{index}]")
        try:
            lines.append(
                CartLine(
                    product_id=parse_str(_require(line, "product_id", line_path), line_path + "product_id"),
                    quantity=parse_int(_require(line, "quantity", line_path), line_path + "quantity"),
                    unit_price=parse_int(_require(line, "unit_price", line_path), line_path + "unit_price"),
                    product_name=_optional_str(line, "product_name"),
                )
            )
        except InvalidPayloadError:
            raise
        except (ValueError, CommerceKernelError) as exc:
            raise InvalidPayloadError(f"{path}[{index}]", str(exc)) from exc
    return tuple(lines)


def parse_checkout_request(payload: Any) -> CheckoutRequest:
    body = _require_mapping(payload, "body")
    address = _require_mapping(_require(body, "shipping_address"), "shipping_address")
    policy = body.get("on_invalid_discount", "reject")
    if policy not in _ON_INVALID_DISCOUNT:
        raise InvalidPayloadError("on_invalid_discount", "must be 'reject' or 'ignore'")
    return CheckoutRequest(
        cart_lines=parse_cart_lines(_require(body, "items")),
        shipping_address=dict(address),
        discount_code=_optional_str(body, "discount_code"),
        on_invalid_discount=policy,
    )


def parse_shipment_update(payload: Any) -> ShipmentUpdate:
    body = _require_mapping(payload, "body")
    status = body.get("shipment_status")
    update = ShipmentUpdate(
        shipment_status=None if status is None else _parse_enum(ShipmentStatus, status, "shipment_status"),
        tracking_number=_optional_str(body, "tracking_number"),
        carrier=_optional_str(body, "carrier"),
        notes=_optional_str(body, "notes"),
    )
    if update.is_metadata_only and not (update.tracking_number or update.carrier or update.notes):
        raise InvalidPayloadError("body", "nothing to update")
    return update


def parse_payment_status(value: Any) -> PaymentStatus:
    return _parse_enum(PaymentStatus, value, "payment_status")


def parse_payment_callback(payload: Any) -> PaymentCallback:
    body = _require_mapping(payload, "body")
    order_id = parse_uuid(_require(body, "order_id"), "order_id")
    status = parse_str(_require(body, "status"), "status").lower()
    if status in PAYMENT_SUCCEEDED:
        payment_id = parse_str(_require(body, "payment_id"), "payment_id")
        return PaymentCallback(order_id, True, payment_id, status)
    if status in PAYMENT_FAILED:
        return PaymentCallback(order_id, False, _optional_str(body, "payment_id"), status)
    raise InvalidPayloadError("status", f"unknown payment status {status!r}")


def parse_discount_definition(payload: Any) -> DiscountDefinition:
    body = _require_mapping(payload, "body")
    options: dict[str, Any] = {
        "name": _optional_str(body, "name"),
        "description": _optional_str(body, "description"),
        "minimum_order_amount": _optional_int(body, "minimum_order_amount"),
        "maximum_discount_amount": _optional_int(body, "maximum_discount_amount"),
        "usage_limit": _optional_int(body, "usage_limit"),
    }
    for key in ("start_date", "end_date"):
        if body.get(key) is not None:
            options[key] = parse_datetime(body[key], key)
    if "is_active" in body:
        if not isinstance(body["is_active"], bool):
            raise InvalidPayloadError("is_active", "must be a boolean")
        options["is_active"] = body["is_active"]
    return DiscountDefinition(
        code=parse_str(_require(body, "code"), "code"),
        discount_type=_parse_enum(DiscountType, _require(body, "discount_type"), "discount_type"),
        value=parse_decimal(_require(body, "value"), "value"),
        options=options,
    )
