"""
Payment gateway webhook adapter.

Translates a gateway callback body into ``mark_paid`` or
``mark_payment_failed``.  Gateways redeliver callbacks, so both calls are
idempotent in the kernel; a redelivery is answered with the order's
current state.  Signature verification belongs to the HTTP layer in front
of this adapter.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from commerce_kernel.domain.dtos import OrderView
from commerce_kernel.domain.statuses import PaymentStatus
from commerce_kernel.logging_config import LogContext, get_logger
from commerce_services.commerce_service import CommerceService
from commerce_services.payloads import PaymentCallback, parse_payment_callback

logger = get_logger("services.payment_webhook")


@dataclass(frozen=True)
class WebhookOutcome:
    callback: PaymentCallback
    order: OrderView

    @property
    def accepted(self) -> bool:
        expected = PaymentStatus.PAID if self.callback.succeeded else PaymentStatus.FAILED
        return self.order.payment_status is expected


class PaymentWebhookHandler:
    def __init__(self, service: CommerceService):
        self._service = service

    def handle(self, payload: Mapping[str, Any]) -> WebhookOutcome:
        callback = parse_payment_callback(payload)
        with LogContext.bind(order_id=str(callback.order_id)):
            logger.info(
                "payment_callback_received",
                extra={
                    "gateway_status": callback.gateway_status,
                    "payment_id": callback.payment_id,
                },
            )
            if callback.succeeded:
                order = self._service.mark_paid(callback.order_id, callback.payment_id)
            else:
                order = self._service.mark_payment_failed(callback.order_id)
            return WebhookOutcome(callback=callback, order=order)
