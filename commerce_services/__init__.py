"""
commerce_services -- Package init and public API.

Responsibility:
    The outer shell the API layer talks to: the per-call unit of work
    (CommerceService), the kernel DI container (CommerceOrchestrator),
    boundary payload parsing, the payment webhook adapter, the
    reservation-timeout sweep and notification sinks.

Architecture position:
    Services -- above commerce_kernel and commerce_config.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        commerce_services/ -> commerce_kernel/  (allowed)
        commerce_services/ -> commerce_config/  (allowed)
        commerce_kernel/   -> commerce_services/ (FORBIDDEN)
"""

from commerce_services.commerce_orchestrator import CommerceOrchestrator
from commerce_services.commerce_service import CommerceService
from commerce_services.notifications import (
    FanOutNotificationSink,
    LoggingNotificationSink,
    RecordingNotificationSink,
)
from commerce_services.payment_webhook import PaymentWebhookHandler, WebhookOutcome
from commerce_services.reservation_sweeper import ReservationSweeper, SweepResult

__all__ = [
    "CommerceOrchestrator",
    "CommerceService",
    "FanOutNotificationSink",
    "LoggingNotificationSink",
    "PaymentWebhookHandler",
    "RecordingNotificationSink",
    "ReservationSweeper",
    "SweepResult",
    "WebhookOutcome",
]
