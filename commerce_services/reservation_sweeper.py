"""
Reservation timeout sweep.

Unpaid checkouts hold stock.  ``ReservationSweeper.sweep`` cancels every
order that is still ``pending`` with payment ``pending`` after the
configured timeout, which releases its reservations.  Nothing schedules
it: the caller (a cron job, a management command) invokes it.

Each candidate is re-checked under its order row lock, so an order paid
between the candidate query and the cancellation is left alone.  Running
the sweep twice cancels nothing the second time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from commerce_kernel.domain.actors import Actor
from commerce_kernel.domain.statuses import OrderStatus, PaymentStatus
from commerce_kernel.logging_config import get_logger
from commerce_services.commerce_orchestrator import CommerceOrchestrator

logger = get_logger("services.reservation_sweeper")

TIMEOUT_REASON = "reservation_timeout"


@dataclass(frozen=True)
class SweepResult:
    cutoff: datetime
    examined: int
    cancelled_order_ids: tuple[UUID, ...]

    @property
    def cancelled_count(self) -> int:
        return len(self.cancelled_order_ids)


class ReservationSweeper:
    def __init__(self, orchestrator: CommerceOrchestrator):
        self._orch = orchestrator

    def sweep(self, timeout_minutes: int | None = None) -> SweepResult:
        if timeout_minutes is None:
            timeout_minutes = self._orch.settings.current().reservation_timeout_minutes
        if timeout_minutes <= 0:
            raise ValueError(f"timeout_minutes must be positive, got {timeout_minutes}")

        cutoff = self._orch.clock.now() - timedelta(minutes=timeout_minutes)
        candidates = self._orch.order_reads.stale_unpaid_order_ids(cutoff)
        system = Actor.system()

        cancelled: list[UUID] = []
        for order_id in candidates:
            order = self._orch.orders.lock_order(order_id)
            if (
                order.status is not OrderStatus.PENDING
                or order.payment_status is not PaymentStatus.PENDING
            ):
                logger.info("sweep_candidate_skipped", extra={"order_id": str(order_id)})
                continue
            self._orch.orders.cancel_order(order_id, system, TIMEOUT_REASON)
            cancelled.append(order_id)

        logger.info(
            "reservation_sweep_completed",
            extra={
                "cutoff": cutoff,
                "examined": len(candidates),
                "cancelled": len(cancelled),
            },
        )
        return SweepResult(cutoff=cutoff, examined=len(candidates), cancelled_order_ids=tuple(cancelled))
