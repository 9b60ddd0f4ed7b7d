"""
commerce_services.commerce_orchestrator -- DI container for kernel services.

Responsibility:
    Creates every kernel service and selector exactly once per unit of
    work and wires them together.  No service constructs another service
    internally; the wiring below is the whole dependency graph.

Architecture position:
    Services -- outer shell over the kernel.  The only place kernel
    services are constructed and composed.

Invariants enforced:
    - Single-instance lifecycle: one ledger, one order engine, one event
      collector per unit of work.
    - All services share the same Session, Clock and EventCollector.

Usage:
    orchestrator = CommerceOrchestrator(session, settings=provider, clock=clock)
    orchestrator.orders.create_order(...)
    orchestrator.inventory.low_stock_products()
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from commerce_kernel.domain.authorization import RoleBasedAuthorization
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.domain.collaborators import AuthorizationProvider, SettingsProvider
from commerce_kernel.domain.events import EventCollector
from commerce_kernel.selectors.inventory_selector import InventorySelector
from commerce_kernel.selectors.order_selector import OrderSelector
from commerce_kernel.services.discount_engine import DiscountEngine
from commerce_kernel.services.fulfillment_coordinator import FulfillmentCoordinator
from commerce_kernel.services.inventory_ledger import InventoryLedger
from commerce_kernel.services.order_engine import OrderEngine
from commerce_kernel.services.pricing_calculator import PricingCalculator
from commerce_kernel.services.sequence_service import SequenceService


class CommerceOrchestrator:
    """Central factory for kernel services.

    Contract:
        Receives a Session and the shared collaborators, constructs every
        service in dependency order, and exposes them as attributes.

    Non-goals:
        - Does NOT manage transaction boundaries (CommerceService does).
        - Does NOT publish events; it only collects them.
    """

    def __init__(
        self,
        session: Session,
        settings: SettingsProvider,
        clock: Clock | None = None,
        authorization: AuthorizationProvider | None = None,
        events: EventCollector | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self.settings = settings
        self.authorization = authorization or RoleBasedAuthorization()
        self.events = events if events is not None else EventCollector()

        # Foundational services (no service dependencies)
        self.sequences = SequenceService(session)
        self.ledger = InventoryLedger(session, self._clock, settings, self.events)
        self.discounts = DiscountEngine(session, self._clock)

        # Pricing (depends on discounts)
        self.pricing = PricingCalculator(self.discounts, settings, self._clock)

        # Orders (depends on ledger, pricing, discounts, sequences)
        self.orders = OrderEngine(
            session,
            self._clock,
            ledger=self.ledger,
            pricing=self.pricing,
            discounts=self.discounts,
            sequences=self.sequences,
            authorization=self.authorization,
            events=self.events,
        )

        # Fulfillment (depends on orders and ledger)
        self.fulfillment = FulfillmentCoordinator(
            session,
            self._clock,
            ledger=self.ledger,
            orders=self.orders,
            authorization=self.authorization,
            events=self.events,
        )

        # Read side
        self.inventory = InventorySelector(session)
        self.order_reads = OrderSelector(session)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock
