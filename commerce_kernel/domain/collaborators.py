"""
External collaborator seams (``commerce_kernel.domain.collaborators``).

Responsibility
--------------
Abstract interfaces for what the kernel consumes but does not own: site
settings, authorization decisions and notification delivery.  Concrete
implementations live in outer packages (``commerce_config.bridges``) or in
``domain/authorization.py`` for the role-based default.

Architecture position
---------------------
**Kernel domain layer**.  ZERO I/O.  The outer layers implement these
interfaces; the kernel never imports them back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from commerce_kernel.domain.actors import Actor
from commerce_kernel.domain.events import DomainEvent


@dataclass(frozen=True)
class CommerceSettings:
    """
    Site settings read at call time.

    ``tax_rate`` is a fraction (0.08 = 8%).  Amounts are minor units.
    Shipping is free when the discounted subtotal is strictly greater than
    ``free_shipping_threshold``.
    """

    tax_rate: Decimal = Decimal("0.08")
    free_shipping_threshold: int = 5000
    flat_shipping_rate: int = 500
    low_stock_threshold: int = 5
    currency: str = "LKR"
    reservation_timeout_minutes: int = 30

    def __post_init__(self) -> None:
        if not isinstance(self.tax_rate, Decimal):
            raise TypeError("tax_rate must be a Decimal")
        if self.tax_rate < 0 or self.tax_rate > 1:
            raise ValueError(f"tax_rate must be within [0, 1], got {self.tax_rate}")
        for name in (
            "free_shipping_threshold",
            "flat_shipping_rate",
            "low_stock_threshold",
            "reservation_timeout_minutes",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"currency must be a 3-letter code, got {self.currency!r}")


class SettingsProvider(ABC):
    @abstractmethod
    def current(self) -> CommerceSettings:
        """Settings in force right now."""


class StaticSettingsProvider(SettingsProvider):
    """Fixed settings; the default when no site configuration is wired in."""

    def __init__(self, settings: CommerceSettings | None = None):
        self._settings = settings or CommerceSettings()

    def current(self) -> CommerceSettings:
        return self._settings


class AuthorizationProvider(ABC):
    """Answers ownership and role questions about an Actor."""

    @abstractmethod
    def is_administrator(self, actor: Actor) -> bool:
        ...

    @abstractmethod
    def owns_supplier(self, actor: Actor, supplier_id: str) -> bool:
        ...

    @abstractmethod
    def owns_order(self, actor: Actor, customer_id: str) -> bool:
        ...


class NotificationSink(ABC):
    """Receives domain events after the unit of work that produced them commits."""

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        ...
