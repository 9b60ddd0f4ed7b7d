"""Authenticated caller identity as the kernel sees it."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    SUPPLIER = "supplier"
    ADMIN = "admin"
    SYSTEM = "system"


@dataclass(frozen=True)
class Actor:
    """
    Who is asking.

    ``supplier_id`` is set for supplier actors and names the supplier they
    act for.  Authentication happens outside the kernel; this value is
    trusted as given.
    """

    actor_id: str
    role: ActorRole
    supplier_id: str | None = None

    def __post_init__(self) -> None:
        if not self.actor_id:
            raise ValueError("actor_id must not be empty")
        if self.role is ActorRole.SUPPLIER and not self.supplier_id:
            raise ValueError("supplier actors must carry a supplier_id")

    @classmethod
    def system(cls, actor_id: str = "system") -> Actor:
        return cls(actor_id=actor_id, role=ActorRole.SYSTEM)
