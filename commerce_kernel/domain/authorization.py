"""
Role-based authorization (``commerce_kernel.domain.authorization``).

The default ``AuthorizationProvider``: administrators are the admin, staff
and system roles; a supplier owns exactly the supplier id it carries; a
customer owns the orders placed under its actor id.

``require_*`` helpers raise ``NotAuthorizedError`` without naming the
target entity.
"""

from __future__ import annotations

from commerce_kernel.domain.actors import Actor, ActorRole
from commerce_kernel.domain.collaborators import AuthorizationProvider
from commerce_kernel.exceptions import NotAuthorizedError

ADMINISTRATIVE_ROLES: frozenset[ActorRole] = frozenset({
    ActorRole.ADMIN, ActorRole.STAFF, ActorRole.SYSTEM,
})


class RoleBasedAuthorization(AuthorizationProvider):
    def is_administrator(self, actor: Actor) -> bool:
        return actor.role in ADMINISTRATIVE_ROLES

    def owns_supplier(self, actor: Actor, supplier_id: str) -> bool:
        return actor.role is ActorRole.SUPPLIER and actor.supplier_id == supplier_id

    def owns_order(self, actor: Actor, customer_id: str) -> bool:
        return actor.role is ActorRole.CUSTOMER and actor.actor_id == customer_id


def require_administrator(auth: AuthorizationProvider, actor: Actor, action: str) -> None:
    if not auth.is_administrator(actor):
        raise NotAuthorizedError(actor.actor_id, action)


def require_supplier_access(
    auth: AuthorizationProvider, actor: Actor, supplier_id: str, action: str
) -> None:
    if auth.is_administrator(actor) or auth.owns_supplier(actor, supplier_id):
        return
    raise NotAuthorizedError(actor.actor_id, action)


def require_order_access(
    auth: AuthorizationProvider, actor: Actor, customer_id: str, action: str
) -> None:
    if auth.is_administrator(actor) or auth.owns_order(actor, customer_id):
        return
    raise NotAuthorizedError(actor.actor_id, action)
