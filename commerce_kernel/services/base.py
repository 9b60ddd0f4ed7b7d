"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session contract for every write service.
    Services receive a SQLAlchemy ``Session`` and use ``session.flush()``;
    they never call ``session.commit()`` or ``session.rollback()``.

Architecture position:
    Kernel > Services.  The caller (CommerceService unit of work, or a test
    harness) owns commit and rollback, so checkout can reserve stock, bump
    a discount's usage and insert the order in one transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from commerce_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - Never commits or rolls back the outer transaction.  Savepoints
          (``session.begin_nested()``) are allowed for all-or-nothing steps.

    Non-goals:
        - Read-only queries belong in ``commerce_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
