"""
Module: commerce_kernel.models.sequence
Responsibility: Named monotonic counters (order numbers).
Architecture position: Kernel > Models.  Written only by SequenceService.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from commerce_kernel.db.base import Base


class SequenceCounter(Base):
    """
    One named sequence and its last allocated value.

    Row-level locking in SequenceService keeps allocation strictly
    monotonic under concurrency.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
