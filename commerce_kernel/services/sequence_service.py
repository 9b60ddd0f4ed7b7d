"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Strictly increasing numbers for order numbers.  A dedicated counter row
    is locked (``SELECT ... FOR UPDATE``) and incremented; the aggregate
    max-plus-one pattern is never used.

Architecture position:
    Kernel > Services.  Called by OrderEngine inside the checkout savepoint.

Invariants enforced:
    - Monotonic: each value is greater than every value handed out before.
    - Transactional: an allocation becomes permanent only when the caller's
      transaction commits.  A rolled-back checkout never exposes its number,
      so no committed order ever shares a number with another.

Failure modes:
    - IntegrityError on a concurrent first-use insert of the same counter
      (handled by savepoint rollback and re-read).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from commerce_kernel.logging_config import get_logger
from commerce_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Named-sequence allocator.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT format values; callers render them (``ORD-00000042``).
    """

    ORDER_NUMBER = "order_number"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """Lock, increment and return the next value (always > 0)."""
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create the row at the same
            # time, so insert inside a savepoint and fall back to re-reading.
            savepoint = self._session.begin_nested()
            try:
                self._session.add(SequenceCounter(name=sequence_name, current_value=1))
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if never allocated."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
