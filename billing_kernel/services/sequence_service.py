"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing integers per named sequence.
    Uses a dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) to guarantee uniqueness and ordering under
    concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by SequenceAllocator, which derives one counter name per
    (scope, financial year).

Invariants enforced:
    - Sequence monotonicity: the locked counter row is the sole source of
      truth for the next value once it exists.  A counter is created on
      first use, starting after the caller-supplied seed (the highest
      number already present in the scope's own table).
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
    - Deadlock: mitigated by always locking a single row per call.
"""

from typing import Callable

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from billing_kernel.db.base import Base
from billing_kernel.logging_config import get_logger

logger = get_logger("services.sequence")

SeedFn = Callable[[], int]


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its last issued value, e.g.
    ``invoice:B2B:2024-25`` or ``payment_credit:2024-25``.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(80),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer.  Never commits; the caller's transaction owns the increment.

    Usage:
        with session.begin():
            seq = sequence_service.next_value("payment_credit:2024-25")
            # If transaction rolls back, seq is not consumed
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str, seed: SeedFn | None = None) -> int:
        """
        Get the next value for a named sequence.

        Locks the sequence row (or creates it if it does not exist),
        increments it and returns the new value.

        Args:
            sequence_name: Name of the sequence.
            seed: Called only when the counter row does not exist yet;
                returns the highest value already issued for this sequence
                (0 when none).  Numbering continues after it.

        Returns:
            The next sequence value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            start = (seed() if seed is not None else 0) + 1
            # Savepoint so a lost creation race does not roll back other work
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=start)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": start, "seeded": True},
                )
                return start
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
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or None if the sequence doesn't exist.
        """
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: Only for tests and data-repair scripts.  Resetting a live
        sequence re-issues numbers and trips the unique constraints.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=value)
            self._session.add(counter)
        else:
            counter.current_value = value

        self._session.flush()
