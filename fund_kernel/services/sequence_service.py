"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for ledger transactions.
    A dedicated counter table with row-level locking (``SELECT ... FOR
    UPDATE`` on PostgreSQL; the database write lock taken by BEGIN IMMEDIATE
    on SQLite) guarantees uniqueness and ordering under concurrent access.

Invariants enforced:
    - The counter row is the sole source of truth for the next value; the
      aggregate-max-plus-one pattern is never used.
    - The increment is only visible after the caller's transaction commits.
      A rollback returns the value.

Failure modes:
    - IntegrityError: concurrent creation of the same counter row (handled
      with a savepoint rollback and retry).
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fund_kernel.logging_config import get_logger
from fund_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Transactional named sequences.

    Does NOT call ``session.commit()``; the caller controls boundaries.

    Usage:
        seq = SequenceService(session).next_value(SequenceService.TRANSACTION)
    """

    TRANSACTION = "transaction"

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
        """
        Lock (or create) the counter row, increment it, return the new value.

        Postconditions:
            Returns an integer > 0 strictly greater than any value previously
            returned for this sequence name.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
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
        """Current value without incrementing; None if the sequence is unused."""
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
