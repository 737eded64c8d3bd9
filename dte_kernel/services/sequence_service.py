"""
SequenceService -- gap-free document sequentials via locked counter rows.

Responsibility:
    Hands out the next sequential for a (branch, series) pair.  Uses a
    dedicated counter table with row-level locking (``SELECT ... FOR UPDATE``)
    so concurrent issuers at the same branch and series are serialized and
    every number is used exactly once.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by InvoiceWriter inside the issuance transaction.

Invariants enforced:
    - Counter row is the sole source of truth.  The aggregate-max-plus-one
      pattern over invoices is never used.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the number, so a failed
      issuance never burns a sequential.

Failure modes:
    - IntegrityError: concurrent first-use creation of the same counter
      (handled via savepoint rollback and a locked re-read).
    - OperationalError: lock wait exceeded the configured lock timeout.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from dte_kernel.logging_config import get_logger
from dte_kernel.models.sequence import DocumentSequence
from dte_kernel.services.base import BaseService

logger = get_logger("services.sequence")


@dataclass(frozen=True)
class SequenceState:
    branch_id: UUID
    series: str
    next_value: int

    @property
    def last_issued(self) -> int:
        return self.next_value - 1


class SequenceService(BaseService):
    """
    Allocates per-branch, per-series document sequentials.

    Guarantees:
        - For a given key the values returned by committed transactions are
          exactly 1, 2, 3 ... with no gaps and no repeats.
        - ``SELECT ... FOR UPDATE`` serializes concurrent allocations for the
          same key; different keys never block each other.

    Non-goals:
        - Does NOT call ``session.commit()``.

    Usage:
        with session.begin():
            seq = SequenceService(session).next_value(branch_id, "FAC")
            # If the transaction rolls back, seq is not consumed
    """

    def _locked(self, branch_id: UUID, series: str) -> DocumentSequence | None:
        return self.session.execute(
            select(DocumentSequence)
            .where(
                DocumentSequence.branch_id == branch_id,
                DocumentSequence.series == series,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, branch_id: UUID, series: str) -> int:
        """
        Return the next sequential for ``(branch_id, series)``.

        This method:
        1. Locks the counter row (or creates it on first use)
        2. Reads ``next_value`` and stores ``next_value + 1``
        3. Returns the pre-increment value

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer >= 1.
            - The counter row is locked until the transaction completes.
        """
        counter = self._locked(branch_id, series)

        if counter is None:
            # First use of this key.  Another transaction may create the same
            # row concurrently; the savepoint keeps the caller's work intact.
            savepoint = self.session.begin_nested()
            try:
                self.session.add(
                    DocumentSequence(branch_id=branch_id, series=series, next_value=2)
                )
                self.session.flush()
                savepoint.commit()
                logger.info(
                    "sequence_allocated",
                    extra={
                        "branch_id": str(branch_id),
                        "series": series,
                        "value": 1,
                        "counter_created": True,
                    },
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"branch_id": str(branch_id), "series": series},
                )
                savepoint.rollback()
                counter = self._locked(branch_id, series)
                if counter is None:
                    raise

        value = counter.next_value
        counter.next_value = value + 1
        self.session.flush()

        logger.info(
            "sequence_allocated",
            extra={"branch_id": str(branch_id), "series": series, "value": value},
        )
        return value

    def peek_next(self, branch_id: UUID, series: str) -> int:
        """Value the next allocation would return; takes no lock."""
        next_value = self.session.execute(
            select(DocumentSequence.next_value).where(
                DocumentSequence.branch_id == branch_id,
                DocumentSequence.series == series,
            )
        ).scalar_one_or_none()
        return next_value if next_value is not None else 1

    def list_for_branch(self, branch_id: UUID) -> list[SequenceState]:
        rows = self.session.execute(
            select(DocumentSequence)
            .where(DocumentSequence.branch_id == branch_id)
            .order_by(DocumentSequence.series)
        ).scalars()
        return [
            SequenceState(
                branch_id=row.branch_id,
                series=row.series,
                next_value=row.next_value,
            )
            for row in rows
        ]
