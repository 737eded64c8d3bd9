"""
Module: dte_kernel.models.sequence
Responsibility: Locked counter rows for per-branch, per-series document
    numbering.
Architecture position: Kernel > Models.  Written only by SequenceService.

Invariants enforced:
    - One row per (branch_id, series) (uq_sequence_branch_series).
    - For every key, each value in [1, next_value - 1] was handed to exactly
      one committed invoice.
"""

from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dte_kernel.db.base import Base, UUIDString


class DocumentSequence(Base):
    """Next sequential to hand out for one branch and series."""

    __tablename__ = "document_sequences"

    __table_args__ = (
        UniqueConstraint("branch_id", "series", name="uq_sequence_branch_series"),
    )

    branch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("branches.id"),
        nullable=False,
    )

    series: Mapped[str] = mapped_column(String(10), nullable=False)

    next_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<DocumentSequence {self.branch_id}/{self.series} next={self.next_value}>"
