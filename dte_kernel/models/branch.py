"""
Module: dte_kernel.models.branch
Responsibility: Branch (establishment) reference rows.  The branch code's
    trailing digits become the establishment number printed in the
    regulator control code.
Architecture position: Kernel > Models.  May import from db/ only.

Failure modes:
    - IntegrityError on duplicate code (uq_branch_code).
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dte_kernel.db.base import Base


class Branch(Base):
    """One physical establishment, e.g. ``SUC001`` Casa Matriz."""

    __tablename__ = "branches"

    __table_args__ = (UniqueConstraint("code", name="uq_branch_code"),)

    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Branch {self.code}>"
