"""
Module: dte_kernel.models.stock_movement
Responsibility: Append-only ledger of every change to a product's stock.
Architecture position: Kernel > Models.  Written only by StockLedger.

Invariants enforced:
    - Rows are never updated or deleted (db/immutability.py).
    - ``quantity`` is the non-negative magnitude; ``delta`` carries the sign
      (IN > 0, OUT < 0, ADJUST either way).
    - ``balance_after`` equals the product's stock counter right after
      this movement; ``product_seq`` orders a product's movements 1, 2, 3 ...
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dte_kernel.db.base import TrackedBase, UUIDString
from dte_kernel.domain.dtos import StockDirection


class StockMovement(TrackedBase):
    """One IN, OUT or ADJUST entry.  ``invoice_id`` links issue and void effects."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("product_id", "product_seq", name="uq_stock_movement_seq"),
        Index("idx_stock_movement_invoice", "invoice_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    product_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    direction: Mapped[StockDirection] = mapped_column(String(10), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    delta: Mapped[int] = mapped_column(Integer, nullable=False)

    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)

    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.direction} {self.delta:+d} "
            f"product={self.product_id} seq={self.product_seq}>"
        )
