"""
Module: dte_kernel.models.invoice
Responsibility: ORM persistence for issued tax documents (DTEs) and their
    line items.
Architecture position: Kernel > Models.  May import from db/ and the domain
    enums only.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - (branch_id, series, sequential) is unique; so are control_number,
      control_code and generation_code.
    - Status moves EMITTED -> VOIDED at most once; amounts, identifiers and
      lines never change after issuance (db/immutability.py).
    - Lines carry the unit price, unit cost and product name/sku/kind as they
      were at issuance; later catalog edits do not reach them.

Failure modes:
    - IntegrityError on a duplicate sequential or identifier.
    - ImmutabilityViolationError on any other update or on delete.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dte_kernel.db.base import Base, TrackedBase, UUIDString
from dte_kernel.domain.dtos import (
    DocumentType,
    InvoiceStatus,
    PaymentMethod,
    ProductKind,
)

if TYPE_CHECKING:
    from dte_kernel.models.branch import Branch
    from dte_kernel.models.client import Client


class Invoice(TrackedBase):
    """
    Issued document header.

    Contract:
        ``created_by_id`` and ``issued_by_id`` both hold the issuing user.
        ``issue_date`` is the local business day; ``issued_at`` the UTC
        instant.  The four tax/retention fields are stored even when zero.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint(
            "branch_id", "series", "sequential", name="uq_invoice_branch_series_seq"
        ),
        UniqueConstraint("generation_code", name="uq_invoice_generation_code"),
        Index("idx_invoice_branch_control_number", "branch_id", "control_number"),
        Index("idx_invoice_issue_date", "issue_date"),
        Index("idx_invoice_status", "status"),
        Index("idx_invoice_branch", "branch_id"),
        Index("idx_invoice_client", "client_id"),
        Index("idx_invoice_issued_by", "issued_by_id", "issue_date"),
    )

    # Identifiers
    control_number: Mapped[str] = mapped_column(String(30), nullable=False)
    control_code: Mapped[str] = mapped_column(String(40), nullable=False)
    generation_code: Mapped[str] = mapped_column(String(36), nullable=False)
    reception_seal: Mapped[str] = mapped_column(String(64), nullable=False)

    series: Mapped[str] = mapped_column(String(10), nullable=False)
    sequential: Mapped[int] = mapped_column(nullable=False)

    document_type: Mapped[DocumentType] = mapped_column(String(20), nullable=False)

    status: Mapped[InvoiceStatus] = mapped_column(
        String(10),
        default=InvoiceStatus.EMITTED,
        nullable=False,
    )

    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    issued_at: Mapped[datetime] = mapped_column(nullable=False)

    branch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("branches.id"),
        nullable=False,
    )

    client_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=False,
    )

    issued_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    payment_method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    vat: Mapped[Decimal] = mapped_column(nullable=False)
    rent_retention: Mapped[Decimal] = mapped_column(nullable=False)
    vat_retention: Mapped[Decimal] = mapped_column(nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)

    observations: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Voidance
    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    voided_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Relationships
    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number",
        lazy="selectin",
    )

    branch: Mapped["Branch"] = relationship(lazy="selectin")

    client: Mapped["Client"] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<Invoice {self.control_number} status={self.status}>"

    @property
    def is_emitted(self) -> bool:
        return InvoiceStatus(self.status) == InvoiceStatus.EMITTED

    @property
    def is_voided(self) -> bool:
        return InvoiceStatus(self.status) == InvoiceStatus.VOIDED


class InvoiceLine(Base):
    """
    One priced line of an issued document.

    ``subtotal`` is ``max(quantity * unit_price - discount, 0)`` and is stored
    unrounded.
    """

    __tablename__ = "invoice_lines"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_number", name="uq_invoice_line_number"),
        Index("idx_invoice_line_product", "product_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    # Snapshot of the product at issuance
    product_sku: Mapped[str] = mapped_column(String(50), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_kind: Mapped[ProductKind] = mapped_column(String(10), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(nullable=False)
    discount: Mapped[Decimal] = mapped_column(nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="lines")

    @property
    def tracks_stock(self) -> bool:
        return ProductKind(self.product_kind) == ProductKind.GOOD

    def __repr__(self) -> str:
        return f"<InvoiceLine {self.line_number} {self.product_sku} x{self.quantity}>"
