"""
DTOs -- immutable data crossing the kernel boundary.

Responsibility:
    Defines the inbound request shapes (LineRequest, InvoiceDraft,
    InvoiceFilters) and the outbound records returned to callers
    (InvoicePreview, InvoiceRecord, StockMovementRecord, DashboardMetrics,
    InvoicePage, UserDaySummary), plus the string enums shared with the
    ORM models.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked from services and selectors only.

Invariants enforced:
    - Callers never receive ORM objects; every record is a frozen dataclass.
    - Draft validation happens before any transaction: empty item lists,
      non-positive or non-integer quantities, negative or over-precise
      discounts, malformed ids and unknown enum values are rejected up front.

Data flow:
    InvoiceDraft -> InvoicePreview -> (persisted Invoice) -> InvoiceRecord
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from dte_kernel.domain.amount_words import amount_in_words
from dte_kernel.domain.money import STORED_PLACES, ZERO, to_decimal
from dte_kernel.exceptions import (
    EmptyInvoiceError,
    InvalidDiscountError,
    InvalidDraftError,
    InvalidQuantityError,
)

if TYPE_CHECKING:
    from dte_kernel.models.invoice import Invoice as InvoiceModel
    from dte_kernel.models.invoice import InvoiceLine as InvoiceLineModel
    from dte_kernel.models.product import Product as ProductModel
    from dte_kernel.models.stock_movement import StockMovement as StockMovementModel


_SERIES_PATTERN = re.compile(r"[A-Z0-9]{1,10}")


# =============================================================================
# Enums
# =============================================================================


class DocumentType(str, Enum):
    """Kind of tax document being issued."""

    INVOICE = "invoice"
    TICKET = "ticket"
    FISCAL_CREDIT = "fiscal_credit"
    EXPORT = "export"
    CREDIT_NOTE = "credit_note"
    DEBIT_NOTE = "debit_note"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CREDIT = "credit"


class InvoiceStatus(str, Enum):
    """Lifecycle status of an invoice.

    Contract: Transitions are one-way: EMITTED -> VOIDED.  DRAFT is modeled
    for completeness; the issuance engine never persists it.
    """

    DRAFT = "draft"
    EMITTED = "emitted"
    VOIDED = "voided"


class ProductKind(str, Enum):
    GOOD = "good"
    SERVICE = "service"


class StockDirection(str, Enum):
    """IN adds, OUT subtracts, ADJUST moves the level either way."""

    IN = "in"
    OUT = "out"
    ADJUST = "adjust"


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidDraftError(
            field_name, f"{value!r} is not one of: {allowed}"
        ) from None


def _coerce_uuid(value, field_name: str) -> UUID:
    """Accept a UUID or its string form."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise InvalidDraftError(field_name, f"{value!r} is not a valid id") from None


# =============================================================================
# Inbound
# =============================================================================


@dataclass(frozen=True)
class LineRequest:
    """One cart line: which product, how many, and a line-level discount."""

    product_id: UUID
    quantity: int
    discount: Decimal = ZERO

    def validate(self) -> LineRequest:
        product_id = _coerce_uuid(self.product_id, "product_id")
        if (
            isinstance(self.quantity, bool)
            or not isinstance(self.quantity, int)
            or self.quantity <= 0
        ):
            raise InvalidQuantityError(str(product_id), self.quantity)
        try:
            discount = to_decimal(self.discount)
        except (TypeError, ValueError):
            raise InvalidDiscountError(str(product_id), self.discount) from None
        if discount < ZERO:
            raise InvalidDiscountError(str(product_id), self.discount)
        # Stored amounts keep at most STORED_PLACES decimals
        if discount.normalize().as_tuple().exponent < -STORED_PLACES:
            raise InvalidDiscountError(str(product_id), self.discount)
        return replace(self, product_id=product_id, discount=discount)


@dataclass(frozen=True)
class InvoiceDraft:
    """
    Everything needed to preview or issue one document.

    Contract:
        ``validate()`` returns a normalized copy (enums coerced, discounts as
        Decimal, series upper-cased) or raises a ValidationFailureError.
    """

    branch_id: UUID
    series: str
    document_type: DocumentType
    client_id: UUID
    items: tuple[LineRequest, ...]
    payment_method: PaymentMethod = PaymentMethod.CASH
    apply_rent_retention: bool = False
    apply_vat_retention: bool = False
    observations: str | None = None

    def validate(self) -> InvoiceDraft:
        if not self.items:
            raise EmptyInvoiceError()
        if not isinstance(self.series, str) or not self.series.strip():
            raise InvalidDraftError("series", "series is required")
        series = self.series.strip().upper()
        if not _SERIES_PATTERN.fullmatch(series):
            raise InvalidDraftError(
                "series", f"{self.series!r} must be 1-10 letters or digits"
            )
        if self.observations is not None and len(self.observations) > 2000:
            raise InvalidDraftError("observations", "longer than 2000 characters")

        return replace(
            self,
            branch_id=_coerce_uuid(self.branch_id, "branch_id"),
            client_id=_coerce_uuid(self.client_id, "client_id"),
            series=series,
            document_type=_coerce_enum(DocumentType, self.document_type, "document_type"),
            payment_method=_coerce_enum(PaymentMethod, self.payment_method, "payment_method"),
            items=tuple(item.validate() for item in self.items),
        )


@dataclass(frozen=True)
class InvoiceFilters:
    """Listing filters; every field is optional.  ``q`` is a free-text search."""

    date_from: date | None = None
    date_to: date | None = None
    document_type: DocumentType | None = None
    status: InvoiceStatus | None = None
    client_id: UUID | None = None
    branch_id: UUID | None = None
    payment_method: PaymentMethod | None = None
    q: str | None = None
    page: int = 1
    size: int | None = None


# =============================================================================
# Outbound
# =============================================================================


@dataclass(frozen=True)
class ProductSnapshot:
    id: UUID
    sku: str
    name: str
    kind: ProductKind
    unit_price: Decimal
    cost: Decimal
    stock_quantity: int
    is_active: bool

    @property
    def tracks_stock(self) -> bool:
        return self.kind == ProductKind.GOOD

    @classmethod
    def from_model(cls, model: ProductModel) -> ProductSnapshot:
        return cls(
            id=model.id,
            sku=model.sku,
            name=model.name,
            kind=ProductKind(model.kind),
            unit_price=model.unit_price,
            cost=model.cost,
            stock_quantity=model.stock_quantity,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class LinePreview:
    line_number: int
    product_id: UUID
    sku: str
    name: str
    kind: ProductKind
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal
    discount: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class InvoicePreview:
    """Computed breakdown of a draft; nothing was persisted to produce it."""

    branch_id: UUID
    client_id: UUID
    series: str
    document_type: DocumentType
    payment_method: PaymentMethod
    lines: tuple[LinePreview, ...]
    subtotal: Decimal
    vat: Decimal
    rent_retention: Decimal
    vat_retention: Decimal
    total: Decimal

    @property
    def total_in_words(self) -> str:
        return amount_in_words(self.total)


@dataclass(frozen=True)
class InvoiceLineRecord:
    line_number: int
    product_id: UUID
    product_sku: str
    product_name: str
    product_kind: ProductKind
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal
    discount: Decimal
    subtotal: Decimal

    @classmethod
    def from_model(cls, model: InvoiceLineModel) -> InvoiceLineRecord:
        return cls(
            line_number=model.line_number,
            product_id=model.product_id,
            product_sku=model.product_sku,
            product_name=model.product_name,
            product_kind=ProductKind(model.product_kind),
            quantity=model.quantity,
            unit_price=model.unit_price,
            unit_cost=model.unit_cost,
            discount=model.discount,
            subtotal=model.subtotal,
        )


@dataclass(frozen=True)
class InvoiceRecord:
    """
    Issued document as returned to callers.

    Guarantees:
        - Lines are ordered by line number.
        - ``total_in_words`` is the Spanish legal rendering of ``total``.
    """

    id: UUID
    control_number: str
    control_code: str
    generation_code: str
    reception_seal: str
    series: str
    sequential: int
    document_type: DocumentType
    status: InvoiceStatus
    issue_date: date
    issued_at: datetime
    branch_id: UUID
    branch_code: str
    client_id: UUID
    client_name: str
    issued_by_id: UUID
    payment_method: PaymentMethod
    subtotal: Decimal
    vat: Decimal
    rent_retention: Decimal
    vat_retention: Decimal
    total: Decimal
    total_in_words: str
    observations: str | None
    lines: tuple[InvoiceLineRecord, ...]
    voided_at: datetime | None = None
    voided_by_id: UUID | None = None

    @property
    def is_voided(self) -> bool:
        return self.status == InvoiceStatus.VOIDED

    @classmethod
    def from_model(cls, model: InvoiceModel) -> InvoiceRecord:
        lines = sorted(model.lines, key=lambda line: line.line_number)
        return cls(
            id=model.id,
            control_number=model.control_number,
            control_code=model.control_code,
            generation_code=model.generation_code,
            reception_seal=model.reception_seal,
            series=model.series,
            sequential=model.sequential,
            document_type=DocumentType(model.document_type),
            status=InvoiceStatus(model.status),
            issue_date=model.issue_date,
            issued_at=model.issued_at,
            branch_id=model.branch_id,
            branch_code=model.branch.code,
            client_id=model.client_id,
            client_name=model.client.name,
            issued_by_id=model.issued_by_id,
            payment_method=PaymentMethod(model.payment_method),
            subtotal=model.subtotal,
            vat=model.vat,
            rent_retention=model.rent_retention,
            vat_retention=model.vat_retention,
            total=model.total,
            total_in_words=amount_in_words(model.total),
            observations=model.observations,
            lines=tuple(InvoiceLineRecord.from_model(line) for line in lines),
            voided_at=model.voided_at,
            voided_by_id=model.voided_by_id,
        )


@dataclass(frozen=True)
class StockMovementRecord:
    id: UUID
    product_id: UUID
    direction: StockDirection
    quantity: int
    delta: int
    balance_after: int
    note: str | None
    invoice_id: UUID | None
    created_at: datetime
    created_by_id: UUID

    @classmethod
    def from_model(cls, model: StockMovementModel) -> StockMovementRecord:
        return cls(
            id=model.id,
            product_id=model.product_id,
            direction=StockDirection(model.direction),
            quantity=model.quantity,
            delta=model.delta,
            balance_after=model.balance_after,
            note=model.note,
            invoice_id=model.invoice_id,
            created_at=model.created_at,
            created_by_id=model.created_by_id,
        )


@dataclass(frozen=True)
class InvoicePage:
    items: tuple[InvoiceRecord, ...]
    page: int
    size: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.size - 1) // self.size if self.size else 0


@dataclass(frozen=True)
class DailySales:
    day: date
    total: Decimal
    invoice_count: int


@dataclass(frozen=True)
class DashboardMetrics:
    """
    Sales figures over EMITTED invoices.

    Voided invoices are excluded from every figure, so ``by_status`` only
    ever reports the emitted bucket; it is kept so report consumers can
    aggregate mechanically.
    """

    total_sales: Decimal
    invoice_count: int
    average_ticket: Decimal
    by_document_type: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)
    daily_sales: tuple[DailySales, ...] = ()


@dataclass(frozen=True)
class UserDaySummary:
    user_id: UUID
    day: date
    total_sales: Decimal
    invoice_count: int
    last_issued_at: datetime | None
    invoices: tuple[InvoiceRecord, ...] = ()
