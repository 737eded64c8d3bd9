"""
Module: dte_kernel.selectors.invoice_selector
Responsibility: Read-only queries over issued documents: single lookup,
    filtered and paginated listing, dashboard metrics and a cashier's
    daily summary.
Architecture position: Kernel > Selectors.  Returns domain DTOs only.

Invariants enforced:
    - Dashboard and daily figures count EMITTED invoices only; voided
      documents never contribute to sales.
    - Money aggregation is done with Decimal in Python, so results are
      identical on PostgreSQL and SQLite.
"""

from collections import Counter
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from dte_kernel.domain.dtos import (
    DailySales,
    DashboardMetrics,
    InvoiceFilters,
    InvoicePage,
    InvoiceRecord,
    InvoiceStatus,
    UserDaySummary,
)
from dte_kernel.domain.money import ZERO, round_money
from dte_kernel.exceptions import InvoiceNotFoundError
from dte_kernel.models.client import Client
from dte_kernel.models.invoice import Invoice
from dte_kernel.selectors.base import BaseSelector

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


def _enum_value(value):
    return getattr(value, "value", value)


class InvoiceSelector(BaseSelector):
    """
    Invoice queries.

    Contract:
        Listing clamps ``page`` to >= 1 and ``size`` to [1, max_page_size].
        Results are ordered newest first (issue instant, then sequential).
    """

    def __init__(
        self,
        session: Session,
        *,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        super().__init__(session)
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    def get(self, invoice_id: UUID) -> InvoiceRecord:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return InvoiceRecord.from_model(invoice)

    def by_control_number(
        self, branch_id: UUID, control_number: str
    ) -> InvoiceRecord | None:
        """Control numbers repeat across branches; the pair is unique."""
        invoice = self.session.execute(
            select(Invoice).where(
                Invoice.branch_id == branch_id,
                Invoice.control_number == control_number,
            )
        ).scalar_one_or_none()
        return InvoiceRecord.from_model(invoice) if invoice is not None else None

    def _filtered(self, filters: InvoiceFilters):
        query = select(Invoice).join(Client, Invoice.client_id == Client.id)

        if filters.date_from is not None:
            query = query.where(Invoice.issue_date >= filters.date_from)
        if filters.date_to is not None:
            query = query.where(Invoice.issue_date <= filters.date_to)
        if filters.document_type is not None:
            query = query.where(
                Invoice.document_type == _enum_value(filters.document_type)
            )
        if filters.status is not None:
            query = query.where(Invoice.status == _enum_value(filters.status))
        if filters.client_id is not None:
            query = query.where(Invoice.client_id == filters.client_id)
        if filters.branch_id is not None:
            query = query.where(Invoice.branch_id == filters.branch_id)
        if filters.payment_method is not None:
            query = query.where(
                Invoice.payment_method == _enum_value(filters.payment_method)
            )
        if filters.q:
            pattern = f"%{filters.q.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(Invoice.control_number).like(pattern),
                    func.lower(Invoice.generation_code).like(pattern),
                    func.lower(Client.name).like(pattern),
                )
            )
        return query

    def search(self, filters: InvoiceFilters | None = None) -> InvoicePage:
        filters = filters or InvoiceFilters()
        page = max(filters.page or 1, 1)
        size = filters.size or self._default_page_size
        size = min(max(size, 1), self._max_page_size)

        query = self._filtered(filters)
        total = self.session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        rows = self.session.execute(
            query.order_by(Invoice.issued_at.desc(), Invoice.sequential.desc())
            .offset((page - 1) * size)
            .limit(size)
        ).scalars()

        return InvoicePage(
            items=tuple(InvoiceRecord.from_model(row) for row in rows),
            page=page,
            size=size,
            total=total,
        )

    def dashboard_metrics(
        self,
        branch_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> DashboardMetrics:
        query = select(
            Invoice.document_type,
            Invoice.status,
            Invoice.total,
            Invoice.issue_date,
        ).where(Invoice.status == InvoiceStatus.EMITTED.value)
        if branch_id is not None:
            query = query.where(Invoice.branch_id == branch_id)
        if date_from is not None:
            query = query.where(Invoice.issue_date >= date_from)
        if date_to is not None:
            query = query.where(Invoice.issue_date <= date_to)

        by_type: Counter[str] = Counter()
        by_status: Counter[str] = Counter()
        daily_totals: dict[date, Decimal] = {}
        daily_counts: Counter[date] = Counter()
        total_sales = ZERO
        count = 0

        for document_type, status, amount, issue_date in self.session.execute(query):
            count += 1
            total_sales += amount
            by_type[_enum_value(document_type)] += 1
            by_status[_enum_value(status)] += 1
            daily_totals[issue_date] = daily_totals.get(issue_date, ZERO) + amount
            daily_counts[issue_date] += 1

        average = total_sales / count if count else ZERO

        return DashboardMetrics(
            total_sales=round_money(total_sales),
            invoice_count=count,
            average_ticket=round_money(average),
            by_document_type=dict(by_type),
            by_status=dict(by_status),
            daily_sales=tuple(
                DailySales(
                    day=day,
                    total=round_money(daily_totals[day]),
                    invoice_count=daily_counts[day],
                )
                for day in sorted(daily_totals)
            ),
        )

    def user_day_summary(self, user_id: UUID, day: date) -> UserDaySummary:
        rows = self.session.execute(
            select(Invoice)
            .where(
                Invoice.issued_by_id == user_id,
                Invoice.issue_date == day,
                Invoice.status == InvoiceStatus.EMITTED.value,
            )
            .order_by(Invoice.issued_at.desc(), Invoice.sequential.desc())
        ).scalars().all()

        invoices = tuple(InvoiceRecord.from_model(row) for row in rows)
        return UserDaySummary(
            user_id=user_id,
            day=day,
            total_sales=round_money(sum((inv.total for inv in invoices), ZERO)),
            invoice_count=len(invoices),
            last_issued_at=invoices[0].issued_at if invoices else None,
            invoices=invoices,
        )
