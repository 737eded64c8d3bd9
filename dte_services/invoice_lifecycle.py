"""
InvoiceLifecycleManager -- issue, void and report on DTE documents.

Responsibility:
    The entry point callers use for documents.  Validates drafts before any
    transaction starts, runs issuance and voidance as single atomic units
    over the kernel's InvoiceWriter, and answers read queries through the
    selectors.

Architecture position:
    Services layer -- owns transaction boundaries (commit / rollback).
    Depends on dte_kernel; receives its Database, policies and Clock by
    constructor injection.

State machine:
    (none) --create--> EMITTED --void--> VOIDED

Invariants enforced:
    - Atomicity: sequential allocation, invoice rows and stock movements
      commit together or not at all.  A failed issuance burns no number.
    - Voiding a VOIDED invoice raises InvoiceAlreadyVoidedError; it is not
      a no-op.
    - Callers only ever receive frozen DTOs.

Failure modes:
    - ValidationFailureError subclasses before any transaction.
    - NotFoundError, InsufficientStockError, InvalidStateError and
      IdentifierError subclasses after rollback.
    - TransactionAbortError for any infrastructure failure, after rollback.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from dte_kernel.db.engine import Database
from dte_kernel.domain.clock import Clock, SystemClock
from dte_kernel.domain.dtos import (
    DashboardMetrics,
    InvoiceDraft,
    InvoiceFilters,
    InvoicePage,
    InvoicePreview,
    InvoiceRecord,
    UserDaySummary,
)
from dte_kernel.domain.identifiers import DteNumberingScheme
from dte_kernel.domain.money import TaxPolicy
from dte_kernel.domain.pricing import price_draft
from dte_kernel.logging_config import LogContext, get_logger
from dte_kernel.selectors.catalog_selector import CatalogSelector
from dte_kernel.selectors.invoice_selector import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    InvoiceSelector,
)
from dte_kernel.services.invoice_writer import InvoiceWriter
from dte_services.unit_of_work import read_only, run_atomic

if TYPE_CHECKING:
    from dte_config.schema import DteConfig

logger = get_logger("services.invoice_lifecycle")


class InvoiceLifecycleManager:
    """
    Issues and voids documents and serves invoice queries.

    Contract:
        One database transaction per ``create`` or ``void``.  Reads run in
        their own short-lived sessions.

    Usage:
        manager = InvoiceLifecycleManager.from_config(database, config)
        record = manager.create(draft, issued_by_id=user_id)
        manager.void(record.id, voided_by_id=user_id)
    """

    def __init__(
        self,
        database: Database,
        *,
        tax_policy: TaxPolicy | None = None,
        numbering: DteNumberingScheme | None = None,
        clock: Clock | None = None,
        allow_negative_stock: bool = False,
        utc_offset_minutes: int = 0,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        self._db = database
        self._tax_policy = tax_policy or TaxPolicy()
        self._numbering = numbering or DteNumberingScheme()
        self._clock = clock or SystemClock()
        self._allow_negative_stock = allow_negative_stock
        self._utc_offset_minutes = utc_offset_minutes
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    @classmethod
    def from_config(
        cls,
        database: Database,
        config: DteConfig,
        clock: Clock | None = None,
    ) -> InvoiceLifecycleManager:
        return cls(
            database,
            tax_policy=config.taxes.tax_policy(),
            numbering=config.numbering.numbering_scheme(),
            clock=clock,
            allow_negative_stock=config.inventory.allow_negative_stock,
            utc_offset_minutes=config.reporting.utc_offset_minutes,
            default_page_size=config.listing.default_page_size,
            max_page_size=config.listing.max_page_size,
        )

    def _writer(self, session) -> InvoiceWriter:
        return InvoiceWriter(
            session,
            tax_policy=self._tax_policy,
            numbering=self._numbering,
            clock=self._clock,
            allow_negative_stock=self._allow_negative_stock,
            utc_offset_minutes=self._utc_offset_minutes,
        )

    def _selector(self, session) -> InvoiceSelector:
        return InvoiceSelector(
            session,
            default_page_size=self._default_page_size,
            max_page_size=self._max_page_size,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def preview(self, draft: InvoiceDraft) -> InvoicePreview:
        """
        Price a draft without side effects.

        Loads current product data, so repeated calls reflect catalog edits.
        Touches neither the sequence counter nor stock.
        """
        draft = draft.validate()
        with read_only(self._db) as session:
            products = CatalogSelector(session).products(
                item.product_id for item in draft.items
            )
            return price_draft(draft, products, self._tax_policy)

    def create(
        self,
        draft: InvoiceDraft,
        issued_by_id: UUID,
        issue_date: date | None = None,
    ) -> InvoiceRecord:
        """
        Issue a document atomically.

        Postconditions:
            - The invoice is EMITTED with a fresh gap-free sequential.
            - One OUT movement exists per GOOD line.
        """
        draft = draft.validate()

        with LogContext.bind(
            correlation_id=str(uuid.uuid4()),
            actor_id=str(issued_by_id),
            branch_id=str(draft.branch_id),
            series=draft.series,
        ):
            logger.info(
                "invoice_create_started",
                extra={
                    "document_type": draft.document_type.value,
                    "line_count": len(draft.items),
                },
            )

            def work(session) -> InvoiceRecord:
                invoice = self._writer(session).issue(draft, issued_by_id, issue_date)
                return InvoiceRecord.from_model(invoice)

            record = run_atomic(self._db, "invoice_create", work, logger)

            with LogContext.bind_invoice(record):
                logger.info(
                    "invoice_created",
                    extra={
                        "control_code": record.control_code,
                        "reception_seal": record.reception_seal,
                        "total": record.total,
                    },
                )
            return record

    def void(
        self,
        invoice_id: UUID,
        voided_by_id: UUID | None = None,
    ) -> InvoiceRecord:
        """
        Void an EMITTED invoice and return its stock.

        Monetary fields and identifiers are left unchanged.
        """
        with LogContext.bind(
            correlation_id=str(uuid.uuid4()),
            actor_id=str(voided_by_id) if voided_by_id else None,
            invoice_id=str(invoice_id),
        ):
            logger.info("invoice_void_started")

            def work(session) -> InvoiceRecord:
                invoice = self._writer(session).void(invoice_id, voided_by_id)
                return InvoiceRecord.from_model(invoice)

            record = run_atomic(self._db, "invoice_void", work, logger)

            with LogContext.bind_invoice(record):
                logger.info("invoice_voided", extra={"total": record.total})
            return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_invoice(self, invoice_id: UUID) -> InvoiceRecord:
        with read_only(self._db) as session:
            return self._selector(session).get(invoice_id)

    def list_invoices(self, filters: InvoiceFilters | None = None) -> InvoicePage:
        with read_only(self._db) as session:
            return self._selector(session).search(filters)

    def get_dashboard_metrics(
        self,
        branch_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> DashboardMetrics:
        with read_only(self._db) as session:
            return self._selector(session).dashboard_metrics(
                branch_id=branch_id,
                date_from=date_from,
                date_to=date_to,
            )

    def get_today_summary(self, user_id: UUID) -> UserDaySummary:
        """The user's EMITTED invoices for the current business day."""
        today = self._clock.today(self._utc_offset_minutes)
        with read_only(self._db) as session:
            return self._selector(session).user_day_summary(user_id, today)
