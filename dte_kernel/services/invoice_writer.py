"""
InvoiceWriter -- flush-only persistence of issuance and voidance effects.

Responsibility:
    Performs every database effect of issuing or voiding a document inside
    the caller's transaction: product locks, priced recomputation, reference
    resolution, stock checks, sequential allocation, identifier derivation,
    invoice and line rows, and the matching stock movements.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    dte_services.invoice_lifecycle.InvoiceLifecycleManager, which owns
    commit and rollback.

Invariants enforced:
    - Lock order on issue: products (ascending id) then the sequence row.
      Void locks the invoice then its products.  Issue never waits on an
      invoice lock, so no cycle exists.
    - Stock sufficiency is checked before the sequential is allocated and
      before any movement is written.
    - Prices, costs and product names are copied onto lines at issuance.
    - Voiding touches status, voided_at and voided_by_id only.

Failure modes:
    - ProductNotFoundError, ProductInactiveError, BranchNotFoundError,
      ClientNotFoundError, InsufficientStockError, InvalidBranchCodeError,
      IdentifierFormatError on issue.
    - InvoiceNotFoundError, InvoiceAlreadyVoidedError on void.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from dte_kernel.domain.clock import Clock, SystemClock
from dte_kernel.domain.dtos import InvoiceDraft, InvoiceStatus, ProductSnapshot
from dte_kernel.domain.identifiers import DteNumberingScheme, derive_identifiers
from dte_kernel.domain.money import TaxPolicy
from dte_kernel.domain.pricing import price_draft, stock_demand
from dte_kernel.exceptions import (
    BranchNotFoundError,
    ClientNotFoundError,
    InvoiceAlreadyVoidedError,
    InvoiceNotFoundError,
)
from dte_kernel.logging_config import get_logger
from dte_kernel.models.branch import Branch
from dte_kernel.models.client import Client
from dte_kernel.models.invoice import Invoice, InvoiceLine
from dte_kernel.services.base import BaseService
from dte_kernel.services.sequence_service import SequenceService
from dte_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.invoice_writer")

# Actor for effects requested without a user (e.g. an unattributed void).
SYSTEM_ACTOR_ID = UUID(int=0)


class InvoiceWriter(BaseService):
    """
    Writes issued and voided documents.

    Contract:
        ``issue`` expects a draft that already passed ``InvoiceDraft.validate``.
        Both methods flush and return the ORM invoice; neither commits.
    """

    def __init__(
        self,
        session,
        *,
        tax_policy: TaxPolicy,
        numbering: DteNumberingScheme,
        clock: Clock | None = None,
        allow_negative_stock: bool = False,
        utc_offset_minutes: int = 0,
    ):
        super().__init__(session)
        self._tax_policy = tax_policy
        self._numbering = numbering
        self._clock = clock or SystemClock()
        self._allow_negative_stock = allow_negative_stock
        self._utc_offset_minutes = utc_offset_minutes
        self._sequences = SequenceService(session)

    def _ledger(self, actor_id: UUID) -> StockLedger:
        return StockLedger(
            self.session,
            actor_id,
            clock=self._clock,
            allow_negative_stock=self._allow_negative_stock,
        )

    def issue(
        self,
        draft: InvoiceDraft,
        issued_by_id: UUID,
        issue_date: date | None = None,
    ) -> Invoice:
        ledger = self._ledger(issued_by_id)

        # 1. Lock every referenced product, then price against the locked rows.
        products = ledger.lock_products(item.product_id for item in draft.items)
        snapshots = {pid: ProductSnapshot.from_model(p) for pid, p in products.items()}
        preview = price_draft(draft, snapshots, self._tax_policy)

        # 2. Resolve references.
        branch = self.session.get(Branch, draft.branch_id)
        if branch is None:
            raise BranchNotFoundError(str(draft.branch_id))
        client = self.session.get(Client, draft.client_id)
        if client is None:
            raise ClientNotFoundError(str(draft.client_id))

        # 3. Stock sufficiency, aggregated per product.
        ledger.ensure_available(products, stock_demand(preview))

        # 4. Numbering.
        sequential = self._sequences.next_value(branch.id, draft.series)
        identifiers = derive_identifiers(
            self._numbering,
            series=draft.series,
            sequential=sequential,
            branch_code=branch.code,
        )

        # 5. Persist header and lines.
        issued_at = self._clock.now_utc()
        invoice = Invoice(
            control_number=identifiers.control_number,
            control_code=identifiers.control_code,
            generation_code=identifiers.generation_code,
            reception_seal=identifiers.reception_seal,
            series=draft.series,
            sequential=sequential,
            document_type=draft.document_type,
            status=InvoiceStatus.EMITTED,
            issue_date=issue_date or self._clock.today(self._utc_offset_minutes),
            issued_at=issued_at,
            branch_id=branch.id,
            client_id=client.id,
            issued_by_id=issued_by_id,
            payment_method=draft.payment_method,
            subtotal=preview.subtotal,
            vat=preview.vat,
            rent_retention=preview.rent_retention,
            vat_retention=preview.vat_retention,
            total=preview.total,
            observations=draft.observations,
            created_at=issued_at,
            updated_at=issued_at,
            created_by_id=issued_by_id,
        )
        invoice.branch = branch
        invoice.client = client
        invoice.lines = [
            InvoiceLine(
                line_number=line.line_number,
                product_id=line.product_id,
                product_sku=line.sku,
                product_name=line.name,
                product_kind=line.kind,
                quantity=line.quantity,
                unit_price=line.unit_price,
                unit_cost=line.unit_cost,
                discount=line.discount,
                subtotal=line.subtotal,
            )
            for line in preview.lines
        ]
        self.session.add(invoice)
        self.session.flush()

        # 6. Stock effects.
        ledger.issue_for_invoice(invoice, products)

        logger.info(
            "invoice_persisted",
            extra={
                "invoice_id": str(invoice.id),
                "control_number": invoice.control_number,
                "control_code": invoice.control_code,
                "sequential": sequential,
                "line_count": len(invoice.lines),
                "total": invoice.total,
            },
        )
        return invoice

    def void(self, invoice_id: UUID, voided_by_id: UUID | None = None) -> Invoice:
        """Void without a user records SYSTEM_ACTOR_ID on the stock movements."""
        invoice = self.session.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))

        if invoice.is_voided:
            raise InvoiceAlreadyVoidedError(str(invoice.id), invoice.control_number)

        ledger = self._ledger(voided_by_id or SYSTEM_ACTOR_ID)
        products = ledger.lock_products(
            line.product_id for line in invoice.lines if line.tracks_stock
        )

        voided_at = self._clock.now_utc()
        invoice.status = InvoiceStatus.VOIDED
        invoice.voided_at = voided_at
        invoice.voided_by_id = voided_by_id
        invoice.updated_by_id = voided_by_id or SYSTEM_ACTOR_ID
        self.session.flush()

        ledger.reverse_for_invoice(invoice, products)

        logger.info(
            "invoice_void_persisted",
            extra={
                "invoice_id": str(invoice.id),
                "control_number": invoice.control_number,
            },
        )
        return invoice
