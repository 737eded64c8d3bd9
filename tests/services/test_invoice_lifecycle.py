"""
Tests for InvoiceLifecycleManager: preview, create and void.

Verifies:
- Preview is read-only and reflects current catalog prices
- Create persists identifiers, snapshots and totals, and decrements stock
- Service lines never touch stock
- Insufficient stock aborts without side effects
- Void restores stock, keeps money and identifiers, and cannot repeat
"""

import json
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from dte_kernel.domain.dtos import (
    DocumentType,
    InvoiceDraft,
    InvoiceStatus,
    LineRequest,
    StockDirection,
)
from dte_kernel.exceptions import (
    BranchNotFoundError,
    ClientNotFoundError,
    EmptyInvoiceError,
    InsufficientStockError,
    InvoiceAlreadyVoidedError,
    InvoiceNotFoundError,
    InvalidBranchCodeError,
    ProductInactiveError,
    ProductNotFoundError,
)
from dte_kernel.models.branch import Branch
from dte_kernel.models.invoice import Invoice
from dte_kernel.models.product import Product
from dte_kernel.models.sequence import DocumentSequence
from dte_kernel.models.stock_movement import StockMovement
from dte_kernel.selectors.stock_selector import StockSelector
from dte_kernel.services.invoice_writer import SYSTEM_ACTOR_ID
from dte_services.invoice_lifecycle import InvoiceLifecycleManager


def _stock(database, product_id) -> int:
    with database.session_scope() as session:
        return session.get(Product, product_id).stock_quantity


def _count(database, model) -> int:
    with database.session_scope() as session:
        return session.execute(select(func.count()).select_from(model)).scalar_one()


class TestPreview:
    def test_reference_totals(self, manager, make_draft, catalog):
        draft = make_draft(
            [(catalog.coffee_id, 10)],
            apply_rent_retention=True,
            apply_vat_retention=True,
        )
        preview = manager.preview(draft)
        assert preview.subtotal == Decimal("100.00")
        assert preview.vat == Decimal("13.00")
        assert preview.rent_retention == Decimal("10.00")
        assert preview.vat_retention == Decimal("0.13")
        assert preview.total == Decimal("102.87")

    def test_no_side_effects(self, manager, make_draft, catalog, database):
        manager.preview(make_draft([(catalog.coffee_id, 3)]))
        manager.preview(make_draft([(catalog.coffee_id, 3)]))
        assert _stock(database, catalog.coffee_id) == 100
        assert _count(database, Invoice) == 0
        assert _count(database, DocumentSequence) == 0

    def test_reflects_price_changes(self, manager, make_draft, catalog, database):
        draft = make_draft([(catalog.coffee_id, 1)])
        assert manager.preview(draft).subtotal == Decimal("10.00")
        with database.session_scope() as session:
            session.get(Product, catalog.coffee_id).unit_price = Decimal("12.00")
        assert manager.preview(draft).subtotal == Decimal("12.00")

    def test_unknown_product(self, manager, make_draft, catalog):
        with pytest.raises(ProductNotFoundError):
            manager.preview(make_draft([(uuid4(), 1)]))

    def test_inactive_product(self, manager, make_draft, catalog):
        with pytest.raises(ProductInactiveError):
            manager.preview(make_draft([(catalog.discontinued_id, 1)]))

    def test_string_ids_accepted(self, manager, catalog, test_actor_id):
        draft = InvoiceDraft(
            branch_id=str(catalog.main_branch_id),
            series="FAC",
            document_type="invoice",
            client_id=str(catalog.final_consumer_id),
            items=(LineRequest(product_id=str(catalog.coffee_id), quantity=1),),
        )
        assert manager.preview(draft).total == Decimal("11.30")

        record = manager.create(draft, issued_by_id=test_actor_id)
        assert record.control_number == "FAC-00000001"
        assert record.lines[0].product_id == catalog.coffee_id


class TestCreate:
    def test_first_invoice_identifiers(self, manager, make_draft, test_actor_id):
        record = manager.create(make_draft(), issued_by_id=test_actor_id)

        assert record.status is InvoiceStatus.EMITTED
        assert record.sequential == 1
        assert record.control_number == "FAC-00000001"
        assert record.control_code == "DTE-01-S001P001-000000000000001"
        assert len(record.generation_code) == 36
        assert len(record.reception_seal) == 32
        assert record.branch_code == "SUC001"
        assert record.client_name == "Consumidor Final"

    def test_totals_and_words(self, manager, make_draft, catalog, test_actor_id):
        record = manager.create(
            make_draft(
                [(catalog.coffee_id, 10)],
                apply_rent_retention=True,
                apply_vat_retention=True,
            ),
            issued_by_id=test_actor_id,
        )
        assert record.total == Decimal("102.87")
        assert record.total_in_words == "CIENTO DOS DÓLARES CON OCHENTA Y SIETE CENTAVOS"

    def test_line_snapshots(self, manager, make_draft, catalog, test_actor_id, database):
        record = manager.create(
            make_draft([(catalog.coffee_id, 2, "1.00"), (catalog.delivery_id, 1)]),
            issued_by_id=test_actor_id,
        )
        coffee_line, delivery_line = record.lines
        assert coffee_line.line_number == 1
        assert coffee_line.product_sku == "CAF-001"
        assert coffee_line.unit_price == Decimal("10.00")
        assert coffee_line.unit_cost == Decimal("6.00")
        assert coffee_line.subtotal == Decimal("19.00")
        assert delivery_line.subtotal == Decimal("15.00")

        # Later catalog edits do not reach issued lines
        with database.session_scope() as session:
            session.get(Product, catalog.coffee_id).unit_price = Decimal("99.00")
        again = manager.get_invoice(record.id)
        assert again.lines[0].unit_price == Decimal("10.00")

    def test_sequentials_consecutive_per_series(self, manager, make_draft, test_actor_id):
        numbers = [
            manager.create(make_draft(), issued_by_id=test_actor_id).control_number
            for _ in range(3)
        ]
        ccf = manager.create(
            make_draft(series="CCF", document_type=DocumentType.FISCAL_CREDIT),
            issued_by_id=test_actor_id,
        )
        assert numbers == ["FAC-00000001", "FAC-00000002", "FAC-00000003"]
        assert ccf.control_number == "CCF-00000001"

    def test_branch_specific_numbering(self, manager, make_draft, catalog, test_actor_id):
        manager.create(make_draft(), issued_by_id=test_actor_id)
        record = manager.create(
            make_draft(branch_id=catalog.second_branch_id), issued_by_id=test_actor_id
        )
        assert record.sequential == 1
        assert record.control_code == "DTE-01-S002P001-000000000000001"

    def test_control_code_shared_across_series(self, manager, make_draft, test_actor_id):
        fac = manager.create(make_draft(), issued_by_id=test_actor_id)
        ccf = manager.create(
            make_draft(series="CCF", document_type=DocumentType.FISCAL_CREDIT),
            issued_by_id=test_actor_id,
        )
        assert fac.control_code == ccf.control_code == "DTE-01-S001P001-000000000000001"
        assert fac.control_number != ccf.control_number

    def test_control_number_shared_across_branches(
        self, manager, make_draft, catalog, test_actor_id
    ):
        main = manager.create(make_draft(), issued_by_id=test_actor_id)
        second = manager.create(
            make_draft(branch_id=catalog.second_branch_id), issued_by_id=test_actor_id
        )
        assert main.control_number == second.control_number == "FAC-00000001"
        assert main.control_code != second.control_code

    def test_dates(self, manager, make_draft, test_actor_id, deterministic_clock):
        record = manager.create(make_draft(), issued_by_id=test_actor_id)
        assert record.issued_at == deterministic_clock.now_utc()
        assert record.issue_date == date(2025, 1, 15)

    def test_explicit_issue_date(self, manager, make_draft, test_actor_id):
        record = manager.create(
            make_draft(), issued_by_id=test_actor_id, issue_date=date(2025, 1, 10)
        )
        assert record.issue_date == date(2025, 1, 10)

    def test_stock_decremented_with_annotated_movement(
        self, manager, stock_ops, make_draft, catalog, test_actor_id
    ):
        record = manager.create(
            make_draft([(catalog.coffee_id, 3), (catalog.coffee_id, 4)]),
            issued_by_id=test_actor_id,
        )
        assert stock_ops.current_stock(catalog.coffee_id) == 93

        movements = stock_ops.movements(catalog.coffee_id, limit=2)
        assert [m.direction for m in movements] == [StockDirection.OUT, StockDirection.OUT]
        assert {m.note for m in movements} == {"Invoice FAC-00000001"}
        assert all(m.invoice_id == record.id for m in movements)
        assert stock_ops.ledger_balance(catalog.coffee_id) == 93

    def test_service_lines_exempt_from_stock(
        self, manager, make_draft, catalog, test_actor_id, database
    ):
        movements_before = _count(database, StockMovement)
        manager.create(make_draft([(catalog.delivery_id, 50)]), issued_by_id=test_actor_id)
        assert _count(database, StockMovement) == movements_before
        assert _stock(database, catalog.delivery_id) == 0

    def test_insufficient_stock_has_no_side_effects(
        self, manager, make_draft, catalog, test_actor_id, database
    ):
        movements_before = _count(database, StockMovement)
        draft = make_draft([(catalog.coffee_id, 1), (catalog.sugar_id, 3), (catalog.sugar_id, 3)])

        with pytest.raises(InsufficientStockError) as exc_info:
            manager.create(draft, issued_by_id=test_actor_id)

        assert exc_info.value.requested == 6
        assert exc_info.value.available == 5
        assert _stock(database, catalog.coffee_id) == 100
        assert _stock(database, catalog.sugar_id) == 5
        assert _count(database, Invoice) == 0
        assert _count(database, StockMovement) == movements_before
        # No number was burned
        record = manager.create(make_draft(), issued_by_id=test_actor_id)
        assert record.sequential == 1

    def test_backorder_mode(self, database, deterministic_clock, make_draft, catalog, test_actor_id):
        manager = InvoiceLifecycleManager(
            database, clock=deterministic_clock, allow_negative_stock=True
        )
        manager.create(make_draft([(catalog.sugar_id, 8)]), issued_by_id=test_actor_id)
        assert _stock(database, catalog.sugar_id) == -3

    def test_empty_draft_rejected_before_transaction(self, manager, make_draft, database):
        with pytest.raises(EmptyInvoiceError):
            manager.create(make_draft([]), issued_by_id=uuid4())
        assert _count(database, DocumentSequence) == 0

    def test_unknown_branch(self, manager, make_draft, test_actor_id):
        with pytest.raises(BranchNotFoundError):
            manager.create(make_draft(branch_id=uuid4()), issued_by_id=test_actor_id)

    def test_unknown_client(self, manager, make_draft, test_actor_id):
        with pytest.raises(ClientNotFoundError):
            manager.create(make_draft(client_id=uuid4()), issued_by_id=test_actor_id)

    def test_inactive_product(self, manager, make_draft, catalog, test_actor_id):
        with pytest.raises(ProductInactiveError):
            manager.create(make_draft([(catalog.discontinued_id, 1)]), issued_by_id=test_actor_id)

    def test_branch_code_without_digits(self, manager, make_draft, database, test_actor_id):
        with database.session_scope() as session:
            branch = Branch(code="CENTRO", name="Sin numero")
            session.add(branch)
            session.flush()
            branch_id = branch.id

        with pytest.raises(InvalidBranchCodeError):
            manager.create(make_draft(branch_id=branch_id), issued_by_id=test_actor_id)
        assert _count(database, Invoice) == 0

    def test_logs_lifecycle(self, manager, make_draft, test_actor_id, captured_logs):
        record = manager.create(make_draft(), issued_by_id=test_actor_id)
        created = [r for r in captured_logs() if r["message"] == "invoice_created"]
        assert created[-1]["control_number"] == record.control_number
        assert created[-1]["actor_id"] == str(test_actor_id)
        assert "correlation_id" in created[-1]
        assert created[-1]["invoice_id"] == str(record.id)
        assert created[-1]["series"] == "FAC"
        assert created[-1]["reception_seal"].endswith(record.reception_seal[-4:])
        assert record.reception_seal not in json.dumps(created[-1])


class TestVoid:
    def test_void_restores_stock(self, manager, stock_ops, make_draft, catalog, test_actor_id):
        record = manager.create(
            make_draft([(catalog.coffee_id, 7), (catalog.delivery_id, 1)]),
            issued_by_id=test_actor_id,
        )
        voider = uuid4()
        voided = manager.void(record.id, voided_by_id=voider)

        assert voided.status is InvoiceStatus.VOIDED
        assert voided.voided_by_id == voider
        assert voided.voided_at is not None
        assert stock_ops.current_stock(catalog.coffee_id) == 100
        assert stock_ops.ledger_balance(catalog.coffee_id) == 100

        latest = stock_ops.movements(catalog.coffee_id, limit=1)[0]
        assert latest.direction is StockDirection.IN
        assert latest.quantity == 7
        assert latest.note == "Void of invoice FAC-00000001"
        assert latest.created_by_id == voider

    def test_invoice_movements_net_to_zero(
        self, manager, database, make_draft, catalog, test_actor_id
    ):
        record = manager.create(
            make_draft([(catalog.coffee_id, 4), (catalog.sugar_id, 2), (catalog.delivery_id, 1)]),
            issued_by_id=test_actor_id,
        )
        manager.void(record.id, voided_by_id=test_actor_id)

        with database.session_scope() as session:
            movements = StockSelector(session).movements_for_invoice(record.id)

        by_product = {}
        for movement in movements:
            by_product.setdefault(movement.product_id, []).append(movement)
        assert set(by_product) == {catalog.coffee_id, catalog.sugar_id}
        for pair in by_product.values():
            assert [m.direction for m in pair] == [StockDirection.OUT, StockDirection.IN]
            assert sum(m.delta for m in pair) == 0

    def test_void_keeps_money_and_identifiers(self, manager, make_draft, test_actor_id):
        record = manager.create(make_draft(), issued_by_id=test_actor_id)
        voided = manager.void(record.id, voided_by_id=test_actor_id)
        for name in (
            "control_number",
            "control_code",
            "generation_code",
            "reception_seal",
            "subtotal",
            "vat",
            "total",
            "lines",
        ):
            assert getattr(voided, name) == getattr(record, name)

    def test_double_void_rejected(self, manager, make_draft, catalog, test_actor_id, stock_ops):
        record = manager.create(make_draft([(catalog.coffee_id, 5)]), issued_by_id=test_actor_id)
        manager.void(record.id, voided_by_id=test_actor_id)

        with pytest.raises(InvoiceAlreadyVoidedError) as exc_info:
            manager.void(record.id, voided_by_id=test_actor_id)
        assert exc_info.value.control_number == record.control_number
        assert stock_ops.current_stock(catalog.coffee_id) == 100

    def test_void_unknown(self, manager, catalog):
        with pytest.raises(InvoiceNotFoundError):
            manager.void(uuid4())

    def test_unattributed_void(self, manager, stock_ops, make_draft, catalog, test_actor_id):
        record = manager.create(make_draft([(catalog.coffee_id, 1)]), issued_by_id=test_actor_id)
        voided = manager.void(record.id)
        assert voided.voided_by_id is None
        assert stock_ops.movements(catalog.coffee_id, limit=1)[0].created_by_id == SYSTEM_ACTOR_ID

    def test_void_does_not_free_the_number(self, manager, make_draft, test_actor_id):
        first = manager.create(make_draft(), issued_by_id=test_actor_id)
        manager.void(first.id, voided_by_id=test_actor_id)
        second = manager.create(make_draft(), issued_by_id=test_actor_id)
        assert second.sequential == 2

    def test_void_reverses_product_reclassified_after_issue(
        self, manager, make_draft, catalog, test_actor_id, database
    ):
        from dte_kernel.domain.dtos import ProductKind

        record = manager.create(make_draft([(catalog.sugar_id, 2)]), issued_by_id=test_actor_id)
        with database.session_scope() as session:
            session.get(Product, catalog.sugar_id).kind = ProductKind.SERVICE

        manager.void(record.id, voided_by_id=test_actor_id)
        assert _stock(database, catalog.sugar_id) == 5
