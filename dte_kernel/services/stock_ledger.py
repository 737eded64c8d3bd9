"""
StockLedger -- append-only stock movements plus the denormalized counter.

Responsibility:
    Every change to a product's stock goes through this service: manual
    IN/OUT/ADJUST entries, the OUT movements of an issued invoice and the
    IN movements of its voidance.  Each call appends one immutable
    StockMovement and updates ``Product.stock_quantity`` in the same flush.

Architecture position:
    Kernel > Services -- imperative shell.  Called by InvoiceWriter and by
    dte_services.stock_operations.  Never commits.

Invariants enforced:
    - Conservation: ``stock_quantity`` == signed sum of movement deltas,
      because both sides are written together by ``_append`` only.
    - SERVICE products never receive movements (StockNotTrackedError).
    - Stock never goes negative unless the ledger was built with
      ``allow_negative_stock=True`` (backorder mode).
    - Product rows are locked ``FOR UPDATE`` in ascending id order before
      any read-check-write, so concurrent issuers cannot oversell.

Failure modes:
    - ProductNotFoundError for unknown product ids.
    - InsufficientStockError when a decrement would go below zero.
    - InvalidQuantityError for non-positive IN/OUT quantities or a negative
      ADJUST target.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from dte_kernel.domain.clock import Clock, SystemClock
from dte_kernel.domain.dtos import StockDirection, StockMovementRecord
from dte_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    StockNotTrackedError,
)
from dte_kernel.logging_config import get_logger
from dte_kernel.models.invoice import Invoice
from dte_kernel.models.product import Product
from dte_kernel.models.stock_movement import StockMovement
from dte_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")

INVOICE_NOTE = "Invoice {control_number}"
VOID_NOTE = "Void of invoice {control_number}"


class StockLedger(BaseService):
    """
    Writes stock movements for one actor inside the caller's transaction.

    Contract:
        Construct per unit of work with the acting user's id; every movement
        is attributed to that user.
    """

    def __init__(
        self,
        session,
        actor_id: UUID,
        *,
        clock: Clock | None = None,
        allow_negative_stock: bool = False,
    ):
        super().__init__(session)
        self._actor_id = actor_id
        self._clock = clock or SystemClock()
        self._allow_negative_stock = allow_negative_stock

    # ------------------------------------------------------------------
    # Locking and checks
    # ------------------------------------------------------------------

    def lock_products(self, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
        """
        Lock the given products ``FOR UPDATE`` in ascending id order.

        Raises:
            ProductNotFoundError: For the first id with no product row.
        """
        ids = sorted(set(product_ids), key=str)
        if not ids:
            return {}

        rows = self.session.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        products = {row.id: row for row in rows}

        for product_id in ids:
            if product_id not in products:
                raise ProductNotFoundError(str(product_id))

        logger.debug("products_locked", extra={"product_count": len(ids)})
        return products

    def ensure_available(
        self,
        products: Mapping[UUID, Product],
        requested: Mapping[UUID, int],
    ) -> None:
        """
        Check requested quantities (already aggregated per product).

        SERVICE products are skipped.  Nothing is mutated, so a failure
        leaves stock untouched.
        """
        if self._allow_negative_stock:
            return
        for product_id in sorted(requested, key=str):
            product = products[product_id]
            if not product.tracks_stock:
                continue
            wanted = requested[product_id]
            if wanted > product.stock_quantity:
                logger.info(
                    "insufficient_stock",
                    extra={
                        "product_id": str(product_id),
                        "sku": product.sku,
                        "requested": wanted,
                        "available": product.stock_quantity,
                    },
                )
                raise InsufficientStockError(
                    str(product_id), product.sku, wanted, product.stock_quantity
                )

    def current_stock(self, product_id: UUID) -> int:
        stock = self.session.execute(
            select(Product.stock_quantity).where(Product.id == product_id)
        ).scalar_one_or_none()
        if stock is None:
            raise ProductNotFoundError(str(product_id))
        return stock

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_movement(
        self,
        product: Product,
        direction: StockDirection | str,
        quantity: int,
        note: str | None,
        *,
        decrease: bool = False,
        invoice_id: UUID | None = None,
    ) -> StockMovementRecord:
        """
        Append one movement and update the product's counter.

        IN adds ``quantity``, OUT subtracts it, ADJUST adds it or, with
        ``decrease=True``, subtracts it.  The product should already be
        locked by the caller.
        """
        if not product.tracks_stock:
            raise StockNotTrackedError(str(product.id), product.sku)

        direction = StockDirection(direction)
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise InvalidQuantityError(str(product.id), quantity)
        if direction != StockDirection.ADJUST and quantity == 0:
            raise InvalidQuantityError(str(product.id), quantity)

        if direction == StockDirection.IN:
            delta = quantity
        elif direction == StockDirection.OUT:
            delta = -quantity
        else:
            delta = -quantity if decrease else quantity

        return self._append(product, direction, quantity, delta, note, invoice_id)

    def adjust_stock(
        self,
        product_id: UUID,
        direction: StockDirection | str,
        quantity: int,
        note: str | None = None,
    ) -> StockMovementRecord:
        """
        Manual stock adjustment.

        IN adds and OUT subtracts ``quantity``.  ADJUST sets the absolute
        stock level to ``quantity`` and records the magnitude of the change.
        """
        direction = StockDirection(direction)
        product = self.lock_products([product_id])[product_id]

        if direction != StockDirection.ADJUST:
            return self.record_movement(product, direction, quantity, note)

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise InvalidQuantityError(str(product_id), quantity)
        change = quantity - product.stock_quantity
        return self.record_movement(
            product,
            StockDirection.ADJUST,
            abs(change),
            note,
            decrease=change < 0,
        )

    def issue_for_invoice(
        self,
        invoice: Invoice,
        products: Mapping[UUID, Product],
    ) -> list[StockMovementRecord]:
        """One OUT movement per GOOD line, annotated with the control number."""
        note = INVOICE_NOTE.format(control_number=invoice.control_number)
        records = []
        for line in sorted(invoice.lines, key=lambda item: item.line_number):
            if not line.tracks_stock:
                continue
            records.append(
                self.record_movement(
                    products[line.product_id],
                    StockDirection.OUT,
                    line.quantity,
                    note,
                    invoice_id=invoice.id,
                )
            )
        return records

    def reverse_for_invoice(
        self,
        invoice: Invoice,
        products: Mapping[UUID, Product],
    ) -> list[StockMovementRecord]:
        """
        One IN movement per line that decremented stock at issuance.

        Driven by the line's product-kind snapshot, so a product re-classified
        after issuance still gets its stock back.
        """
        note = VOID_NOTE.format(control_number=invoice.control_number)
        records = []
        for line in sorted(invoice.lines, key=lambda item: item.line_number):
            if not line.tracks_stock:
                continue
            records.append(
                self._append(
                    products[line.product_id],
                    StockDirection.IN,
                    line.quantity,
                    line.quantity,
                    note,
                    invoice.id,
                )
            )
        return records

    def _append(
        self,
        product: Product,
        direction: StockDirection,
        quantity: int,
        delta: int,
        note: str | None,
        invoice_id: UUID | None,
    ) -> StockMovementRecord:
        balance = product.stock_quantity + delta
        if balance < 0 and not self._allow_negative_stock:
            raise InsufficientStockError(
                str(product.id), product.sku, -delta, product.stock_quantity
            )

        now: datetime = self._clock.now_utc()
        product.movement_count += 1
        product.stock_quantity = balance
        product.updated_by_id = self._actor_id

        movement = StockMovement(
            product_id=product.id,
            product_seq=product.movement_count,
            direction=direction,
            quantity=quantity,
            delta=delta,
            balance_after=balance,
            note=note,
            invoice_id=invoice_id,
            created_at=now,
            updated_at=now,
            created_by_id=self._actor_id,
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "stock_movement_recorded",
            extra={
                "product_id": str(product.id),
                "sku": product.sku,
                "direction": direction.value,
                "delta": delta,
                "balance_after": balance,
                "invoice_id": str(invoice_id) if invoice_id else None,
            },
        )
        return StockMovementRecord.from_model(movement)
