"""
Module: dte_kernel.selectors.stock_selector
Responsibility: Read side of the stock ledger -- movement history, ledger
    balances for reconciliation, and low-stock reporting.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - ``ledger_balance`` is derived from movement deltas only, so comparing
      it with ``Product.stock_quantity`` detects any drift of the counter.
"""

from uuid import UUID

from sqlalchemy import func, select

from dte_kernel.domain.dtos import ProductKind, ProductSnapshot, StockMovementRecord
from dte_kernel.exceptions import ProductNotFoundError
from dte_kernel.models.product import Product
from dte_kernel.models.stock_movement import StockMovement
from dte_kernel.selectors.base import BaseSelector

DEFAULT_LOW_STOCK_THRESHOLD = 10


class StockSelector(BaseSelector):
    """
    Stock queries.

    Guarantees:
        - ``movements`` is ordered newest first (by per-product sequence).
        - ``low_stock`` only considers active GOOD products.
    """

    def movements(
        self,
        product_id: UUID,
        limit: int | None = None,
    ) -> list[StockMovementRecord]:
        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))

        query = (
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.product_seq.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [
            StockMovementRecord.from_model(row)
            for row in self.session.execute(query).scalars()
        ]

    def movements_for_invoice(self, invoice_id: UUID) -> list[StockMovementRecord]:
        rows = self.session.execute(
            select(StockMovement)
            .where(StockMovement.invoice_id == invoice_id)
            .order_by(StockMovement.product_id, StockMovement.product_seq)
        ).scalars()
        return [StockMovementRecord.from_model(row) for row in rows]

    def ledger_balance(self, product_id: UUID) -> int:
        """Signed sum of all movement deltas for the product."""
        total = self.session.execute(
            select(func.coalesce(func.sum(StockMovement.delta), 0)).where(
                StockMovement.product_id == product_id
            )
        ).scalar_one()
        return int(total)

    def low_stock(
        self,
        threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ) -> list[ProductSnapshot]:
        """Active GOOD products with stock at or below ``threshold``."""
        rows = self.session.execute(
            select(Product)
            .where(
                Product.kind == ProductKind.GOOD.value,
                Product.is_active.is_(True),
                Product.stock_quantity <= threshold,
            )
            .order_by(Product.stock_quantity, Product.sku)
        ).scalars()
        return [ProductSnapshot.from_model(row) for row in rows]
