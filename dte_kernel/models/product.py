"""
Module: dte_kernel.models.product
Responsibility: Product catalog rows and the denormalized stock counter.
Architecture position: Kernel > Models.  May import from db/ and the domain
    enums only.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - stock_quantity equals the signed sum of the product's stock movement
      deltas.  Only StockLedger writes either side, in the same flush.
    - movement_count numbers the product's movements (1, 2, 3 ...) so the
      ledger has a total order independent of timestamp resolution.

Failure modes:
    - IntegrityError on duplicate sku (uq_product_sku).
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dte_kernel.db.base import TrackedBase
from dte_kernel.domain.dtos import ProductKind


class Product(TrackedBase):
    """
    Sellable good or service.

    Contract:
        ``unit_price`` and ``cost`` are current catalog values; invoice lines
        copy them at issuance.  SERVICE products keep ``stock_quantity`` at 0
        and never receive movements.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        Index("idx_product_kind_active", "kind", "is_active"),
    )

    sku: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    kind: Mapped[ProductKind] = mapped_column(
        String(10),
        default=ProductKind.GOOD,
        nullable=False,
    )

    cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    movement_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def tracks_stock(self) -> bool:
        return ProductKind(self.kind) == ProductKind.GOOD

    def __repr__(self) -> str:
        return f"<Product {self.sku} stock={self.stock_quantity}>"
