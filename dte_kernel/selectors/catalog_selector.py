"""
Module: dte_kernel.selectors.catalog_selector
Responsibility: Unlocked product reads for pricing previews.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from dte_kernel.domain.dtos import ProductSnapshot
from dte_kernel.models.product import Product
from dte_kernel.selectors.base import BaseSelector


class CatalogSelector(BaseSelector):
    """Unlocked reads; issuance re-reads products under lock."""

    def products(self, product_ids: Iterable[UUID]) -> dict[UUID, ProductSnapshot]:
        """Snapshots keyed by id.  Unknown ids are simply absent."""
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Product).where(Product.id.in_(ids))
        ).scalars()
        return {row.id: ProductSnapshot.from_model(row) for row in rows}
