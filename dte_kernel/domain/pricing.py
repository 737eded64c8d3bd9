"""
Pricing -- turn a validated draft and current product data into a preview.

Pure: the caller supplies product snapshots, so the same function serves the
read-only preview and the locked recomputation inside issuance.
"""

from collections.abc import Mapping
from uuid import UUID

from dte_kernel.domain.dtos import (
    InvoiceDraft,
    InvoicePreview,
    LinePreview,
    ProductKind,
    ProductSnapshot,
)
from dte_kernel.domain.money import TaxPolicy, compute_totals, line_subtotal
from dte_kernel.exceptions import ProductInactiveError, ProductNotFoundError


def price_draft(
    draft: InvoiceDraft,
    products: Mapping[UUID, ProductSnapshot],
    policy: TaxPolicy,
) -> InvoicePreview:
    """
    Price every line at the product's current unit price and total the draft.

    Raises:
        ProductNotFoundError: A line references a product not in ``products``.
        ProductInactiveError: A line references a deactivated product.
    """
    lines: list[LinePreview] = []
    for line_number, item in enumerate(draft.items, start=1):
        product = products.get(item.product_id)
        if product is None:
            raise ProductNotFoundError(str(item.product_id))
        if not product.is_active:
            raise ProductInactiveError(str(product.id), product.sku)

        lines.append(
            LinePreview(
                line_number=line_number,
                product_id=product.id,
                sku=product.sku,
                name=product.name,
                kind=product.kind,
                quantity=item.quantity,
                unit_price=product.unit_price,
                unit_cost=product.cost,
                discount=item.discount,
                subtotal=line_subtotal(item.quantity, product.unit_price, item.discount),
            )
        )

    totals = compute_totals(
        (line.subtotal for line in lines),
        apply_rent_retention=draft.apply_rent_retention,
        apply_vat_retention=draft.apply_vat_retention,
        policy=policy,
    )

    return InvoicePreview(
        branch_id=draft.branch_id,
        client_id=draft.client_id,
        series=draft.series,
        document_type=draft.document_type,
        payment_method=draft.payment_method,
        lines=tuple(lines),
        subtotal=totals.subtotal,
        vat=totals.vat,
        rent_retention=totals.rent_retention,
        vat_retention=totals.vat_retention,
        total=totals.total,
    )


def stock_demand(preview: InvoicePreview) -> dict[UUID, int]:
    """Total quantity per GOOD product; a product on several lines is summed."""
    demand: dict[UUID, int] = {}
    for line in preview.lines:
        if line.kind != ProductKind.GOOD:
            continue
        demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity
    return demand
