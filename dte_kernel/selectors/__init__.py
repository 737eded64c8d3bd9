"""Read-only selectors returning DTOs."""

from dte_kernel.selectors.catalog_selector import CatalogSelector
from dte_kernel.selectors.invoice_selector import InvoiceSelector
from dte_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "CatalogSelector",
    "InvoiceSelector",
    "StockSelector",
]
