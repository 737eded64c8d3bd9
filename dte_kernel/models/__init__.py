"""ORM models for the DTE kernel."""

from dte_kernel.models.branch import Branch
from dte_kernel.models.client import Client
from dte_kernel.models.invoice import Invoice, InvoiceLine
from dte_kernel.models.product import Product
from dte_kernel.models.sequence import DocumentSequence
from dte_kernel.models.stock_movement import StockMovement

__all__ = [
    "Branch",
    "Client",
    "Invoice",
    "InvoiceLine",
    "Product",
    "DocumentSequence",
    "StockMovement",
]
