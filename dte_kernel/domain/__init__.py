"""
Pure domain layer.

Money arithmetic, document identifiers, amount-in-words rendering, the
injectable clock, and the DTOs that cross the kernel boundary.  Nothing
here touches the database.
"""

from dte_kernel.domain.clock import Clock, DeterministicClock, SystemClock, business_date
from dte_kernel.domain.dtos import (
    DashboardMetrics,
    DailySales,
    DocumentType,
    InvoiceDraft,
    InvoiceFilters,
    InvoiceLineRecord,
    InvoicePage,
    InvoicePreview,
    InvoiceRecord,
    InvoiceStatus,
    LinePreview,
    LineRequest,
    PaymentMethod,
    ProductKind,
    ProductSnapshot,
    StockDirection,
    StockMovementRecord,
    UserDaySummary,
)
from dte_kernel.domain.identifiers import DocumentIdentifiers, DteNumberingScheme
from dte_kernel.domain.money import InvoiceTotals, TaxPolicy

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "business_date",
    "DashboardMetrics",
    "DailySales",
    "DocumentType",
    "InvoiceDraft",
    "InvoiceFilters",
    "InvoiceLineRecord",
    "InvoicePage",
    "InvoicePreview",
    "InvoiceRecord",
    "InvoiceStatus",
    "LinePreview",
    "LineRequest",
    "PaymentMethod",
    "ProductKind",
    "ProductSnapshot",
    "StockDirection",
    "StockMovementRecord",
    "UserDaySummary",
    "DocumentIdentifiers",
    "DteNumberingScheme",
    "InvoiceTotals",
    "TaxPolicy",
]
