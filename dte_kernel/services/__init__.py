"""Kernel services: flush-only writers that never commit."""

from dte_kernel.services.invoice_writer import InvoiceWriter
from dte_kernel.services.sequence_service import SequenceService, SequenceState
from dte_kernel.services.stock_ledger import StockLedger

__all__ = [
    "InvoiceWriter",
    "SequenceService",
    "SequenceState",
    "StockLedger",
]
