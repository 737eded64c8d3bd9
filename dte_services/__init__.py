"""
dte_services -- Package init and public API.

Responsibility:
    Transaction-owning orchestration over the kernel.  This is the only
    layer that commits or rolls back, and the only layer that constructs
    a Database (through InvoicingRuntime).

Architecture position:
    Services -- outermost layer.

    Dependency direction:
        dte_services/ -> dte_kernel/  (allowed)
        dte_services/ -> dte_config/  (allowed)
        dte_kernel/   -> dte_services/ (FORBIDDEN)
"""

from dte_services.invoice_lifecycle import InvoiceLifecycleManager
from dte_services.runtime import InvoicingRuntime
from dte_services.stock_operations import StockOperations
from dte_services.unit_of_work import read_only, run_atomic

__all__ = [
    "InvoiceLifecycleManager",
    "InvoicingRuntime",
    "StockOperations",
    "read_only",
    "run_atomic",
]
