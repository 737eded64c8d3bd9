"""
ORM-level immutability enforcement for issued documents and the stock ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

An issued DTE is a legal document.  Once it carries a control number its
amounts, identifiers and lines never change; the only permitted mutation is
the single EMITTED -> VOIDED transition.  Stock movements are the ledger
behind every product's stock counter and are append-only.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below intercept those events:

    session.flush()
         |
         v
    [before_update] --> _check_*_update() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable            | What may still change
----------------|---------------------------|-----------------------------------
Invoice         | From EMITTED              | status (EMITTED -> VOIDED once),
                |                           | voided_at, voided_by_id, audit cols
InvoiceLine     | ALWAYS (from creation)    | nothing
StockMovement   | ALWAYS (from creation)    | nothing

updated_at / updated_by_id are audit metadata and are always allowed.

===============================================================================
USAGE
===============================================================================

    from dte_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()   # once, at process start

    # TESTS ONLY
    unregister_immutability_listeners()

Both functions are idempotent.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from dte_kernel.exceptions import ImmutabilityViolationError
from dte_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})
_VOID_FIELDS = frozenset({"status", "voided_at", "voided_by_id"})


def _status_value(value) -> str | None:
    if value is None:
        return None
    return getattr(value, "value", value)


def _block(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_invoice_update(mapper, connection, target):
    """
    Freeze an issued invoice except for its one-time voidance.

    Logic:
        1. Invoice still DRAFT before this flush: anything goes.
        2. Status changing EMITTED -> VOIDED: only void fields may change.
        3. Otherwise (already EMITTED or VOIDED): only audit fields may change.
    """
    status_history = get_history(target, "status")

    if status_history.deleted:
        previous = _status_value(status_history.deleted[0])
    else:
        previous = _status_value(target.status)

    if previous == "draft":
        return

    current = _status_value(target.status)
    voiding = previous == "emitted" and current == "voided"
    allowed = _AUDIT_FIELDS | (_VOID_FIELDS if voiding else frozenset())

    if status_history.deleted and not voiding:
        _block(
            "Invoice",
            target.id,
            "UPDATE",
            f"Illegal status transition {previous} -> {current}",
            field="status",
        )

    for attr in inspect(target).attrs:
        if attr.key in allowed:
            continue
        if attr.history.has_changes():
            _block(
                "Invoice",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on issued invoice",
                field=attr.key,
            )


def _check_invoice_delete(mapper, connection, target):
    if _status_value(target.status) != "draft":
        _block("Invoice", target.id, "DELETE", "Issued invoices cannot be deleted")


def _check_invoice_line_update(mapper, connection, target):
    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            _block(
                "InvoiceLine",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on invoice line",
                field=attr.key,
            )


def _check_invoice_line_delete(mapper, connection, target):
    _block("InvoiceLine", target.id, "DELETE", "Invoice lines cannot be deleted")


def _check_stock_movement_update(mapper, connection, target):
    _block(
        "StockMovement",
        target.id,
        "UPDATE",
        "Stock movements are append-only and cannot be modified",
    )


def _check_stock_movement_delete(mapper, connection, target):
    _block(
        "StockMovement",
        target.id,
        "DELETE",
        "Stock movements are append-only and cannot be deleted",
    )


def _listeners():
    from dte_kernel.models.invoice import Invoice, InvoiceLine
    from dte_kernel.models.stock_movement import StockMovement

    return [
        (Invoice, "before_update", _check_invoice_update),
        (Invoice, "before_delete", _check_invoice_delete),
        (InvoiceLine, "before_update", _check_invoice_line_update),
        (InvoiceLine, "before_delete", _check_invoice_line_delete),
        (StockMovement, "before_update", _check_stock_movement_update),
        (StockMovement, "before_delete", _check_stock_movement_delete),
    ]


def register_immutability_listeners() -> None:
    """Register every immutability listener (idempotent)."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """
    Remove immutability listeners.

    WARNING: Only use this in tests that must bypass the guard on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
