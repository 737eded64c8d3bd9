"""
Typed Exception Hierarchy for the DTE Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Invoice issuance fails for very different reasons: an unknown product, an
empty cart, a second void of the same document, a lock timeout.  Callers
(HTTP adapters, batch jobs, tests) must react to each one differently, so
every failure has:

  1. a TYPED exception class (catch by type, not by message),
  2. a class-level CODE attribute (machine-readable, API-safe),
  3. structured attributes (ids, quantities) instead of formatted text only.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DteKernelError (base)
    |
    +-- NotFoundError                      -> 404-equivalent, not retried
    |   +-- ProductNotFoundError
    |   +-- BranchNotFoundError
    |   +-- ClientNotFoundError
    |   +-- InvoiceNotFoundError
    |
    +-- ValidationFailureError             -> 400-equivalent
    |   +-- InvalidDraftError
    |   +-- EmptyInvoiceError
    |   +-- InvalidQuantityError
    |   +-- InvalidDiscountError
    |   +-- ProductInactiveError
    |   +-- StockNotTrackedError
    |
    +-- InvalidStateError                  -> domain conflict, not retried
    |   +-- InvoiceAlreadyVoidedError
    |
    +-- InsufficientStockError             -> aborts before any mutation
    |
    +-- TransactionAbortError              -> rolled back, safe to retry
    |
    +-- IdentifierError
    |   +-- InvalidBranchCodeError
    |   +-- IdentifierFormatError
    |
    +-- ImmutabilityViolationError         -> append-only / frozen records

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                     | When Raised
--------------|--------------------------|---------------------------------------
Not found     | PRODUCT_NOT_FOUND        | Product id unknown
              | BRANCH_NOT_FOUND         | Branch id unknown
              | CLIENT_NOT_FOUND         | Client id unknown
              | INVOICE_NOT_FOUND        | Invoice id unknown
--------------|--------------------------|---------------------------------------
Validation    | INVALID_DRAFT            | Malformed header field (series, enums)
              | EMPTY_INVOICE            | Item list is empty
              | INVALID_QUANTITY         | Quantity is not a positive integer
              | INVALID_DISCOUNT         | Discount is negative or not a decimal
              | PRODUCT_INACTIVE         | Product is deactivated
              | STOCK_NOT_TRACKED        | Stock movement on a SERVICE product
--------------|--------------------------|---------------------------------------
State         | INVOICE_ALREADY_VOIDED   | Void of a VOIDED invoice
--------------|--------------------------|---------------------------------------
Stock         | INSUFFICIENT_STOCK       | Requested qty exceeds available stock
--------------|--------------------------|---------------------------------------
Transaction   | TRANSACTION_ABORTED      | Lock timeout, constraint, fault
--------------|--------------------------|---------------------------------------
Identifier    | INVALID_BRANCH_CODE      | No usable trailing digits in code
              | IDENTIFIER_FORMAT        | Value does not fit the fixed width
--------------|--------------------------|---------------------------------------
Immutability  | IMMUTABILITY_VIOLATION   | Update/delete of a frozen record

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        record = manager.create(draft, issued_by_id=user_id)
    except InsufficientStockError as e:
        return {"error": e.code, "sku": e.sku, "available": e.available}
    except NotFoundError as e:
        return 404, {"error": e.code}
    except TransactionAbortError:
        # Nothing was committed; the whole call may be retried.
        retry()

Catch the narrowest class you can act on; category bases exist so adapters
can map whole families to a status code.
"""


class DteKernelError(Exception):
    """
    Base exception for all DTE kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "DTE_KERNEL_ERROR"


# Not found


class NotFoundError(DteKernelError):
    """Base exception for references that do not exist."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class BranchNotFoundError(NotFoundError):
    """Branch with given ID was not found."""

    code: str = "BRANCH_NOT_FOUND"

    def __init__(self, branch_id: str):
        self.branch_id = branch_id
        super().__init__(f"Branch not found: {branch_id}")


class ClientNotFoundError(NotFoundError):
    """Client with given ID was not found."""

    code: str = "CLIENT_NOT_FOUND"

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Client not found: {client_id}")


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


# Validation


class ValidationFailureError(DteKernelError):
    """Base exception for malformed input detected before any transaction."""

    code: str = "VALIDATION_FAILURE"


class InvalidDraftError(ValidationFailureError):
    """A header field of the invoice draft is malformed."""

    code: str = "INVALID_DRAFT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class EmptyInvoiceError(ValidationFailureError):
    """An invoice must carry at least one line item."""

    code: str = "EMPTY_INVOICE"

    def __init__(self):
        super().__init__("Invoice must contain at least one item")


class InvalidQuantityError(ValidationFailureError):
    """Line quantity is not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, product_id: str, quantity: object):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(
            f"Quantity for product {product_id} must be a positive integer, got {quantity!r}"
        )


class InvalidDiscountError(ValidationFailureError):
    """Line discount is negative or not an exact decimal."""

    code: str = "INVALID_DISCOUNT"

    def __init__(self, product_id: str, discount: object):
        self.product_id = product_id
        self.discount = discount
        super().__init__(
            f"Discount for product {product_id} must be a non-negative decimal, got {discount!r}"
        )


class ProductInactiveError(ValidationFailureError):
    """Product is deactivated and cannot be invoiced."""

    code: str = "PRODUCT_INACTIVE"

    def __init__(self, product_id: str, sku: str):
        self.product_id = product_id
        self.sku = sku
        super().__init__(f"Product {sku} ({product_id}) is inactive")


class StockNotTrackedError(ValidationFailureError):
    """Stock movements are only meaningful for GOOD products."""

    code: str = "STOCK_NOT_TRACKED"

    def __init__(self, product_id: str, sku: str):
        self.product_id = product_id
        self.sku = sku
        super().__init__(f"Product {sku} ({product_id}) is a service; stock is not tracked")


# Lifecycle state


class InvalidStateError(DteKernelError):
    """Base exception for illegal lifecycle transitions."""

    code: str = "INVALID_STATE"


class InvoiceAlreadyVoidedError(InvalidStateError):
    """Voiding an invoice that is already VOIDED."""

    code: str = "INVOICE_ALREADY_VOIDED"

    def __init__(self, invoice_id: str, control_number: str):
        self.invoice_id = invoice_id
        self.control_number = control_number
        super().__init__(f"Invoice {control_number} ({invoice_id}) is already voided")


# Stock


class InsufficientStockError(DteKernelError):
    """Requested quantity exceeds the available stock of a product."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, sku: str, requested: int, available: int):
        self.product_id = product_id
        self.sku = sku
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {sku}: requested {requested}, available {available}"
        )


# Transaction


class TransactionAbortError(DteKernelError):
    """
    The atomic create/void/adjust block failed and was rolled back.

    Nothing from the attempt was committed; the caller may retry the whole
    operation.
    """

    code: str = "TRANSACTION_ABORTED"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} aborted and rolled back: {reason}")


# Identifiers


class IdentifierError(DteKernelError):
    """Base exception for document identifier derivation failures."""

    code: str = "IDENTIFIER_ERROR"


class InvalidBranchCodeError(IdentifierError):
    """Branch code does not end in a usable 3-digit establishment number."""

    code: str = "INVALID_BRANCH_CODE"

    def __init__(self, branch_code: str, reason: str):
        self.branch_code = branch_code
        self.reason = reason
        super().__init__(f"Invalid branch code {branch_code!r}: {reason}")


class IdentifierFormatError(IdentifierError):
    """A value does not fit the fixed width of a document identifier."""

    code: str = "IDENTIFIER_FORMAT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot format {field}={value!r}: {reason}")


# Immutability


class ImmutabilityViolationError(DteKernelError):
    """Attempt to modify or delete a record that is append-only or frozen."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")

