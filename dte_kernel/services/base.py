"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel layer.  Concrete services receive a
    SQLAlchemy ``Session`` and persist through ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    SequenceService, StockLedger and InvoiceWriter extend this class.

Invariants enforced:
    - Transaction boundaries belong to the caller (the orchestrators in
      dte_services or a test harness).  Services flush within the caller's
      transaction so numbering, stock and invoice rows commit or roll back
      together.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only queries belong in ``dte_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
