"""
Transaction boundary shared by the orchestrators.

Responsibility:
    Runs one unit of work in a fresh session, commits on success and rolls
    back on any failure.  Domain errors (``DteKernelError``) propagate
    unchanged; anything else (SQLAlchemy errors, lock timeouts, unexpected
    exceptions) is re-raised as ``TransactionAbortError`` after rollback.

Architecture position:
    Services layer.  The only place outside tests that calls
    ``session.commit()``.
"""

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy.orm import Session

from dte_kernel.db.engine import Database
from dte_kernel.exceptions import DteKernelError, TransactionAbortError

T = TypeVar("T")


def run_atomic(
    database: Database,
    operation: str,
    work: Callable[[Session], T],
    logger: logging.Logger,
) -> T:
    """Execute ``work(session)`` as a single transaction."""
    session = database.session()
    t0 = time.monotonic()
    try:
        result = work(session)
        session.commit()
    except DteKernelError as exc:
        session.rollback()
        logger.warning(
            "transaction_rolled_back",
            extra={
                "operation": operation,
                "error_code": exc.code,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        raise
    except Exception as exc:
        session.rollback()
        logger.error(
            "transaction_rolled_back",
            extra={
                "operation": operation,
                "error_code": TransactionAbortError.code,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
            exc_info=True,
        )
        raise TransactionAbortError(operation, f"{type(exc).__name__}: {exc}") from exc
    finally:
        session.close()

    logger.debug(
        "transaction_committed",
        extra={
            "operation": operation,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    return result


@contextmanager
def read_only(database: Database) -> Iterator[Session]:
    """Session for queries; always rolled back and closed."""
    session = database.session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
