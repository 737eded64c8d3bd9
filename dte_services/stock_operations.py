"""
StockOperations -- transaction-owning manual stock entries and stock reads.

Responsibility:
    Wraps ``StockLedger.adjust_stock`` in its own unit of work for stock
    receipts, write-offs and counts, and exposes the ledger read side
    (movement history, reconciliation, low-stock report) as DTOs.

Architecture position:
    Services layer -- owns commit / rollback for manual adjustments.
    Invoice-driven movements never pass through here; they are written by
    InvoiceWriter inside the issuance or voidance transaction.

Failure modes:
    - ProductNotFoundError, StockNotTrackedError, InvalidQuantityError,
      InsufficientStockError after rollback.
    - TransactionAbortError for any infrastructure failure.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING
from uuid import UUID

from dte_kernel.db.engine import Database
from dte_kernel.domain.clock import Clock, SystemClock
from dte_kernel.domain.dtos import (
    ProductSnapshot,
    StockDirection,
    StockMovementRecord,
)
from dte_kernel.logging_config import LogContext, get_logger
from dte_kernel.selectors.stock_selector import (
    DEFAULT_LOW_STOCK_THRESHOLD,
    StockSelector,
)
from dte_kernel.services.stock_ledger import StockLedger
from dte_services.unit_of_work import read_only, run_atomic

if TYPE_CHECKING:
    from dte_config.schema import DteConfig

logger = get_logger("services.stock_operations")


class StockOperations:
    """
    Manual stock movements and stock queries.

    Usage:
        stock = StockOperations.from_config(database, config)
        stock.adjust(product_id, "in", 50, "Supplier receipt", actor_id=user_id)
        stock.movements(product_id, limit=20)
    """

    def __init__(
        self,
        database: Database,
        *,
        clock: Clock | None = None,
        allow_negative_stock: bool = False,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ):
        self._db = database
        self._clock = clock or SystemClock()
        self._allow_negative_stock = allow_negative_stock
        self._low_stock_threshold = low_stock_threshold

    @classmethod
    def from_config(
        cls,
        database: Database,
        config: DteConfig,
        clock: Clock | None = None,
    ) -> StockOperations:
        return cls(
            database,
            clock=clock,
            allow_negative_stock=config.inventory.allow_negative_stock,
            low_stock_threshold=config.inventory.low_stock_threshold,
        )

    def adjust(
        self,
        product_id: UUID,
        direction: StockDirection | str,
        quantity: int,
        note: str | None = None,
        *,
        actor_id: UUID,
    ) -> StockMovementRecord:
        """
        Record one manual movement in its own transaction.

        IN adds and OUT subtracts ``quantity``; ADJUST sets the absolute
        stock level to ``quantity``.
        """
        direction = StockDirection(direction)

        with LogContext.bind(
            correlation_id=str(uuid.uuid4()),
            actor_id=str(actor_id),
            product_id=str(product_id),
        ):
            def work(session) -> StockMovementRecord:
                ledger = StockLedger(
                    session,
                    actor_id,
                    clock=self._clock,
                    allow_negative_stock=self._allow_negative_stock,
                )
                return ledger.adjust_stock(product_id, direction, quantity, note)

            record = run_atomic(self._db, "stock_adjust", work, logger)

            logger.info(
                "stock_adjusted",
                extra={
                    "direction": direction.value,
                    "quantity": quantity,
                    "balance_after": record.balance_after,
                },
            )
            return record

    def current_stock(self, product_id: UUID) -> int:
        with read_only(self._db) as session:
            return StockLedger(session, actor_id=None).current_stock(product_id)

    def ledger_balance(self, product_id: UUID) -> int:
        with read_only(self._db) as session:
            return StockSelector(session).ledger_balance(product_id)

    def movements(
        self,
        product_id: UUID,
        limit: int | None = None,
    ) -> list[StockMovementRecord]:
        with read_only(self._db) as session:
            return StockSelector(session).movements(product_id, limit=limit)

    def low_stock(self, threshold: int | None = None) -> list[ProductSnapshot]:
        if threshold is None:
            threshold = self._low_stock_threshold
        with read_only(self._db) as session:
            return StockSelector(session).low_stock(threshold)
