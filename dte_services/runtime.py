"""
InvoicingRuntime -- process entry point that owns the database lifecycle.

Responsibility:
    Loads configuration, configures logging, builds the one ``Database`` of
    the process, installs the ORM immutability guards and wires the
    orchestrators.  ``shutdown()`` disposes the connection pool; it runs
    on context-manager exit and, as a fallback, at interpreter exit.

Architecture position:
    Services layer -- the outermost object a caller (script, web app,
    worker) constructs.  Nothing below it creates a Database.

Usage:
    with InvoicingRuntime(create_schema=True) as runtime:
        record = runtime.invoices.create(draft, issued_by_id=user_id)
"""

from __future__ import annotations

import atexit

from dte_config import get_active_config
from dte_config.schema import DteConfig
from dte_kernel.db.engine import Database
from dte_kernel.db.immutability import register_immutability_listeners
from dte_kernel.domain.clock import Clock, SystemClock
from dte_kernel.logging_config import configure_logging, get_logger
from dte_services.invoice_lifecycle import InvoiceLifecycleManager
from dte_services.stock_operations import StockOperations

logger = get_logger("services.runtime")


class InvoicingRuntime:
    """
    Owns the Database and the orchestrators built on it.

    Contract:
        ``start()`` is idempotent; ``invoices``, ``stock`` and ``database``
        are available after it.  ``shutdown()`` is idempotent as well.
    """

    def __init__(
        self,
        config: DteConfig | None = None,
        clock: Clock | None = None,
        create_schema: bool = False,
    ):
        self._config = config
        self._clock = clock or SystemClock()
        self._create_schema = create_schema
        self._database: Database | None = None
        self.invoices: InvoiceLifecycleManager | None = None
        self.stock: StockOperations | None = None

    @property
    def config(self) -> DteConfig:
        if self._config is None:
            self._config = get_active_config()
        return self._config

    @property
    def database(self) -> Database:
        if self._database is None:
            raise RuntimeError("InvoicingRuntime has not been started")
        return self._database

    @property
    def started(self) -> bool:
        return self._database is not None

    def start(self) -> InvoicingRuntime:
        if self._database is not None:
            return self

        config = self.config
        configure_logging(level=config.logging.level)

        db = config.database
        self._database = Database.from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
            lock_timeout_ms=db.lock_timeout_ms,
        )
        register_immutability_listeners()
        if self._create_schema:
            self._database.create_tables()

        self.invoices = InvoiceLifecycleManager.from_config(
            self._database, config, clock=self._clock
        )
        self.stock = StockOperations.from_config(
            self._database, config, clock=self._clock
        )
        atexit.register(self.shutdown)

        logger.info(
            "runtime_started",
            extra={
                "config_id": config.config_id,
                "config_version": config.version,
                "dialect": self._database.dialect_name,
            },
        )
        return self

    def shutdown(self) -> None:
        if self._database is None:
            return
        database, self._database = self._database, None
        self.invoices = None
        self.stock = None
        atexit.unregister(self.shutdown)
        database.dispose()
        logger.info("runtime_stopped")

    def __enter__(self) -> InvoicingRuntime:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
