"""
Module: dte_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factory ownership,
    and transactional scope utilities.  A ``Database`` instance is the single
    handle to a connection pool; it is created by the process runtime and
    injected into every service and selector that needs it.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/, selectors/, domain/, or outer layers
    (except for create_tables/drop_tables which import models).

Invariants enforced:
    - No module-level engine: every caller receives its Database explicitly.
    - PostgreSQL runs READ COMMITTED with explicit row locks
      (SELECT ... FOR UPDATE) on sequence and product rows.
    - SQLite (tests / local development) opens every transaction with
      BEGIN IMMEDIATE, which serializes writers so the same lock-then-proceed
      guarantees hold.  Foreign keys are switched on per connection.

Failure modes:
    - OperationalError when a lock wait exceeds ``lock_timeout_ms`` (PostgreSQL)
      or the busy timeout (SQLite).
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from dte_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _install_sqlite_locking(engine: Engine) -> None:
    """Make pysqlite emit BEGIN IMMEDIATE and enforce foreign keys."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's own transaction handling; BEGIN is emitted below.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """
    Owns one SQLAlchemy engine and its session factory.

    Contract:
        Construct with ``Database.from_url``.  Sessions handed out by
        ``session()`` are plain ORM sessions with ``expire_on_commit=False``
        so DTOs can be built after commit.  ``dispose()`` releases every
        pooled connection and is safe to call more than once.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._disposed = False

    @classmethod
    def from_url(
        cls,
        database_url: str,
        *,
        echo: bool = False,
        pool_size: int = 10,
        max_overflow: int = 5,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
        lock_timeout_ms: int = 5000,
    ) -> "Database":
        """
        Build a Database for a PostgreSQL or SQLite URL.

        Args:
            database_url: SQLAlchemy URL (postgresql+psycopg2://... or sqlite:///...).
            echo: If True, log all SQL statements.
            pool_size: Connections kept in the pool (PostgreSQL only).
            max_overflow: Connections allowed beyond pool_size (PostgreSQL only).
            pool_timeout: Seconds to wait for a pooled connection.
            pool_recycle: Seconds after which a connection is recycled.
            lock_timeout_ms: Row-lock wait limit; SQLite uses it as busy timeout.
        """
        url = make_url(database_url)

        if url.get_backend_name() == "sqlite":
            engine = create_engine(
                url,
                echo=echo,
                connect_args={
                    "timeout": max(lock_timeout_ms / 1000, 1),
                    "check_same_thread": False,
                },
            )
            _install_sqlite_locking(engine)
        else:
            engine = create_engine(
                url,
                echo=echo,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                isolation_level="READ COMMITTED",
                connect_args={"options": f"-c lock_timeout={lock_timeout_ms}"},
            )

        logger.info(
            "engine_initialized",
            extra={
                "dialect": engine.dialect.name,
                "database": url.database,
                "echo": echo,
            },
        )
        return cls(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    @property
    def is_postgres(self) -> bool:
        return self.dialect_name == "postgresql"

    def session(self) -> Session:
        """Return a new, unbound-to-transaction session."""
        return self._session_factory()

    def session_factory(self) -> sessionmaker[Session]:
        """Factory for multi-threaded callers that need one session each."""
        return self._session_factory

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Commits on normal exit, rolls back and re-raises on exception, and
        always closes the session.

        Usage:
            with database.session_scope() as session:
                session.add(entity)
        """
        session = self.session()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """Create every table known to the model registry."""
        from dte_kernel.db.base import Base
        import dte_kernel.models  # noqa: F401  registers all tables

        Base.metadata.create_all(self._engine)
        logger.info(
            "schema_created",
            extra={"tables": sorted(Base.metadata.tables)},
        )

    def drop_tables(self) -> None:
        """Drop all tables. Use with caution - primarily for testing."""
        from dte_kernel.db.base import Base
        import dte_kernel.models  # noqa: F401

        Base.metadata.drop_all(self._engine)

    def dispose(self) -> None:
        """Release every pooled connection."""
        if self._disposed:
            return
        self._disposed = True
        self._engine.dispose()
        logger.info("engine_disposed", extra={"dialect": self.dialect_name})
