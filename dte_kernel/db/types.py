"""
Module: dte_kernel.db.types
Responsibility: Column types for exact monetary storage and annotated aliases
    shared by every model.
Architecture position: Kernel > DB.  May be imported by db/base.py and
    models/.  MUST NOT import from services/, selectors/ or domain/.

Invariants enforced:
    - No floats: ExactDecimal refuses to bind a float; amounts are Decimal
      on the way in and on the way out.
    - No silent precision loss: PostgreSQL stores NUMERIC(38, 9); SQLite,
      which has no exact decimal storage class, stores the canonical
      decimal string instead of a REAL.

Failure modes:
    - TypeError when a float (or any non-decimal) is bound to a money column.
"""

from datetime import timezone
from decimal import Decimal
from typing import Annotated

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator

from dte_kernel.domain.money import STORED_PLACES

MONEY_PRECISION = 38
MONEY_SCALE = STORED_PLACES


class ExactDecimal(TypeDecorator):
    """
    Decimal column that round-trips exactly on every supported backend.

    Contract:
        Accepts ``Decimal`` or ``int`` values and always returns ``Decimal``.

    Guarantees:
        - PostgreSQL: native NUMERIC(38, 9).
        - SQLite: TEXT holding ``str(Decimal)``.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = Numeric(MONEY_PRECISION, MONEY_SCALE)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(
            Numeric(MONEY_PRECISION, MONEY_SCALE, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
            raise TypeError(
                f"Money columns accept Decimal or int, got {type(value).__name__}"
            )
        value = Decimal(value)
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value)) if not isinstance(value, Decimal) else value



class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always comes back in UTC.

    SQLite has no timezone support and returns naive values; those are
    stored and read as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetimes cannot be stored; attach a timezone")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# Monetary amount, stored exactly
Money = Annotated[Decimal, ExactDecimal()]

# Invoice series codes (e.g. "FAC", "CCF")
SeriesCode = Annotated[str, String(10)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for notes and observations
LongText = Annotated[str, String(2000)]
