"""Database layer - engine, base classes, types, and immutability listeners."""

from dte_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from dte_kernel.db.engine import Database
from dte_kernel.db.types import ExactDecimal, Money, UTCDateTime

__all__ = [
    "Database",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "ExactDecimal",
    "Money",
    "UTCDateTime",
]
