"""
Clock -- injectable time source.

Responsibility:
    Provides an injectable clock interface so that issuance, voidance and
    reporting code never call ``datetime.now()`` or ``date.today()`` directly,
    plus the conversion from an instant to the local business day printed
    on a document.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    - ValueError if a naive datetime is handed to ``business_date``.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.

    Guarantees:
        - ``now_utc()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now_utc(self) -> datetime:
        """Get the current UTC time."""
        ...

    def today(self, utc_offset_minutes: int = 0) -> date:
        """Local business day for the current instant."""
        return business_date(self.now_utc(), utc_offset_minutes)


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now_utc()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 1, 15, 18, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now_utc(self) -> datetime:
        return (
            self._fixed_time + timedelta(seconds=self._advance_seconds)
        ).astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now_utc()


def business_date(instant: datetime, utc_offset_minutes: int = 0) -> date:
    """
    Calendar date of ``instant`` in the business's fixed UTC offset.

    El Salvador does not observe daylight saving, so a fixed offset
    (-360 minutes) identifies the local day exactly.
    """
    if instant.tzinfo is None:
        raise ValueError("business_date requires a timezone-aware datetime")
    local = instant.astimezone(timezone(timedelta(minutes=utc_offset_minutes)))
    return local.date()
