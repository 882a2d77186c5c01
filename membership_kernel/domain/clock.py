"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that engines never read the system time.
    Services ask the clock for the current billing period and pass it to the
    ledger aggregator as ``now_period``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Failure modes:
    None.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

from membership_kernel.domain.periods import period_from_date


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services that need the current time receive a Clock through their
        constructor. Engine code never calls ``datetime.now()``.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``current_period()`` is the "YYYY-MM" key of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def current_period(self) -> str:
        return period_from_date(self.now().date())


class SystemClock(Clock):
    """
    Production clock backed by the system time.

    Args:
        tz: Timezone the billing month is evaluated in. Defaults to UTC;
            an office that closes months in local time passes its zone.
    """

    def __init__(self, tz: timezone = timezone.utc):
        self._tz = tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 3, 15, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        self._advance_seconds += seconds
