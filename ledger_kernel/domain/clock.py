"""
Clock -- injectable source of "now" for the ledger kernel.

Responsibility:
    Posting timestamps, refund and payment dates and the year embedded in
    journal entry numbers (JE-<year>-<seq>) are read from a Clock, so a
    test can pin them and a service never reaches for ``datetime.now()``.

Invariants:
    ``now()`` is timezone-aware UTC; ``today()`` is its UTC calendar date.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta

LEDGER_EPOCH = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime: ...

    def today(self) -> date:
        return self.now().astimezone(UTC).date()


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """Frozen clock for tests; time only moves when told to.

    Starts at LEDGER_EPOCH unless another instant is given.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or LEDGER_EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, instant: datetime) -> None:
        self._current = instant

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new instant."""
        self.advance()
        return self._current
