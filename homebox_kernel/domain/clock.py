"""
Clock -- injectable time source for adapter-owned timestamps.

Responsibility:
    Services never call ``datetime.now()`` directly.  The Clock handed to
    HierarchyService is the only place ``created``/``updated`` come from.

Architecture position:
    Kernel > Domain -- pure, zero I/O (except SystemClock, which is the one
    sanctioned I/O boundary for time).

Invariants enforced:
    I4 -- indirectly.  HierarchyService clamps ``updated`` to at least
          ``created``, so a clock that steps backwards cannot violate it.
"""

import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall clock.  Production default."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class SteppingClock(Clock):
    """
    Test clock that advances by a fixed step on every read.

    Every ``now()`` call returns a strictly later instant than the previous
    one, so creation order is observable through timestamps without sleeping.
    ``rewind()`` moves the clock backwards to exercise timestamp clamping.
    Thread-safe: concurrent readers each get a distinct instant.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __init__(
        self,
        start: datetime | None = None,
        step: timedelta = timedelta(milliseconds=1),
    ):
        if step <= timedelta(0):
            raise ValueError("step must be positive")
        start = start or self.DEFAULT_START
        if start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        self._current = start.astimezone(UTC)
        self._step = step
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            self._current = self._current + self._step
            return self._current

    def peek(self) -> datetime:
        """Last instant handed out, without advancing."""
        with self._lock:
            return self._current

    def advance(self, delta: timedelta) -> None:
        with self._lock:
            self._current = self._current + delta

    def rewind(self, delta: timedelta) -> None:
        with self._lock:
            self._current = self._current - delta
