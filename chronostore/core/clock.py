"""
Processing-time clocks.

Every processing interval starts at clock.now(). The clock is injected into
the mutation protocol so tests and replays can pin processing time.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of processing time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """Clock that only moves when told to.

    Args:
        start: Initial instant (naive values are taken as UTC)
        step: If set, each call to now() advances the clock by this amount
            after reading it
    """

    def __init__(self, start: datetime, step: timedelta | None = None):
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._current = start.astimezone(timezone.utc)
        self._step = step
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = self._current
            if self._step is not None:
                self._current = current + self._step
            return current

    def advance(self, delta: timedelta = timedelta(seconds=1)) -> datetime:
        """Move the clock forward and return the new instant."""
        with self._lock:
            self._current = self._current + delta
            return self._current

    def set(self, instant: datetime) -> None:
        """Jump to an absolute instant."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        with self._lock:
            self._current = instant.astimezone(timezone.utc)
