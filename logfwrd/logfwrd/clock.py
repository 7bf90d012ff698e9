"""
Clocks for the batching engine.

The buffer needs two readings per record: a wall-clock UTC timestamp for the
batch window (it ends up in object keys) and a monotonic reading for the age
check, so that wall-clock jumps never force or delay a flush.

Usage:
    from logfwrd.clock import ManualClock

    clock = ManualClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
    buffer = BatchBuffer(sink, clock=clock)
    clock.advance(30)
"""

import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Optional, Union


class SystemClock:
    """Real time: aware UTC datetimes and time.monotonic()."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """
    A clock that only moves when told to.

    Both readings advance together, so age checks and window timestamps
    stay consistent in tests.
    """

    def __init__(self, start: Optional[datetime] = None):
        """
        Initialize the ManualClock.

        Args:
            start: Initial wall-clock time. Naive datetimes are taken as UTC.
                Defaults to 2024-01-01T00:00:00Z.
        """
        if start is None:
            start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        elif start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start
        self._monotonic = 0.0
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def monotonic(self) -> float:
        with self._lock:
            return self._monotonic

    def advance(self, seconds: Union[float, timedelta]) -> None:
        """
        Move the clock forward.

        Args:
            seconds: Number of seconds, or a timedelta
        """
        if isinstance(seconds, timedelta):
            seconds = seconds.total_seconds()
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds)
            self._monotonic += seconds

    def set(self, dt: datetime) -> None:
        """Jump the wall clock to dt without touching the monotonic reading."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        with self._lock:
            self._now = dt


system_clock = SystemClock()
