"""
Domain time utilities (pure).

Centralized timestamp validation and the injectable clock.

Every component that needs "now" receives a Clock (a zero-argument callable
returning a UTC datetime) instead of calling datetime.now() itself, so tests
can pin time.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the contract requirement that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    """Wall-clock time as a UTC datetime."""

    return datetime.now(timezone.utc)


class NonDecreasingClock:
    """
    Clock wrapper that never goes backward.

    Status reconciliation relies on time only moving forward: a clock step
    backward (NTP correction, VM migration) could otherwise compute an earlier
    lifecycle status than the one already stored. This wrapper clamps every
    reading to the latest instant it has already handed out.
    """

    def __init__(self, source: Clock = utc_now) -> None:
        self._source = source
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        now = self._source()
        require_utc_timestamp("now", now)
        with self._lock:
            if self._last is not None and now < self._last:
                return self._last
            self._last = now
            return now


__all__ = [
    "Clock",
    "NonDecreasingClock",
    "require_utc_timestamp",
    "utc_now",
]
