"""Clock abstraction for job timing.

WallClock: real monotonic time used for progress / elapsed tracking.
SimClock: deterministic clock advanced explicitly by tests.

Schedulers never call time.monotonic() directly, they use their clock.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Protocol


class IClock(Protocol):
    """Clock interface used by all time-dependent code."""

    def now(self) -> datetime:
        """Current time as timezone-aware UTC datetime."""
        ...

    def monotonic_ms(self) -> int:
        """Monotonic milliseconds, only meaningful as a difference."""
        ...


class WallClock:
    """Real wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic_ms(self) -> int:
        return time.monotonic_ns() // 1_000_000


class SimClock:
    """Simulated clock for deterministic tests.

    Time advances only when explicitly moved forward.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._time = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._mono_ms = 0

    def now(self) -> datetime:
        return self._time

    def monotonic_ms(self) -> int:
        return self._mono_ms

    def advance_ms(self, ms: int) -> None:
        """Advance time by milliseconds. Must not go backwards."""
        if ms < 0:
            raise ValueError(f"SimClock cannot go backwards: {ms}ms")
        self._mono_ms += ms
        self._time = self._time + timedelta(milliseconds=ms)
