from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Trial logic depends on this interface rather than calling real time directly,
    so timers, reaction times and probe latencies can be driven headlessly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.perf_counter()."""

    def now(self) -> float:
        return time.perf_counter()


class ManualClock:
    """Clock that only moves when told to (headless hosts and demos)."""

    def __init__(self, start_s: float = 0.0) -> None:
        self._now = float(start_s)

    def now(self) -> float:
        return self._now

    def advance_ms(self, ms: float) -> None:
        if ms < 0:
            raise ValueError("Cannot advance clock backwards")
        self._now += float(ms) / 1000.0


def elapsed_ms(clock: Clock, since_s: float) -> int:
    """Whole milliseconds elapsed on ``clock`` since ``since_s`` (never negative)."""

    return int(round(max(0.0, clock.now() - since_s) * 1000.0))
