"""Cooperative timers for trial engines.

Nothing here runs in the background. A host (the pygame frame loop, or a test
advancing a fake clock) calls :meth:`TimerQueue.update` and every timer whose
due time has passed fires, in due-time order, on the caller's thread. Callbacks
run to completion before the next one starts, so a trial's ``ended`` flag can be
checked and set without locking.

``ResourceScope`` groups the timers and input listeners one trial owns so they
can all be released at once when the trial terminates.
"""

from __future__ import annotations

import heapq
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from .clock import Clock

logger = logging.getLogger(__name__)


class Releasable(Protocol):
    def cancel(self) -> None: ...


@dataclass(eq=False, slots=True)
class TimerHandle:
    due_s: float
    callback: Callable[[], None]
    label: str = ""
    cancelled: bool = False
    fired: bool = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self) -> None:
        self.cancelled = True


class TimerQueue:
    """One-shot timers fired from a polled ``update()``."""

    def __init__(self, *, clock: Clock) -> None:
        self._clock = clock
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    @property
    def clock(self) -> Clock:
        return self._clock

    def call_later(self, delay_ms: float, callback: Callable[[], None], *, label: str = "") -> TimerHandle:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        handle = TimerHandle(due_s=self._clock.now() + float(delay_ms) / 1000.0, callback=callback, label=label)
        heapq.heappush(self._heap, (handle.due_s, next(self._seq), handle))
        return handle

    def pending(self) -> int:
        return sum(1 for _, _, h in self._heap if h.active)

    def next_due_s(self) -> float | None:
        self._drop_cancelled()
        return None if not self._heap else self._heap[0][0]

    def update(self) -> int:
        """Fire every due timer. Returns how many callbacks ran."""

        fired = 0
        now = self._clock.now()
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            if not handle.active:
                continue
            handle.fired = True
            fired += 1
            handle.callback()
        return fired

    def clear(self) -> None:
        for _, _, handle in self._heap:
            handle.cancel()
        self._heap.clear()

    def _drop_cancelled(self) -> None:
        while self._heap and not self._heap[0][2].active:
            heapq.heappop(self._heap)


@dataclass(slots=True)
class ResourceScope:
    """Timers and listeners owned by a single trial.

    Listeners are released before timers so that no input can reach a trial
    that is in the middle of shutting down.
    """

    timers: TimerQueue
    name: str = ""
    _timer_handles: list[TimerHandle] = field(default_factory=list, init=False)
    _listeners: list[Releasable] = field(default_factory=list, init=False)
    _closed: bool = field(default=False, init=False)

    @property
    def closed(self) -> bool:
        return self._closed

    def call_later(self, delay_ms: float, callback: Callable[[], None], *, label: str = "") -> TimerHandle:
        handle = self.timers.call_later(delay_ms, callback, label=label)
        if self._closed:
            handle.cancel()
        else:
            self._timer_handles.append(handle)
        return handle

    def adopt(self, listener: Releasable) -> Releasable:
        if self._closed:
            listener.cancel()
        else:
            self._listeners.append(listener)
        return listener

    def release(self) -> None:
        if self._closed:
            return
        self._closed = True
        for listener in self._listeners:
            listener.cancel()
        pending = [h.label for h in self._timer_handles if h.active]
        for handle in self._timer_handles:
            handle.cancel()
        if pending:
            logger.debug("%s: cancelled pending timers %s", self.name or "scope", pending)
        self._listeners.clear()
        self._timer_handles.clear()

    def __enter__(self) -> ResourceScope:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
