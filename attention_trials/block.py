from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .clock import Clock
from .registry import build_trial
from .results import ResultRecord
from .scheduler import TimerHandle, TimerQueue
from .surface import Keyboard, SceneSurface
from .trial_core import TrialEngine, new_seed

logger = logging.getLogger(__name__)

INTER_TRIAL_MS = 600


class TrialBlock:
    """Runs trial parameter mappings one after another on shared collaborators.

    Stands in for a real timeline host: no adaptation, no persistence.
    """

    def __init__(
        self,
        trials: Sequence[Mapping[str, Any]],
        *,
        clock: Clock,
        timers: TimerQueue,
        surface: SceneSurface,
        keyboard: Keyboard,
        seed: int | None = None,
        inter_trial_ms: float = INTER_TRIAL_MS,
        on_record: Callable[[ResultRecord], None] | None = None,
    ) -> None:
        self._trials = list(trials)
        self._clock = clock
        self._timers = timers
        self._surface = surface
        self._keyboard = keyboard
        self._seed = new_seed() if seed is None else int(seed)
        self._inter_trial_ms = float(inter_trial_ms)
        self._on_record = on_record

        self._index = -1
        self._current: TrialEngine | None = None
        self._gap: TimerHandle | None = None
        self.results: list[ResultRecord] = []

    @property
    def current(self) -> TrialEngine | None:
        return self._current

    @property
    def finished(self) -> bool:
        return self._index >= len(self._trials)

    def start(self) -> None:
        if self._index >= 0:
            return
        self._advance()

    def update(self) -> None:
        self._timers.update()

    def _advance(self) -> None:
        self._gap = None
        self._index += 1
        if self.finished:
            self._current = None
            self._surface.clear()
            logger.info("block finished: %d records", len(self.results))
            return
        self._current = build_trial(
            self._trials[self._index],
            clock=self._clock,
            timers=self._timers,
            surface=self._surface,
            keyboard=self._keyboard,
            seed=self._seed + self._index,
            on_finish=self._finish,
        )
        self._current.start()

    def _finish(self, record: ResultRecord) -> None:
        self.results.append(record)
        logger.info("trial %d: %s", self._index + 1, record.as_dict())
        if self._on_record is not None:
            self._on_record(record)
        if self._inter_trial_ms > 0:
            self._gap = self._timers.call_later(self._inter_trial_ms, self._blank_then_advance, label="inter-trial")
        else:
            self._advance()

    def _blank_then_advance(self) -> None:
        self._surface.clear()
        self._advance()
