"""Timed response-capture engine shared by every trial type.

One :class:`TrialEngine` runs one trial. The task-specific parts (what is drawn,
which inputs count, how the outcome is scored) come from a :class:`TaskBinding`;
the engine owns the timing:

- the presenter's scheduled mutations (stimulus offset, mask, blank),
- the optional detection-response probe,
- the response arbiter listening to keys and clicks,
- the deadline.

Whichever of a qualifying response or the deadline comes first ends the trial.
The ``ended`` flag on :class:`RuntimeState` makes termination happen exactly once,
and the trial's :class:`ResourceScope` drops its listeners and cancels its
pending timers before the result record is built.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .clock import Clock, elapsed_ms
from .keys import PROBE_KEY, expand_key_variants, normalize_key
from .params import is_armed
from .probe import DetectionProbe
from .results import EndReason, ResultRecord
from .scheduler import ResourceScope, TimerQueue
from .surface import Element, ElementKind, Keyboard, PresentationSurface

logger = logging.getLogger(__name__)

PLUGIN_VERSION = "1.0.0"


class Side(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True, slots=True)
class TrialTiming:
    stimulus_duration_ms: float
    trial_duration_ms: float
    mask_duration_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class ScheduledMutation:
    at_ms: float
    label: str
    apply: Callable[[PresentationSurface], None]


@dataclass(slots=True)
class RuntimeState:
    responded: bool = False
    response_key: str | None = None
    response_side: Side | None = None
    rt_ms: int | None = None
    probe_armed: bool = False
    probe_fired: bool = False
    probe_onset_s: float | None = None
    probe_rt_ms: int | None = None
    ended: bool = False


class TaskBinding(Protocol):
    """What a trial type plugs into the engine."""

    plugin_type: str
    task_type: str

    @property
    def timing(self) -> TrialTiming: ...

    @property
    def probe_enabled(self) -> bool: ...

    @property
    def response_ends_trial(self) -> bool: ...

    def render(self) -> list[Element]:
        """Initial elements for the surface."""
        ...

    def mutations(self) -> list[ScheduledMutation]: ...

    def keyboard_keys(self) -> frozenset[str] | None:
        """Canonical keys that count as input; ``None`` means every key."""
        ...

    def click_targets(self) -> Mapping[str, Side]: ...

    def is_primary_key(self, key: str) -> bool: ...

    def side_for_key(self, key: str) -> Side | None: ...

    def classify(self, state: RuntimeState) -> dict[str, Any]:
        """Echo and correctness fields for the result record."""
        ...


class SeededRng:
    """Simple seeded RNG wrapper to keep probe timing reproducible."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def random(self) -> float:
        return self._rng.random()


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


class TrialEngine:
    def __init__(
        self,
        *,
        task: TaskBinding,
        clock: Clock,
        timers: TimerQueue,
        surface: PresentationSurface,
        keyboard: Keyboard,
        seed: int | None = None,
        on_finish: Callable[[ResultRecord], None] | None = None,
    ) -> None:
        self._task = task
        self._clock = clock
        self._timers = timers
        self._surface = surface
        self._keyboard = keyboard
        self._on_finish = on_finish
        self._seed = new_seed() if seed is None else int(seed)

        self._state = RuntimeState()
        self._scope = ResourceScope(timers, name=task.plugin_type)
        self._probe: DetectionProbe | None = None
        self._onset_s: float | None = None
        self._started = False
        self.result: ResultRecord | None = None

    @property
    def task(self) -> TaskBinding:
        return self._task

    @property
    def state(self) -> RuntimeState:
        return self._state

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def probe(self) -> DetectionProbe | None:
        return self._probe

    @property
    def ended(self) -> bool:
        return self._state.ended

    def start(self) -> None:
        if self._started:
            raise RuntimeError("Trial already started")
        self._started = True

        task = self._task
        timing = task.timing
        self._surface.render(task.render())
        self._onset_s = self._clock.now()

        for m in task.mutations():
            if is_armed(m.at_ms):
                self._scope.call_later(m.at_ms, self._mutation_callback(m), label=m.label)

        if task.probe_enabled:
            self._probe = DetectionProbe(
                state=self._state,
                clock=self._clock,
                timers=self._timers,
                scope=self._scope,
                surface=self._surface,
                rng=SeededRng(self._seed),
                trial_duration_ms=timing.trial_duration_ms,
            )
            self._probe.arm()

        self._listen()

        if is_armed(timing.trial_duration_ms):
            self._scope.call_later(timing.trial_duration_ms, self._on_deadline, label="deadline")

        logger.debug(
            "%s started: stimulus=%sms deadline=%sms probe=%s",
            task.plugin_type,
            timing.stimulus_duration_ms,
            timing.trial_duration_ms,
            None if self._probe is None else self._probe.delay_ms,
        )

    def _mutation_callback(self, m: ScheduledMutation) -> Callable[[], None]:
        def fire() -> None:
            if not self._state.ended:
                m.apply(self._surface)

        return fire

    def _listen(self) -> None:
        task = self._task
        keys = task.keyboard_keys()
        if keys is None:
            self._scope.adopt(self._keyboard.listen(self.handle_key))
        else:
            accepted = set(keys)
            if task.probe_enabled:
                accepted.add(PROBE_KEY)
            if accepted:
                raw_keys = frozenset().union(*(expand_key_variants(k) for k in accepted))
                self._scope.adopt(self._keyboard.listen(self.handle_key, keys=raw_keys))

        targets = task.click_targets()
        if targets:
            self._scope.adopt(self._surface.on_click(targets.keys(), self.handle_click))

    # Response arbiter -------------------------------------------------

    def handle_key(self, raw_key: str) -> None:
        # Timers already due run before the input is arbitrated.
        self._timers.update()
        if self._state.ended:
            return
        key = normalize_key(raw_key)

        if self._probe is not None and key == PROBE_KEY:
            self._probe.register_press()
            # A probe key that is also a primary key cannot be told apart and counts as both.
            if not self._task.is_primary_key(key):
                return

        keys = self._task.keyboard_keys()
        if keys is not None and key not in keys:
            return

        self._record_response(key, self._task.side_for_key(key))

    def handle_click(self, element_id: str) -> None:
        self._timers.update()
        if self._state.ended:
            return
        side = self._task.click_targets().get(element_id)
        if side is None:
            return
        self._record_response(None, side)

    def _record_response(self, key: str | None, side: Side | None) -> None:
        state = self._state
        if state.responded:
            logger.debug("%s: extra response %r ignored", self._task.plugin_type, key)
            return
        assert self._onset_s is not None
        state.responded = True
        state.response_key = key
        state.response_side = side
        state.rt_ms = elapsed_ms(self._clock, self._onset_s)
        if self._task.response_ends_trial:
            self._end(EndReason.RESPONSE)

    # Deadline / termination -------------------------------------------

    def _on_deadline(self) -> None:
        self._end(EndReason.DEADLINE)

    def _end(self, reason: EndReason) -> None:
        state = self._state
        if state.ended:
            return
        state.ended = True
        self._scope.release()

        task = self._task
        record = ResultRecord(
            plugin_type=task.plugin_type,
            task_type=task.task_type,
            plugin_version=PLUGIN_VERSION,
            end_reason=reason,
            response_key=state.response_key,
            rt_ms=state.rt_ms,
            task_data=task.classify(state),
            probe=None if self._probe is None else self._probe.outcome(),
        )
        self.result = record
        logger.debug("%s ended (%s): %s", task.plugin_type, reason.value, record.as_dict())
        if self._on_finish is not None:
            self._on_finish(record)


def fixation_elements(*, show_dot: bool, show_cross: bool) -> list[Element]:
    if not (show_dot or show_cross):
        return []
    return [Element(element_id="fixation", kind=ElementKind.TEXT, text="•" if show_dot else "+", role="fixation")]
