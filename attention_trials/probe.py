"""Detection-response probe running alongside a primary trial.

The probe is a small yellow dot shown once, at a random delay, while the
participant works on the primary task. Its only bookkeeping is the onset time and
the latency of the first space-bar press after onset; it never changes the
primary response fields.
"""

from __future__ import annotations

import itertools
import logging
import math
from typing import TYPE_CHECKING

from .clock import Clock, elapsed_ms
from .params import is_armed
from .results import ProbeOutcome
from .scheduler import ResourceScope, TimerQueue
from .surface import Element, ElementKind, PresentationSurface

if TYPE_CHECKING:
    from .trial_core import RuntimeState, SeededRng

logger = logging.getLogger(__name__)

PROBE_MIN_DELAY_MS = 300
PROBE_WINDOW_FRACTION = 0.75
PROBE_MARKER_MS = 200
PROBE_COLOR = "#FFD23F"
PROBE_SIZE_PX = 14

_marker_ids = itertools.count(1)


def probe_delay_bounds(trial_duration_ms: float) -> tuple[int, int]:
    """Inclusive onset window for a trial of the given deadline.

    The upper bound never drops below the lower one, so the window is never empty;
    a trial without a deadline gets the minimum delay.
    """

    base = trial_duration_ms if is_armed(trial_duration_ms) else 1.0
    hi = max(PROBE_MIN_DELAY_MS, math.floor(max(1.0, base) * PROBE_WINDOW_FRACTION))
    return PROBE_MIN_DELAY_MS, int(hi)


def draw_probe_delay(rng: SeededRng, trial_duration_ms: float) -> int:
    lo, hi = probe_delay_bounds(trial_duration_ms)
    return rng.randint(lo, hi)


class DetectionProbe:
    def __init__(
        self,
        *,
        state: RuntimeState,
        clock: Clock,
        timers: TimerQueue,
        scope: ResourceScope,
        surface: PresentationSurface,
        rng: SeededRng,
        trial_duration_ms: float,
    ) -> None:
        self._state = state
        self._clock = clock
        self._timers = timers
        self._scope = scope
        self._surface = surface
        self._rng = rng
        self._trial_duration_ms = float(trial_duration_ms)
        self.delay_ms: int | None = None
        self.marker_id = f"drt-dot-{next(_marker_ids)}"

    def arm(self) -> int:
        self.delay_ms = draw_probe_delay(self._rng, self._trial_duration_ms)
        self._scope.call_later(self.delay_ms, self._onset, label="probe-onset")
        return self.delay_ms

    def _onset(self) -> None:
        if self._state.ended:
            return
        self._state.probe_armed = True
        self._state.probe_fired = True
        self._state.probe_onset_s = self._clock.now()
        self._surface.add_element(
            Element(
                element_id=self.marker_id,
                kind=ElementKind.MARKER,
                fill=PROBE_COLOR,
                size_px=PROBE_SIZE_PX,
                role="probe",
            )
        )
        # Not trial-scoped: the dot is removed on schedule even after the trial ends.
        marker_id = self.marker_id
        self._timers.call_later(PROBE_MARKER_MS, lambda: self._surface.remove_element(marker_id), label="probe-marker")
        logger.debug("probe onset after %s ms", self.delay_ms)

    def register_press(self) -> bool:
        """Record the probe latency on the first press after onset."""

        state = self._state
        if not state.probe_fired or state.probe_onset_s is None or state.probe_rt_ms is not None:
            return False
        state.probe_rt_ms = elapsed_ms(self._clock, state.probe_onset_s)
        logger.debug("probe response %s ms", state.probe_rt_ms)
        return True

    def outcome(self) -> ProbeOutcome:
        return ProbeOutcome(shown=self._state.probe_fired, rt_ms=self._state.probe_rt_ms)
