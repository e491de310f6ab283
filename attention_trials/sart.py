"""Go/No-Go trials in the Sustained Attention to Response Task (SART) format.

A digit is flashed, replaced by a mask, then blanked. Every digit except the
no-go digit asks for the go key; on a no-go trial any response at all is an
error. All keys are listened to so that a wrong-key press on a go trial is
distinguishable from an omission.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from . import params as p
from .clock import Clock
from .keys import key_label
from .results import ResultRecord
from .scheduler import TimerQueue
from .surface import Element, ElementKind, Keyboard, PresentationSurface
from .trial_core import (
    RuntimeState,
    ScheduledMutation,
    Side,
    TrialEngine,
    TrialTiming,
    fixation_elements,
)

MASK_GLYPH = "#"

STIMULUS_ID = "sart-stim"
HINT_ID = "sart-hint"


def _as_digit(value: object, fallback: int) -> int | float:
    n = p.as_number(value, fallback)
    return int(n) if float(n).is_integer() else n


@dataclass(frozen=True, slots=True)
class SartTrialSpec:
    digit: int | float = 1
    nogo_digit: int | float = 3
    go_key: str = " "

    stimulus_duration_ms: float = 250
    mask_duration_ms: float = 900
    trial_duration_ms: float = 1150

    response_ends_trial: bool = True

    show_fixation_dot: bool = False
    show_fixation_cross_between_trials: bool = False
    detection_response_task_enabled: bool = False

    plugin_type = "sart-trial"
    task_type = "sart"

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> SartTrialSpec:
        def g(name: str) -> Any:
            return p.get(params, name)

        stim_ms = p.as_number(g("stimulus_duration_ms"), 250)
        mask_ms = p.as_number(g("mask_duration_ms"), 900)
        raw_deadline = g("trial_duration_ms")
        # An absent deadline takes the documented default; a malformed one covers stimulus + mask.
        trial_ms = 1150.0 if raw_deadline is None else p.as_number(raw_deadline, stim_ms + mask_ms)
        ends = g("response_ends_trial")

        return cls(
            digit=_as_digit(g("digit"), 1),
            nogo_digit=_as_digit(g("nogo_digit"), 3),
            go_key=p.as_key(g("go_key"), "space"),
            stimulus_duration_ms=stim_ms,
            mask_duration_ms=mask_ms,
            trial_duration_ms=trial_ms,
            response_ends_trial=True if ends is None else bool(ends),
            show_fixation_dot=bool(g("show_fixation_dot")),
            show_fixation_cross_between_trials=bool(g("show_fixation_cross_between_trials")),
            detection_response_task_enabled=p.as_flag(g("detection_response_task_enabled")),
        )

    @property
    def is_nogo(self) -> bool:
        return self.digit == self.nogo_digit

    # TaskBinding ------------------------------------------------------

    @property
    def timing(self) -> TrialTiming:
        return TrialTiming(
            stimulus_duration_ms=float(self.stimulus_duration_ms),
            trial_duration_ms=float(self.trial_duration_ms),
            mask_duration_ms=float(self.mask_duration_ms),
        )

    @property
    def probe_enabled(self) -> bool:
        return self.detection_response_task_enabled

    def render(self) -> list[Element]:
        elements = fixation_elements(
            show_dot=self.show_fixation_dot,
            show_cross=self.show_fixation_cross_between_trials,
        )
        elements.append(Element(element_id=STIMULUS_ID, kind=ElementKind.TEXT, text=str(self.digit), role="stimulus"))
        elements.append(
            Element(
                element_id=HINT_ID,
                kind=ElementKind.TEXT,
                text=f"Press {key_label(self.go_key)} for GO (do not press for {self.nogo_digit})",
                role="hint",
            )
        )
        return elements

    def mutations(self) -> list[ScheduledMutation]:
        stim_ms = float(self.stimulus_duration_ms)
        mask_ms = float(self.mask_duration_ms)
        out = [
            ScheduledMutation(
                at_ms=stim_ms,
                label="mask-on",
                apply=lambda surface: surface.set_text(STIMULUS_ID, MASK_GLYPH),
            )
        ]
        if p.is_armed(mask_ms):
            blank_at = stim_ms + mask_ms if math.isfinite(stim_ms) else mask_ms
            out.append(
                ScheduledMutation(
                    at_ms=blank_at,
                    label="mask-off",
                    apply=lambda surface: surface.set_text(STIMULUS_ID, ""),
                )
            )
        return out

    def keyboard_keys(self) -> frozenset[str] | None:
        return None

    def click_targets(self) -> Mapping[str, Side]:
        return {}

    def is_primary_key(self, key: str) -> bool:
        # Decides only whether a probe-key press also counts for the main task.
        return key == self.go_key

    def side_for_key(self, key: str) -> Side | None:
        return None

    def classify(self, state: RuntimeState) -> dict[str, Any]:
        if not state.responded:
            correct = self.is_nogo
        elif self.is_nogo:
            correct = False
        else:
            correct = state.response_key == self.go_key
        return {
            "digit": self.digit,
            "nogo_digit": self.nogo_digit,
            "is_nogo": self.is_nogo,
            "correct": correct,
            "accuracy": correct,
            "correctness": correct,
        }


def build_sart_trial(
    *,
    spec: SartTrialSpec | Mapping[str, Any] | None = None,
    clock: Clock,
    timers: TimerQueue,
    surface: PresentationSurface,
    keyboard: Keyboard,
    seed: int | None = None,
    on_finish: Callable[[ResultRecord], None] | None = None,
) -> TrialEngine:
    if not isinstance(spec, SartTrialSpec):
        spec = SartTrialSpec.from_params(spec)
    return TrialEngine(
        task=spec,
        clock=clock,
        timers=timers,
        surface=surface,
        keyboard=keyboard,
        seed=seed,
        on_finish=on_finish,
    )
