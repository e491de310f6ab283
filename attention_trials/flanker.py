from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from . import params as p
from .clock import Clock
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

RIGHT_ARROW = "→"
LEFT_ARROW = "←"
NEUTRAL_FLANK = "–"

STIMULUS_ID = "flanker-stim"
HINT_ID = "flanker-hint"


def build_arrow_string(target_direction: str, congruency: str) -> str:
    target = RIGHT_ARROW if target_direction == "right" else LEFT_ARROW
    opposite = LEFT_ARROW if target_direction == "right" else RIGHT_ARROW
    return _flanked(target, congruency, same=target, other=opposite, neutral=NEUTRAL_FLANK)


def build_char_string(target: str, distractor: str, neutral: str, congruency: str) -> str:
    return _flanked(target, congruency, same=target, other=distractor, neutral=neutral)


def _flanked(target: str, congruency: str, *, same: str, other: str, neutral: str) -> str:
    if congruency == "congruent":
        flank = same
    elif congruency == "incongruent":
        flank = other
    else:
        flank = neutral
    return f"{flank}{flank}{target}{flank}{flank}"


@dataclass(frozen=True, slots=True)
class FlankerTrialSpec:
    stimulus_type: str = "arrows"
    target_direction: str = "left"
    congruency: str = "congruent"

    target_stimulus: str = "H"
    distractor_stimulus: str = "S"
    neutral_stimulus: str = NEUTRAL_FLANK

    left_key: str = "f"
    right_key: str = "j"

    stimulus_duration_ms: float = 800
    trial_duration_ms: float = 1500

    show_fixation_dot: bool = False
    show_fixation_cross_between_trials: bool = False
    detection_response_task_enabled: bool = False

    plugin_type = "flanker-trial"
    task_type = "flanker"

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> FlankerTrialSpec:
        def g(name: str) -> Any:
            return p.get(params, name)

        def text_or(name: str, fallback: str) -> str:
            # Only a missing value falls back; an empty string is a legitimate glyph.
            value = g(name)
            return fallback if value is None else str(value)

        return cls(
            stimulus_type=p.as_lower(g("stimulus_type"), "arrows"),
            target_direction=p.as_lower(g("target_direction"), "left"),
            congruency=p.as_lower(g("congruency"), "congruent"),
            target_stimulus=text_or("target_stimulus", "H"),
            distractor_stimulus=text_or("distractor_stimulus", "S"),
            neutral_stimulus=text_or("neutral_stimulus", NEUTRAL_FLANK),
            left_key=p.as_key(g("left_key"), "f"),
            right_key=p.as_key(g("right_key"), "j"),
            stimulus_duration_ms=p.as_number(g("stimulus_duration_ms"), 800),
            trial_duration_ms=p.as_number(g("trial_duration_ms"), 1500),
            show_fixation_dot=bool(g("show_fixation_dot")),
            show_fixation_cross_between_trials=bool(g("show_fixation_cross_between_trials")),
            detection_response_task_enabled=p.as_flag(g("detection_response_task_enabled")),
        )

    @property
    def correct_key(self) -> str:
        return self.right_key if self.target_direction == "right" else self.left_key

    @property
    def stimulus_text(self) -> str:
        if self.stimulus_type == "arrows":
            return build_arrow_string(self.target_direction, self.congruency)
        return build_char_string(
            self.target_stimulus, self.distractor_stimulus, self.neutral_stimulus, self.congruency
        )

    # TaskBinding ------------------------------------------------------

    @property
    def timing(self) -> TrialTiming:
        return TrialTiming(
            stimulus_duration_ms=float(self.stimulus_duration_ms),
            trial_duration_ms=float(self.trial_duration_ms),
        )

    @property
    def probe_enabled(self) -> bool:
        return self.detection_response_task_enabled

    @property
    def response_ends_trial(self) -> bool:
        return True

    def render(self) -> list[Element]:
        elements = fixation_elements(
            show_dot=self.show_fixation_dot,
            show_cross=self.show_fixation_cross_between_trials,
        )
        elements.append(Element(element_id=STIMULUS_ID, kind=ElementKind.TEXT, text=self.stimulus_text, role="stimulus"))
        elements.append(
            Element(
                element_id=HINT_ID,
                kind=ElementKind.TEXT,
                text=f"{self.left_key} = left, {self.right_key} = right",
                role="hint",
            )
        )
        return elements

    def mutations(self) -> list[ScheduledMutation]:
        return [
            ScheduledMutation(
                at_ms=float(self.stimulus_duration_ms),
                label="stimulus-offset",
                apply=lambda surface: surface.set_style(STIMULUS_ID, visible=False),
            )
        ]

    def keyboard_keys(self) -> frozenset[str] | None:
        return frozenset((self.left_key, self.right_key))

    def click_targets(self) -> Mapping[str, Side]:
        return {}

    def is_primary_key(self, key: str) -> bool:
        return key in (self.left_key, self.right_key)

    def side_for_key(self, key: str) -> Side | None:
        return None

    def classify(self, state: RuntimeState) -> dict[str, Any]:
        # Omissions are scored None, not False.
        accuracy = (state.response_key == self.correct_key) if state.responded else None
        return {
            "stimulus_type": self.stimulus_type,
            "target_direction": self.target_direction,
            "congruency": self.congruency,
            "correct_key": self.correct_key,
            "accuracy": accuracy,
            "correctness": accuracy,
        }


def build_flanker_trial(
    *,
    spec: FlankerTrialSpec | Mapping[str, Any] | None = None,
    clock: Clock,
    timers: TimerQueue,
    surface: PresentationSurface,
    keyboard: Keyboard,
    seed: int | None = None,
    on_finish: Callable[[ResultRecord], None] | None = None,
) -> TrialEngine:
    if not isinstance(spec, FlankerTrialSpec):
        spec = FlankerTrialSpec.from_params(spec)
    return TrialEngine(
        task=spec,
        clock=clock,
        timers=timers,
        surface=surface,
        keyboard=keyboard,
        seed=seed,
        on_finish=on_finish,
    )
