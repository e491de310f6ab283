from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from . import params as p
from .clock import Clock
from .results import ResultRecord
from .scheduler import TimerQueue
from .surface import Element, ElementKind, Keyboard, PresentationSurface
from .trial_core import RuntimeState, ScheduledMutation, Side, TrialEngine, TrialTiming

INACTIVE_FILL = "rgba(255,255,255,0.08)"

LEFT_ID = "simon-left"
RIGHT_ID = "simon-right"
HINT_ID = "simon-hint"

_SIDES = ("left", "right")


def find_stimulus_color_hex(stimuli: object, name: str, fallback_hex: object) -> str:
    """Colour of the named stimulus in ``stimuli``, else ``fallback_hex``, else white."""

    needle = str(name or "").strip().lower()
    entries = stimuli if isinstance(stimuli, (list, tuple)) else ()
    for s in entries:
        if not isinstance(s, Mapping):
            continue
        n = str(s.get("name") or "").strip().lower()
        if n and n == needle:
            c = str(s.get("color") or s.get("hex") or s.get("color_hex") or "").strip()
            if c:
                return c
    return str(fallback_hex or "").strip() or "#ffffff"


@dataclass(frozen=True, slots=True)
class SimonTrialSpec:
    stimulus_side: Side = Side.LEFT
    correct_response_side: Side = Side.LEFT

    stimulus_color_name: str = "BLUE"
    stimulus_color_hex: str = "#0066ff"
    stimuli: Sequence[Mapping[str, Any]] = field(default_factory=tuple)

    response_device: str = "keyboard"
    left_key: str = "f"
    right_key: str = "j"

    circle_diameter_px: int = 140

    stimulus_duration_ms: float = 0
    trial_duration_ms: float = 1500

    detection_response_task_enabled: bool = False

    plugin_type = "simon-trial"
    task_type = "simon"

    @classmethod
    def from_params(cls, params: Mapping[str, Any] | None) -> SimonTrialSpec:
        def g(name: str) -> Any:
            return p.get(params, name)

        stimuli = g("stimuli")
        color_name = g("stimulus_color_name")
        color_hex = g("stimulus_color_hex")
        diameter = g("circle_diameter_px")
        return cls(
            stimulus_side=Side(p.as_choice(g("stimulus_side"), _SIDES, "left")),
            correct_response_side=Side(p.as_choice(g("correct_response_side"), _SIDES, "left")),
            stimulus_color_name="BLUE" if color_name is None else str(color_name).strip(),
            stimulus_color_hex="#0066ff" if color_hex is None else str(color_hex),
            stimuli=tuple(stimuli) if isinstance(stimuli, (list, tuple)) else (),
            response_device="mouse" if p.as_lower(g("response_device"), "keyboard") == "mouse" else "keyboard",
            left_key=p.as_key(g("left_key"), "f"),
            right_key=p.as_key(g("right_key"), "j"),
            circle_diameter_px=140 if diameter is None else max(10, p.as_int(diameter, 140)),
            stimulus_duration_ms=p.as_number(g("stimulus_duration_ms"), 0),
            trial_duration_ms=p.as_number(g("trial_duration_ms"), 1500),
            detection_response_task_enabled=p.as_flag(g("detection_response_task_enabled")),
        )

    @property
    def congruency(self) -> str:
        return "congruent" if self.stimulus_side is self.correct_response_side else "incongruent"

    @property
    def resolved_color_hex(self) -> str:
        return find_stimulus_color_hex(self.stimuli, self.stimulus_color_name, self.stimulus_color_hex)

    @property
    def uses_mouse(self) -> bool:
        return self.response_device == "mouse"

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
        color = self.resolved_color_hex
        hint = "Click LEFT or RIGHT" if self.uses_mouse else f"{self.left_key} = LEFT, {self.right_key} = RIGHT"
        return [
            Element(
                element_id=LEFT_ID,
                kind=ElementKind.DISC,
                fill=color if self.stimulus_side is Side.LEFT else INACTIVE_FILL,
                size_px=self.circle_diameter_px,
                role="left",
            ),
            Element(
                element_id=RIGHT_ID,
                kind=ElementKind.DISC,
                fill=color if self.stimulus_side is Side.RIGHT else INACTIVE_FILL,
                size_px=self.circle_diameter_px,
                role="right",
            ),
            Element(element_id=HINT_ID, kind=ElementKind.TEXT, text=hint, role="hint"),
        ]

    def mutations(self) -> list[ScheduledMutation]:
        def offset(surface: PresentationSurface) -> None:
            surface.set_style(LEFT_ID, fill=INACTIVE_FILL)
            surface.set_style(RIGHT_ID, fill=INACTIVE_FILL)

        return [ScheduledMutation(at_ms=float(self.stimulus_duration_ms), label="stimulus-offset", apply=offset)]

    def keyboard_keys(self) -> frozenset[str] | None:
        if self.uses_mouse:
            return frozenset()
        return frozenset((self.left_key, self.right_key))

    def click_targets(self) -> Mapping[str, Side]:
        if not self.uses_mouse:
            return {}
        return {LEFT_ID: Side.LEFT, RIGHT_ID: Side.RIGHT}

    def is_primary_key(self, key: str) -> bool:
        return not self.uses_mouse and key in (self.left_key, self.right_key)

    def side_for_key(self, key: str) -> Side | None:
        if key == self.left_key:
            return Side.LEFT
        if key == self.right_key:
            return Side.RIGHT
        return None

    def classify(self, state: RuntimeState) -> dict[str, Any]:
        correctness = (state.response_side is self.correct_response_side) if state.responded else None
        return {
            "stimulus_side": self.stimulus_side.value,
            "stimulus_color_name": self.stimulus_color_name,
            "stimulus_color_hex": self.resolved_color_hex,
            "correct_response_side": self.correct_response_side.value,
            "congruency": self.congruency,
            "response_device": self.response_device,
            "response_side": None if state.response_side is None else state.response_side.value,
            "correctness": correctness,
        }


def build_simon_trial(
    *,
    spec: SimonTrialSpec | Mapping[str, Any] | None = None,
    clock: Clock,
    timers: TimerQueue,
    surface: PresentationSurface,
    keyboard: Keyboard,
    seed: int | None = None,
    on_finish: Callable[[ResultRecord], None] | None = None,
) -> TrialEngine:
    if not isinstance(spec, SimonTrialSpec):
        spec = SimonTrialSpec.from_params(spec)
    return TrialEngine(
        task=spec,
        clock=clock,
        timers=timers,
        surface=surface,
        keyboard=keyboard,
        seed=seed,
        on_finish=on_finish,
    )
