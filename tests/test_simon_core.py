from __future__ import annotations

from dataclasses import dataclass

from attention_trials.results import ResultRecord
from attention_trials.scheduler import TimerQueue
from attention_trials.simon import (
    HINT_ID,
    INACTIVE_FILL,
    LEFT_ID,
    RIGHT_ID,
    SimonTrialSpec,
    build_simon_trial,
    find_stimulus_color_hex,
)
from attention_trials.surface import Keyboard, SceneSurface
from attention_trials.trial_core import Side


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


def _start(params: dict, records: list[ResultRecord]):
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    surface = SceneSurface()
    keyboard = Keyboard()
    engine = build_simon_trial(
        spec=params,
        clock=clock,
        timers=timers,
        surface=surface,
        keyboard=keyboard,
        seed=3,
        on_finish=records.append,
    )
    engine.start()
    return clock, timers, surface, keyboard, engine


def _advance_ms(clock: FakeClock, timers: TimerQueue, ms: float) -> None:
    clock.advance(ms / 1000.0)
    timers.update()


def test_congruency_is_derived_from_sides() -> None:
    assert SimonTrialSpec(stimulus_side=Side.RIGHT, correct_response_side=Side.LEFT).congruency == "incongruent"
    assert SimonTrialSpec(stimulus_side=Side.LEFT, correct_response_side=Side.LEFT).congruency == "congruent"


def test_render_fills_only_the_stimulus_side() -> None:
    records: list[ResultRecord] = []
    _, _, surface, _, _ = _start({"stimulus_side": "right", "stimulus_color_hex": "#ff0000"}, records)

    assert surface.element(LEFT_ID).fill == INACTIVE_FILL
    assert surface.element(RIGHT_ID).fill == "#ff0000"
    assert surface.element(RIGHT_ID).size_px == 140
    assert surface.text(HINT_ID) == "f = LEFT, j = RIGHT"


def test_incongruent_keyboard_response_to_correct_side() -> None:
    records: list[ResultRecord] = []
    clock, timers, _, keyboard, _ = _start(
        {"stimulus_side": "right", "correct_response_side": "left", "left_key": "f", "right_key": "j"},
        records,
    )
    _advance_ms(clock, timers, 510)
    keyboard.press("F")

    row = records[0].as_dict()
    assert row["plugin_type"] == "simon-trial"
    assert row["congruency"] == "incongruent"
    assert row["response_key"] == "f"
    assert row["response_side"] == "left"
    assert row["correctness"] is True
    assert row["rt_ms"] == 510
    assert row["end_reason"] == "response"


def test_keyboard_wrong_side_and_omission() -> None:
    records: list[ResultRecord] = []
    clock, timers, _, keyboard, _ = _start({"correct_response_side": "left"}, records)
    _advance_ms(clock, timers, 200)
    keyboard.press("j")
    assert records[-1].task_data["correctness"] is False

    clock, timers, _, keyboard, _ = _start({"correct_response_side": "left"}, records)
    keyboard.press("x")
    _advance_ms(clock, timers, 1600)
    assert records[-1].end_reason.value == "deadline"
    assert records[-1].task_data["correctness"] is None
    assert records[-1].task_data["response_side"] is None


def test_mouse_clicks_map_to_sides() -> None:
    records: list[ResultRecord] = []
    clock, timers, surface, keyboard, _ = _start(
        {"stimulus_side": "right", "correct_response_side": "left", "response_device": "mouse"},
        records,
    )
    assert surface.text(HINT_ID) == "Click LEFT or RIGHT"
    assert keyboard.listening() == 0

    _advance_ms(clock, timers, 300)
    assert surface.click(HINT_ID) is False
    surface.click(LEFT_ID)
    surface.click(RIGHT_ID)

    assert len(records) == 1
    row = records[0].as_dict()
    assert row["response_device"] == "mouse"
    assert row["response_key"] is None
    assert row["response_side"] == "left"
    assert row["correctness"] is True
    assert surface.listening() == 0


def test_stimulus_offset_reverts_both_targets() -> None:
    records: list[ResultRecord] = []
    clock, timers, surface, _, _ = _start({"stimulus_side": "left", "stimulus_duration_ms": 200}, records)
    assert surface.element(LEFT_ID).fill == "#0066ff"

    _advance_ms(clock, timers, 201)
    assert surface.element(LEFT_ID).fill == INACTIVE_FILL
    assert surface.element(RIGHT_ID).fill == INACTIVE_FILL


def test_zero_stimulus_duration_never_offsets() -> None:
    records: list[ResultRecord] = []
    clock, timers, surface, _, _ = _start({"stimulus_side": "left"}, records)
    _advance_ms(clock, timers, 1400)
    assert surface.element(LEFT_ID).fill == "#0066ff"


def test_color_lookup_from_stimuli_list() -> None:
    stimuli = [{"name": "Red", "color": "#ff3b3b"}, {"name": "green", "hex": "#00aa00"}]
    assert find_stimulus_color_hex(stimuli, "GREEN", "#0066ff") == "#00aa00"
    assert find_stimulus_color_hex(stimuli, "blue", "#0066ff") == "#0066ff"
    assert find_stimulus_color_hex(None, "blue", "  ") == "#ffffff"

    spec = SimonTrialSpec.from_params({"stimulus_color_name": "red", "stimuli": stimuli})
    assert spec.resolved_color_hex == "#ff3b3b"


def test_params_coercion() -> None:
    spec = SimonTrialSpec.from_params(
        {
            "stimulus_side": "RIGHT ",
            "correct_response_side": "up",
            "response_device": "touch",
            "circle_diameter_px": 4,
            "trial_duration_ms": None,
        }
    )
    assert spec.stimulus_side is Side.RIGHT
    assert spec.correct_response_side is Side.LEFT
    assert spec.response_device == "keyboard"
    assert spec.circle_diameter_px == 10
    assert spec.trial_duration_ms == 1500
    assert spec.stimulus_duration_ms == 0


def test_click_after_deadline_is_not_scored_even_before_the_timer_polls() -> None:
    records: list[ResultRecord] = []
    clock, timers, surface, _, engine = _start({"response_device": "mouse", "trial_duration_ms": 1500}, records)

    clock.advance(1.6)
    surface.click(LEFT_ID)

    assert len(records) == 1
    assert records[0].end_reason.value == "deadline"
    assert records[0].get("response_side") is None
    assert records[0].get("correctness") is None
