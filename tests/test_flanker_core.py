from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from attention_trials.flanker import (
    HINT_ID,
    STIMULUS_ID,
    FlankerTrialSpec,
    build_arrow_string,
    build_char_string,
    build_flanker_trial,
)
from attention_trials.results import ResultRecord
from attention_trials.scheduler import TimerQueue
from attention_trials.surface import Keyboard, SceneSurface
from attention_trials.trial_core import TrialEngine


@dataclass
class FakeClock:
    t: float = 0.0

    def now(self) -> float:
        return self.t

    def advance(self, dt: float) -> None:
        self.t += float(dt)


@dataclass
class Rig:
    clock: FakeClock
    timers: TimerQueue
    surface: SceneSurface
    keyboard: Keyboard
    engine: TrialEngine
    records: list[ResultRecord] = field(default_factory=list)

    def advance_ms(self, ms: float) -> None:
        self.clock.advance(ms / 1000.0)
        self.timers.update()


def _start(spec: FlankerTrialSpec | dict, *, seed: int = 11) -> Rig:
    clock = FakeClock()
    timers = TimerQueue(clock=clock)
    surface = SceneSurface()
    keyboard = Keyboard()
    records: list[ResultRecord] = []
    engine = build_flanker_trial(
        spec=spec,
        clock=clock,
        timers=timers,
        surface=surface,
        keyboard=keyboard,
        seed=seed,
        on_finish=records.append,
    )
    engine.start()
    return Rig(clock, timers, surface, keyboard, engine, records)


@pytest.mark.parametrize(
    "direction, congruency, expected",
    [
        ("right", "congruent", "→→→→→"),
        ("right", "incongruent", "←←→←←"),
        ("left", "congruent", "←←←←←"),
        ("left", "incongruent", "→→←→→"),
        ("left", "neutral", "––←––"),
    ],
)
def test_arrow_strings(direction: str, congruency: str, expected: str) -> None:
    assert build_arrow_string(direction, congruency) == expected


def test_char_strings() -> None:
    assert build_char_string("H", "S", "X", "congruent") == "HHHHH"
    assert build_char_string("H", "S", "X", "incongruent") == "SSHSS"
    assert build_char_string("H", "S", "X", "neutral") == "XXHXX"


def test_render_arrow_form_and_offset_at_stimulus_duration() -> None:
    rig = _start(FlankerTrialSpec(target_direction="right", congruency="congruent", left_key="f", right_key="j"))

    stim = rig.surface.element(STIMULUS_ID)
    assert stim is not None and stim.text == "→→→→→" and stim.visible
    assert rig.surface.text(HINT_ID) == "f = left, j = right"
    assert rig.surface.element("fixation") is None

    rig.advance_ms(799)
    assert rig.surface.element(STIMULUS_ID).visible is True
    rig.advance_ms(2)
    assert rig.surface.element(STIMULUS_ID).visible is False


def test_character_form_and_fixation_dot() -> None:
    rig = _start(
        {
            "stimulus_type": "letters",
            "congruency": "incongruent",
            "target_stimulus": "H",
            "distractor_stimulus": "S",
            "show_fixation_dot": True,
        }
    )
    assert rig.surface.text(STIMULUS_ID) == "SSHSS"
    assert rig.surface.text("fixation") == "•"


def test_correct_key_press_scores_true() -> None:
    rig = _start(FlankerTrialSpec(target_direction="right", congruency="congruent"))

    rig.advance_ms(420)
    rig.keyboard.press("j")

    assert len(rig.records) == 1
    row = rig.records[0].as_dict()
    assert row["plugin_type"] == "flanker-trial"
    assert row["end_reason"] == "response"
    assert row["response_key"] == "j"
    assert row["correct_key"] == "j"
    assert row["rt_ms"] == 420
    assert row["accuracy"] is True
    assert row["correctness"] is True
    assert "drt_enabled" not in row


def test_upper_case_key_cap_matches_binding() -> None:
    rig = _start(FlankerTrialSpec(target_direction="right"))
    rig.advance_ms(300)
    rig.keyboard.press("J")

    assert rig.records[0].response_key == "j"
    assert rig.records[0].task_data["accuracy"] is True


def test_wrong_key_scores_false() -> None:
    rig = _start(FlankerTrialSpec(target_direction="right", congruency="congruent"))
    rig.advance_ms(300)
    rig.keyboard.press("f")

    assert rig.records[0].task_data["accuracy"] is False
    assert rig.records[0].end_reason.value == "response"


def test_omission_scores_none_at_deadline() -> None:
    rig = _start(FlankerTrialSpec(target_direction="right"))

    rig.advance_ms(1499)
    assert rig.records == []
    rig.advance_ms(2)

    row = rig.records[0].as_dict()
    assert row["end_reason"] == "deadline"
    assert row["response_key"] is None
    assert row["rt_ms"] is None
    assert row["accuracy"] is None


def test_unbound_keys_are_inert() -> None:
    rig = _start(FlankerTrialSpec())
    rig.advance_ms(200)
    rig.keyboard.press("k")
    rig.keyboard.press(" ")

    assert rig.records == []
    assert rig.engine.state.responded is False


def test_exactly_one_record_per_trial() -> None:
    rig = _start(FlankerTrialSpec(target_direction="left"))
    rig.advance_ms(250)
    rig.keyboard.press("f")
    rig.keyboard.press("j")
    rig.advance_ms(5000)

    assert len(rig.records) == 1
    assert rig.records[0].response_key == "f"
    assert rig.keyboard.listening() == 0
    assert rig.timers.pending() == 0


def test_start_twice_is_an_error() -> None:
    rig = _start(FlankerTrialSpec())
    with pytest.raises(RuntimeError):
        rig.engine.start()


def test_disabled_deadline_waits_for_response() -> None:
    rig = _start(FlankerTrialSpec(trial_duration_ms=0, stimulus_duration_ms=0))
    rig.advance_ms(60_000)
    assert rig.records == []
    assert rig.surface.element(STIMULUS_ID).visible is True

    rig.keyboard.press("f")
    assert rig.records[0].rt_ms == 60_000


def test_press_after_deadline_is_not_scored_even_before_the_timer_polls() -> None:
    rig = _start(FlankerTrialSpec(target_direction="right", trial_duration_ms=1500))

    # The frame loop delivers the key before it polls the timer queue.
    rig.clock.advance(1.520)
    rig.keyboard.press("j")
    rig.timers.update()

    assert len(rig.records) == 1
    row = rig.records[0].as_dict()
    assert row["end_reason"] == "deadline"
    assert row["response_key"] is None
    assert row["rt_ms"] is None
    assert row["accuracy"] is None


def test_press_just_before_deadline_still_counts() -> None:
    rig = _start(FlankerTrialSpec(target_direction="right", trial_duration_ms=1500))

    rig.clock.advance(1.499)
    rig.keyboard.press("j")

    row = rig.records[0].as_dict()
    assert row["end_reason"] == "response"
    assert row["rt_ms"] == 1499
    assert row["accuracy"] is True
