from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .clock import Clock
from .flanker import build_flanker_trial
from .results import ResultRecord
from .sart import build_sart_trial
from .scheduler import TimerQueue
from .simon import build_simon_trial
from .surface import Keyboard, PresentationSurface
from .trial_core import TrialEngine

# Trial builders keyed by the plugin_type a host timeline tags each trial with.
TRIAL_BUILDERS: dict[str, Callable[..., TrialEngine]] = {
    "flanker-trial": build_flanker_trial,
    "sart-trial": build_sart_trial,
    "simon-trial": build_simon_trial,
}


def build_trial(
    params: Mapping[str, Any],
    *,
    clock: Clock,
    timers: TimerQueue,
    surface: PresentationSurface,
    keyboard: Keyboard,
    seed: int | None = None,
    on_finish: Callable[[ResultRecord], None] | None = None,
) -> TrialEngine:
    plugin_type = str(params.get("plugin_type") or params.get("type") or "")
    builder = TRIAL_BUILDERS.get(plugin_type)
    if builder is None:
        raise ValueError(f"Unknown plugin_type: {plugin_type!r}")
    return builder(
        spec=params,
        clock=clock,
        timers=timers,
        surface=surface,
        keyboard=keyboard,
        seed=seed,
        on_finish=on_finish,
    )
