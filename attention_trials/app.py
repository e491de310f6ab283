"""Pygame host shell for attention trials.

The shell owns the window and the frame loop and nothing else: it feeds raw
key and mouse events into the active trial, polls the timer queue once per
frame, and draws the :class:`SceneSurface` view model. Timing, scoring and
state live in attention_trials/* (core modules).
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import pygame

from .block import TrialBlock
from .clock import RealClock
from .keys import key_from_host
from .results import ResultRecord
from .scheduler import TimerQueue
from .surface import Element, ElementKind, Keyboard, SceneSurface

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 640)
TARGET_FPS = 240

BG = (18, 20, 28)
TEXT_MAIN = (236, 240, 250)
TEXT_MUTED = (150, 158, 178)
DISC_BORDER = (150, 154, 166)
PROBE_MARGIN_PX = 18

DEMO_BLOCK: tuple[Mapping[str, Any], ...] = (
    {"plugin_type": "flanker-trial", "target_direction": "right", "congruency": "congruent"},
    {"plugin_type": "flanker-trial", "target_direction": "left", "congruency": "incongruent"},
    {"plugin_type": "sart-trial", "digit": 7, "nogo_digit": 3},
    {"plugin_type": "sart-trial", "digit": 3, "nogo_digit": 3, "detection_response_task_enabled": True},
    {"plugin_type": "simon-trial", "stimulus_side": "right", "correct_response_side": "left"},
    {"plugin_type": "simon-trial", "stimulus_side": "left", "correct_response_side": "left", "response_device": "mouse"},
)


def configure_logging() -> None:
    level_name = os.environ.get("ATTENTION_TRIALS_LOG_LEVEL", "INFO").strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


class SceneView:
    """Draws a SceneSurface and maps clicks back to element ids."""

    def __init__(self, font_big: pygame.font.Font, font_small: pygame.font.Font) -> None:
        self._font_big = font_big
        self._font_small = font_small
        self._hit: dict[str, tuple[tuple[int, int], int]] = {}

    def draw(self, screen: pygame.Surface, scene: SceneSurface) -> None:
        w, h = screen.get_size()
        cx, cy = w // 2, h // 2
        screen.fill(BG)
        self._hit.clear()

        for el in scene.elements():
            if not el.visible:
                continue
            if el.kind is ElementKind.MARKER:
                r = max(2, el.size_px // 2)
                pygame.draw.circle(
                    screen, _color(el.fill, (255, 210, 63)), (PROBE_MARGIN_PX + r, PROBE_MARGIN_PX + r), r
                )
            elif el.kind is ElementKind.DISC:
                r = max(5, el.size_px // 2)
                offset = r + 32
                center = (cx - offset, cy) if el.role == "left" else (cx + offset, cy)
                pygame.draw.circle(screen, _color(el.fill, BG), center, r)
                pygame.draw.circle(screen, DISC_BORDER, center, r, 2)
                self._hit[el.element_id] = (center, r)
            else:
                self._draw_text(screen, el, cx, cy)

    def _draw_text(self, screen: pygame.Surface, el: Element, cx: int, cy: int) -> None:
        if not el.text:
            return
        if el.role == "hint":
            img = self._font_small.render(el.text, True, TEXT_MUTED)
            screen.blit(img, img.get_rect(center=(cx, cy + 140)))
        elif el.role == "fixation":
            img = self._font_small.render(el.text, True, TEXT_MAIN)
            screen.blit(img, img.get_rect(center=(cx, cy - 70)))
        else:
            img = self._font_big.render(el.text, True, TEXT_MAIN)
            screen.blit(img, img.get_rect(center=(cx, cy)))

    def hit_test(self, pos: tuple[int, int]) -> str | None:
        x, y = pos
        for element_id, ((hx, hy), r) in self._hit.items():
            if math.hypot(x - hx, y - hy) <= r:
                return element_id
        return None


def _color(value: str | None, fallback: tuple[int, int, int]) -> pygame.Color | tuple[int, int, int]:
    if not value:
        return fallback
    text = value.strip()
    if text.lower().startswith("rgba("):
        try:
            r, g, b, a = (float(part) for part in text[5:-1].split(","))
        except ValueError:
            return fallback
        # Blend translucent fills over the background.
        return tuple(int(round(c * a + bg * (1.0 - a))) for c, bg in zip((r, g, b), BG))  # type: ignore[return-value]
    try:
        return pygame.Color(text)
    except ValueError:
        return fallback


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    trials: Sequence[Mapping[str, Any]] | None = None,
    results: list[ResultRecord] | None = None,
) -> int:
    configure_logging()
    pygame.init()

    pygame.display.set_caption("Attention Trials")
    screen = pygame.display.set_mode(WINDOW_SIZE)
    frame_clock = pygame.time.Clock()

    view = SceneView(pygame.font.Font(None, 96), pygame.font.Font(None, 24))
    clock = RealClock()
    timers = TimerQueue(clock=clock)
    scene = SceneSurface()
    keyboard = Keyboard()

    block = TrialBlock(
        DEMO_BLOCK if trials is None else trials,
        clock=clock,
        timers=timers,
        surface=scene,
        keyboard=keyboard,
        on_record=None if results is None else results.append,
    )
    block.start()

    frame = 0
    running = True
    try:
        while running and not block.finished:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    raw = key_from_host(pygame.key.name(event.key), getattr(event, "unicode", ""))
                    keyboard.press(raw)
                elif event.type == pygame.MOUSEBUTTONDOWN and getattr(event, "button", 1) == 1:
                    target = view.hit_test(event.pos)
                    if target is not None:
                        scene.click(target)

            block.update()
            view.draw(screen, scene)
            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(TARGET_FPS)
    finally:
        timers.clear()
        pygame.quit()

    return 0
