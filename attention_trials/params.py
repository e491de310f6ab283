"""Local recovery of loose host-supplied trial fields.

Hosts hand over whatever their timeline produced: numbers as strings, ``None``,
``NaN``, missing keys. None of that is an error for a trial; each field falls
back to its documented default instead.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from .keys import normalize_key


def as_number(value: object, fallback: float) -> float:
    """Finite float from ``value`` or ``fallback``. Booleans count as 0/1."""

    if value is None:
        return float(fallback)
    if isinstance(value, str) and value.strip() == "":
        # Number("") is 0 in the timeline format this mirrors.
        return 0.0
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return float(fallback)
    return out if math.isfinite(out) else float(fallback)


def as_int(value: object, fallback: int) -> int:
    return int(as_number(value, fallback))


def as_text(value: object, fallback: str) -> str:
    """``str(value)``, or ``fallback`` when the value is missing or empty."""

    if value is None or value == "":
        return fallback
    return str(value)


def as_choice(value: object, choices: tuple[str, ...], fallback: str) -> str:
    text = "" if value is None else str(value).strip().lower()
    return text if text in choices else fallback


def as_lower(value: object, fallback: str) -> str:
    return as_text(value, fallback).strip().lower()


def as_key(value: object, fallback: str) -> str:
    return normalize_key(as_text(value, fallback))


def as_flag(value: object) -> bool:
    """Only a literal ``True`` switches an optional feature on."""

    return value is True


def is_armed(ms: float) -> bool:
    """A duration of 0 or a non-finite value means the timer never fires."""

    return math.isfinite(ms) and ms > 0


def get(params: Mapping[str, Any] | None, name: str) -> Any:
    return None if params is None else params.get(name)
