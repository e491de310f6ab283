from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any


class EndReason(str, Enum):
    RESPONSE = "response"
    DEADLINE = "deadline"


@dataclass(frozen=True, slots=True)
class ProbeOutcome:
    shown: bool
    rt_ms: int | None


@dataclass(frozen=True, slots=True)
class ResultRecord:
    """The one record a trial emits when it ends.

    ``task_data`` holds the task-specific echo and correctness fields in the order
    the task produced them. ``probe`` is ``None`` exactly when the trial ran without
    the detection-response probe, and then no ``drt_*`` keys appear in
    :meth:`as_dict`.
    """

    plugin_type: str
    task_type: str
    plugin_version: str
    end_reason: EndReason
    response_key: str | None
    rt_ms: int | None
    task_data: Mapping[str, Any]
    probe: ProbeOutcome | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.task_data, MappingProxyType):
            object.__setattr__(self, "task_data", MappingProxyType(dict(self.task_data)))

    @property
    def drt_enabled(self) -> bool:
        return self.probe is not None

    def get(self, name: str, default: Any = None) -> Any:
        return self.as_dict().get(name, default)

    def as_dict(self) -> dict[str, Any]:
        """Flat row for the host's data collection."""

        row: dict[str, Any] = {
            "plugin_type": self.plugin_type,
            "task_type": self.task_type,
            "plugin_version": self.plugin_version,
            "end_reason": self.end_reason.value,
            "response_key": self.response_key,
            "rt_ms": self.rt_ms,
        }
        row.update(self.task_data)
        if self.probe is not None:
            row["drt_enabled"] = True
            row["drt_shown"] = self.probe.shown
            row["drt_rt_ms"] = self.probe.rt_ms
        return row
