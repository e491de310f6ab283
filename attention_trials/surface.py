"""Presentation surface and input bus handed to a trial.

A trial never touches a window directly. It renders a list of :class:`Element`
records into a :class:`PresentationSurface`, mutates them by id, and subscribes
to clicks on named targets. :class:`SceneSurface` is the in-memory implementation
used headlessly and as the view model the pygame shell draws every frame.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol

from .keys import normalize_key

logger = logging.getLogger(__name__)


class ElementKind(str, Enum):
    TEXT = "text"
    DISC = "disc"
    MARKER = "marker"


@dataclass(frozen=True, slots=True)
class Element:
    element_id: str
    kind: ElementKind
    text: str = ""
    fill: str | None = None
    visible: bool = True
    size_px: int = 0
    role: str = ""  # layout slot: fixation | stimulus | hint | left | right | probe


@dataclass(eq=False, slots=True)
class ListenerHandle:
    callback: Callable[[str], None]
    accepts: frozenset[str] | None = None  # None: every identifier
    active: bool = True

    def cancel(self) -> None:
        self.active = False

    def wants(self, ident: str) -> bool:
        return self.accepts is None or ident in self.accepts


class PresentationSurface(Protocol):
    def render(self, elements: Sequence[Element]) -> None: ...
    def set_text(self, element_id: str, text: str) -> None: ...
    def set_style(self, element_id: str, *, fill: str | None = None, visible: bool | None = None) -> None: ...
    def add_element(self, element: Element) -> None: ...
    def remove_element(self, element_id: str) -> None: ...
    def on_click(self, element_ids: Iterable[str], callback: Callable[[str], None]) -> ListenerHandle: ...


class SceneSurface:
    """Ordered element store with click routing."""

    def __init__(self) -> None:
        self._elements: dict[str, Element] = {}
        self._click_listeners: list[ListenerHandle] = []
        self.renders = 0

    def render(self, elements: Sequence[Element]) -> None:
        self._elements = {e.element_id: e for e in elements}
        self._click_listeners = [h for h in self._click_listeners if h.active]
        self.renders += 1

    def set_text(self, element_id: str, text: str) -> None:
        el = self._elements.get(element_id)
        if el is not None:
            self._elements[element_id] = replace(el, text=str(text))

    def set_style(self, element_id: str, *, fill: str | None = None, visible: bool | None = None) -> None:
        el = self._elements.get(element_id)
        if el is None:
            return
        if fill is not None:
            el = replace(el, fill=fill)
        if visible is not None:
            el = replace(el, visible=bool(visible))
        self._elements[element_id] = el

    def add_element(self, element: Element) -> None:
        self._elements[element.element_id] = element

    def remove_element(self, element_id: str) -> None:
        self._elements.pop(element_id, None)

    def on_click(self, element_ids: Iterable[str], callback: Callable[[str], None]) -> ListenerHandle:
        handle = ListenerHandle(callback=callback, accepts=frozenset(element_ids))
        self._click_listeners.append(handle)
        return handle

    def click(self, element_id: str) -> bool:
        """Deliver a click on ``element_id``. Returns True if a listener took it."""

        if element_id not in self._elements:
            return False
        delivered = False
        for handle in list(self._click_listeners):
            if handle.active and handle.wants(element_id):
                handle.callback(element_id)
                delivered = True
        return delivered

    def clear(self) -> None:
        self.render(())

    def element(self, element_id: str) -> Element | None:
        return self._elements.get(element_id)

    def elements(self) -> tuple[Element, ...]:
        return tuple(self._elements.values())

    def text(self, element_id: str) -> str | None:
        el = self._elements.get(element_id)
        return None if el is None else el.text

    def listening(self) -> int:
        return sum(1 for h in self._click_listeners if h.active)


@dataclass
class Keyboard:
    """Keydown bus shared by the host and whichever trial is active."""

    _listeners: list[ListenerHandle] = field(default_factory=list)

    def listen(self, callback: Callable[[str], None], *, keys: Iterable[str] | None = None) -> ListenerHandle:
        accepts = None if keys is None else frozenset(keys)
        handle = ListenerHandle(callback=callback, accepts=accepts)
        self._listeners = [h for h in self._listeners if h.active]
        self._listeners.append(handle)
        return handle

    def press(self, raw_key: str) -> bool:
        """Deliver one keydown. Returns True if any listener accepted it."""

        delivered = False
        for handle in list(self._listeners):
            if not handle.active:
                continue
            if handle.wants(raw_key) or handle.wants(normalize_key(raw_key)):
                handle.callback(raw_key)
                delivered = True
        if not delivered:
            logger.debug("keydown %r ignored (no listener)", raw_key)
        return delivered

    def listening(self) -> int:
        return sum(1 for h in self._listeners if h.active)
