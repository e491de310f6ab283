from __future__ import annotations

# The probe task always answers on the space bar, whatever the primary bindings are.
PROBE_KEY = " "

_NAMED_KEYS = {
    "space": " ",
    "enter": "Enter",
    "escape": "Escape",
    "esc": "Escape",
}

# pygame.key.name() spellings that differ from the canonical browser-style names.
_HOST_KEY_NAMES = {
    "return": "Enter",
    "keypad enter": "Enter",
    "escape": "Escape",
    "space": " ",
    "left": "ArrowLeft",
    "right": "ArrowRight",
    "up": "ArrowUp",
    "down": "ArrowDown",
    "backspace": "Backspace",
    "tab": "Tab",
}


def normalize_key(raw: object) -> str:
    """Canonicalize a raw input identifier.

    A literal space is returned untouched; trimming it would collapse it to ``""``
    and silently break every space-bar comparison. Otherwise the value is trimmed,
    ``space``/``enter``/``escape``/``esc`` map to fixed spellings, a single
    character is lower-cased and longer names pass through unchanged.
    """

    text = "" if raw is None else str(raw)
    if text == " ":
        return " "

    trimmed = text.strip()
    named = _NAMED_KEYS.get(trimmed.lower())
    if named is not None:
        return named
    if len(trimmed) == 1:
        return trimmed.lower()
    return trimmed


def expand_key_variants(key: str) -> frozenset[str]:
    """Both cases of a single alphabetic key; otherwise just the key."""

    k = "" if key is None else str(key)
    if len(k) == 1 and k.isascii() and k.isalpha():
        return frozenset((k.lower(), k.upper()))
    return frozenset((k,))


def key_label(key: str) -> str:
    """Human-readable label for on-screen hints."""

    return "space" if key == " " else key


def key_from_host(name: str, text: str = "") -> str:
    """Translate a host key event (pygame name + unicode text) to a raw key id.

    Printable text wins so shifted letters keep their case, as a browser
    ``KeyboardEvent.key`` would report them.
    """

    if text and text.isprintable():
        return text
    mapped = _HOST_KEY_NAMES.get(name.strip().lower())
    if mapped is not None:
        return mapped
    return name
