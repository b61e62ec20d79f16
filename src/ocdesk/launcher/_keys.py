"""Keyboard shortcuts for fullscreen and zoom."""

import sys
from enum import StrEnum

FULLSCREEN_KEY = "F11"


class KeyAction(StrEnum):
    """Actions bound to keyboard shortcuts."""

    TOGGLE_FULLSCREEN = "toggle_fullscreen"
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"
    ZOOM_RESET = "zoom_reset"


_ZOOM_KEYS: dict[str, KeyAction] = {
    "+": KeyAction.ZOOM_IN,
    "=": KeyAction.ZOOM_IN,
    "-": KeyAction.ZOOM_OUT,
    "_": KeyAction.ZOOM_OUT,
    "0": KeyAction.ZOOM_RESET,
}


def resolve_key(
    key: str,
    *,
    ctrl: bool = False,
    meta: bool = False,
    platform: str | None = None,
) -> KeyAction | None:
    """Map a key press to an action.

    F11 always toggles fullscreen. Zoom keys need the platform modifier:
    Cmd (`meta`) on macOS, Ctrl everywhere else.

    Args:
        key: Key name as reported by the toolkit (`"F11"`, `"+"`, ...).
        ctrl: Whether Ctrl was held.
        meta: Whether Cmd/Meta was held.
        platform: A `sys.platform` value. Defaults to the running platform.

    Returns:
        The bound action, or None if the key is not bound.
    """
    if key == FULLSCREEN_KEY:
        return KeyAction.TOGGLE_FULLSCREEN
    modifier = meta if (platform or sys.platform) == "darwin" else ctrl
    if not modifier:
        return None
    return _ZOOM_KEYS.get(key)
