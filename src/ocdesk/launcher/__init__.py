"""Launcher package: composition root, key bindings, console host and view."""

from ._console import BrowserHost, ConsoleView
from ._keys import KeyAction, resolve_key
from ._launcher import Launcher

__all__ = [
    "BrowserHost",
    "ConsoleView",
    "KeyAction",
    "Launcher",
    "resolve_key",
]
