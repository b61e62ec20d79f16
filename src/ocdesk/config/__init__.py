"""Configuration package for the launcher.

The launcher record (preferred port, zoom, window size, port history) is
persisted as a JSON document in the key-value state store and merged over
the defaults on load.
"""

from ._manager import CONFIG_KEY, ConfigManager, decode_config
from ._models import (
    DEFAULT_PREFERRED_PORT,
    DEFAULT_ZOOM_LEVEL,
    MAX_PORT_HISTORY,
    MAX_ZOOM_LEVEL,
    MIN_ZOOM_LEVEL,
    ZOOM_STEP,
    LauncherConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    WindowSize,
    clamp_zoom,
)

__all__ = [
    "CONFIG_KEY",
    "DEFAULT_PREFERRED_PORT",
    "DEFAULT_ZOOM_LEVEL",
    "MAX_PORT_HISTORY",
    "MAX_ZOOM_LEVEL",
    "MIN_ZOOM_LEVEL",
    "ZOOM_STEP",
    "ConfigManager",
    "LauncherConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "WindowSize",
    "clamp_zoom",
    "decode_config",
]
