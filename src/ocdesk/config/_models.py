"""Launcher configuration models.

This module provides the Pydantic models for the persisted launcher record
and the logging settings used by the CLI.
"""

from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PREFERRED_PORT = 1504
DEFAULT_ZOOM_LEVEL = 1.0
MIN_ZOOM_LEVEL = 0.5
MAX_ZOOM_LEVEL = 3.0
ZOOM_STEP = 0.1
MAX_PORT_HISTORY = 10


def clamp_zoom(level: float) -> float:
    """Clamp a zoom level into the supported range, rounded to 2 decimals."""
    return round(min(max(level, MIN_ZOOM_LEVEL), MAX_ZOOM_LEVEL), 2)


class LogLevel(StrEnum):
    """Log level threshold values."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty uses the default launcher log).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    file: str = ""


class WindowSize(BaseModel):
    """Persisted window dimensions in pixels."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    width: int = Field(default=1000, gt=0)
    height: int = Field(default=800, gt=0)


class LauncherConfig(BaseModel):
    """Persisted launcher record.

    Attributes:
        preferred_port: First port probed when looking for a free port.
        zoom_level: Zoom applied to the backend view, clamped to 0.5-3.0.
        window_size: Last known window dimensions.
        last_used_ports: Bounded history of successfully bound ports, most
            recent last.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore", validate_assignment=True
    )

    preferred_port: int = Field(default=DEFAULT_PREFERRED_PORT, ge=1, le=65535)
    zoom_level: float = DEFAULT_ZOOM_LEVEL
    window_size: WindowSize = Field(default_factory=WindowSize)
    last_used_ports: list[int] = Field(default_factory=list)

    @field_validator("zoom_level")
    @classmethod
    def _clamp_zoom_level(cls, value: float) -> float:
        return clamp_zoom(value)

    @field_validator("last_used_ports")
    @classmethod
    def _bound_port_history(cls, value: list[int]) -> list[int]:
        # Keep the last occurrence of each port so the tail stays most recent
        deduped: list[int] = []
        for port in value:
            if port in deduped:
                deduped.remove(port)
            deduped.append(port)
        return deduped[-MAX_PORT_HISTORY:]
