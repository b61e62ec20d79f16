"""Loading, merging, and persisting the launcher configuration."""

from typing import TYPE_CHECKING, cast

import orjson
from pydantic import ValidationError

from ocdesk.exceptions import ConfigLoadError

from ._models import (
    DEFAULT_ZOOM_LEVEL,
    ZOOM_STEP,
    LauncherConfig,
    WindowSize,
)

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ocdesk.utils import StateStore

CONFIG_KEY = "config"


def decode_config(raw: str | bytes, *, key: str = CONFIG_KEY) -> LauncherConfig:
    """Decode a persisted record and merge it over the defaults.

    Loaded keys override defaults; keys missing from the record keep their
    default values.

    Args:
        raw: JSON document as stored.
        key: Storage key, used for error context.

    Returns:
        The merged configuration.

    Raises:
        ConfigLoadError: If the record is not a JSON object or fails validation.
    """
    try:
        parsed: object = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        msg = f"Stored configuration is not valid JSON: {e}"
        raise ConfigLoadError(msg, key=key, cause=e) from e

    if not isinstance(parsed, dict):
        msg = f"Stored configuration must be a JSON object, got {type(parsed).__name__}"
        raise ConfigLoadError(msg, key=key)

    merged = {**LauncherConfig().model_dump(), **cast("dict[str, object]", parsed)}
    try:
        return LauncherConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Stored configuration is invalid: {e.error_count()} error(s)"
        raise ConfigLoadError(msg, key=key, cause=e) from e


class ConfigManager:
    """Owns the launcher configuration and persists every mutation.

    The record is loaded once with load() and then only changed through the
    mutation helpers, each of which writes the whole record back to the
    state store.
    """

    __slots__ = ("_config", "_key", "_logger", "_store")

    def __init__(
        self,
        store: "StateStore",
        *,
        key: str = CONFIG_KEY,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        self._store = store
        self._key = key
        self._logger = logger
        self._config = LauncherConfig()

    @property
    def config(self) -> LauncherConfig:
        """Return the current configuration."""
        return self._config

    def load(self) -> LauncherConfig:
        """Load the persisted record, falling back to defaults on error.

        Returns:
            The effective configuration.
        """
        raw = self._store.get(self._key)
        if raw is None:
            self._config = LauncherConfig()
            return self._config

        if not isinstance(raw, str | bytes):
            raw = str(raw)

        try:
            self._config = decode_config(raw, key=self._key)
        except ConfigLoadError as e:
            if self._logger:
                self._logger.warning("config_load_failed", key=e.key, error=str(e))
            self._config = LauncherConfig()

        if self._logger:
            self._logger.debug("config_loaded", **self._config.model_dump())
        return self._config

    def save(self) -> None:
        """Write the current configuration to the state store."""
        payload = orjson.dumps(self._config.model_dump()).decode("utf-8")
        self._store.set(self._key, payload)

    def reset(self) -> LauncherConfig:
        """Restore and persist the default configuration."""
        self._config = LauncherConfig()
        self.save()
        return self._config

    def record_port(self, port: int) -> list[int]:
        """Append a successfully bound port to the history.

        The port ends up exactly once, at the tail, and the history is
        trimmed to the most recent entries.

        Returns:
            The updated history.
        """
        history = [p for p in self._config.last_used_ports if p != port]
        history.append(port)
        self._config.last_used_ports = history
        self.save()
        return self._config.last_used_ports

    def set_preferred_port(self, port: int) -> None:
        """Change the first port probed on startup."""
        self._config.preferred_port = port
        self.save()

    def set_zoom(self, level: float) -> float:
        """Set the zoom level, clamped to the supported range.

        Returns:
            The zoom level actually applied.
        """
        self._config.zoom_level = level
        self.save()
        return self._config.zoom_level

    def zoom_in(self) -> float:
        return self.set_zoom(self._config.zoom_level + ZOOM_STEP)

    def zoom_out(self) -> float:
        return self.set_zoom(self._config.zoom_level - ZOOM_STEP)

    def reset_zoom(self) -> float:
        return self.set_zoom(DEFAULT_ZOOM_LEVEL)

    def set_window_size(self, width: int, height: int) -> bool:
        """Persist new window dimensions if they changed.

        Returns:
            True if the stored size was updated.
        """
        current = self._config.window_size
        if current.width == width and current.height == height:
            return False
        self._config.window_size = WindowSize(width=width, height=height)
        self.save()
        return True
