"""Health monitor that reconnects after sustained backend failure."""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, final

import anyio
import httpx

from ._models import BackendConfig
from ._pipeline import Sleep

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._protocol import LauncherView, SupervisorProtocol

DEFAULT_INTERVAL = 5.0
DEFAULT_TIMEOUT = 2.0
DEFAULT_FAILURE_THRESHOLD = 3
RECONNECTING_MESSAGE = "Reconnecting..."


@final
class HealthMonitor:
    """Periodically checks the backend and triggers a reconnect.

    Every tick issues one bounded health request. Successes reset the
    consecutive-failure counter; reaching the threshold shows the reconnect
    overlay and awaits the reconnect callback. A guard keeps at most one
    reconnect in flight, and ticks arriving while it is set do nothing.

    Ticks are started as separate tasks so the timer keeps running during a
    long reconnect.
    """

    __slots__ = (
        "_active",
        "_backend",
        "_client",
        "_failures",
        "_interval",
        "_logger",
        "_reconnect",
        "_reconnecting",
        "_scope",
        "_sleep",
        "_stopped",
        "_supervisor",
        "_threshold",
        "_timeout",
        "_view",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        supervisor: "SupervisorProtocol",
        view: "LauncherView",
        reconnect: Callable[[], Awaitable[object]],
        active: Callable[[], bool] | None = None,
        backend: BackendConfig | None = None,
        client: httpx.AsyncClient | None = None,
        interval: float = DEFAULT_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        threshold: int = DEFAULT_FAILURE_THRESHOLD,
        sleep: Sleep = anyio.sleep,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            supervisor: Owner of the backend process; read-only here.
            view: Used for the reconnect overlay.
            reconnect: Callback re-running the startup orchestrator.
            active: Whether the backend has been handed over for monitoring,
                i.e. the orchestrator is connected. Always true if None.
            backend: Launch recipe, for the health URL.
            client: HTTP client; a short-lived one is created per check if None.
            interval: Seconds between ticks.
            timeout: Seconds allowed for each health request.
            threshold: Consecutive failures that trigger a reconnect.
            sleep: Awaitable sleep used by the timer loop.
            logger: Optional logger.
        """
        self._supervisor = supervisor
        self._view = view
        self._reconnect = reconnect
        self._active = active
        self._backend = backend or BackendConfig()
        self._client = client
        self._interval = interval
        self._timeout = timeout
        self._threshold = threshold
        self._sleep = sleep
        self._logger = logger
        self._failures = 0
        self._reconnecting = False
        self._stopped = False
        self._scope: anyio.CancelScope | None = None

    @property
    def failures(self) -> int:
        """Consecutive failed health checks."""
        return self._failures

    @property
    def reconnecting(self) -> bool:
        return self._reconnecting

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def check(self, port: int) -> bool:
        """Issue one health request; True on a 2xx answer."""
        url = self._backend.url(port, self._backend.health_path)
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            if self._logger:
                self._logger.debug(
                    "health_request_error", port=port, error_type=type(e).__name__
                )
            return False
        return response.is_success

    def _monitoring(self) -> bool:
        return self._active is None or self._active()

    async def tick(self) -> None:
        """Run one health check and reconnect once the threshold is hit.

        Nothing is checked until the backend is active; a startup still in
        progress also clears any failures counted before it began.
        """
        if self._stopped or self._reconnecting:
            return
        if not self._monitoring():
            self._failures = 0
            return
        process = self._supervisor.current
        if process is None:
            return

        healthy = await self.check(process.port)
        if self._stopped or self._reconnecting or not self._monitoring():
            return

        if healthy:
            self._failures = 0
            return

        self._failures += 1
        if self._logger:
            self._logger.warning(
                "health_check_failed",
                port=process.port,
                failures=self._failures,
                threshold=self._threshold,
            )
        if self._failures < self._threshold:
            return

        self._reconnecting = True
        try:
            if self._logger:
                self._logger.warning(
                    "backend_unhealthy_reconnecting", port=process.port
                )
            await self._view.show_overlay(RECONNECTING_MESSAGE)
            _ = await self._reconnect()
        except Exception as e:  # noqa: BLE001
            if self._logger:
                self._logger.error("reconnect_failed", error=str(e))
        finally:
            self._reconnecting = False
            self._failures = 0

    async def run(self) -> None:
        """Tick every interval until stop() is called."""
        if self._stopped:
            return
        async with anyio.create_task_group() as tg:
            self._scope = tg.cancel_scope
            while not self._stopped:
                await self._sleep(self._interval)
                if self._stopped:
                    break
                tg.start_soon(self.tick)
            tg.cancel_scope.cancel()

    def stop(self) -> None:
        """Stop the timer and cancel any tick in flight."""
        self._stopped = True
        if self._scope is not None:
            self._scope.cancel()
        if self._logger:
            self._logger.debug("health_monitor_stopped")
