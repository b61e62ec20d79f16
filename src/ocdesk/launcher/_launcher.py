"""Launcher composition root.

Wires configuration, the single-instance lock, and the supervisor
components together and runs them for the lifetime of the application.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, final

import anyio
import httpx

from ocdesk.config import ConfigManager
from ocdesk.supervisor import (
    BackendConfig,
    HealthMonitor,
    PortAllocator,
    ProcessSupervisor,
    ReadinessPipeline,
    ShutdownCoordinator,
    SingleInstanceLock,
    StartupFailure,
    StartupOrchestrator,
    StartupState,
    get_platform_commands,
)
from ocdesk.utils import CommandConfig, run_command

from ._keys import KeyAction, resolve_key

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ocdesk.supervisor import LauncherHost, LauncherView, OutputSink
    from ocdesk.supervisor._pipeline import Sleep
    from ocdesk.supervisor._platform import PlatformCommands
    from ocdesk.supervisor._ports import CommandRunner
    from ocdesk.utils import StateStore

WINDOW_POLL_INTERVAL = 5.0
HOST_OFFLINE_TITLE = "Connection lost"
HOST_OFFLINE_MESSAGE = "Connection lost to the host shell. Please restart."


@final
class Launcher:
    """Runs one launcher instance from lock acquisition to shutdown.

    Every collaborator can be replaced through the constructor; the
    defaults talk to the real OS, HTTP, and state store.
    """

    __slots__ = (
        "_backend",
        "_config",
        "_exit_on_failure",
        "_health",
        "_host",
        "_lock",
        "_logger",
        "_orchestrator",
        "_platform",
        "_runner",
        "_scope",
        "_shutdown",
        "_sleep",
        "_startup_scope",
        "_supervisor",
        "_view",
        "_window_poll_interval",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        host: "LauncherHost",
        view: "LauncherView",
        store: "StateStore",
        backend: BackendConfig | None = None,
        platform: "PlatformCommands | None" = None,
        runner: "CommandRunner" = run_command,
        client: httpx.AsyncClient | None = None,
        output_sink: "OutputSink | None" = None,
        open_process: Callable[..., Any] = anyio.open_process,
        sleep: "Sleep" = anyio.sleep,
        grace_period: float = 3.0,
        window_poll_interval: float = WINDOW_POLL_INTERVAL,
        exit_on_failure: bool = False,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        """Build every launcher component.

        Args:
            host: Host shell primitives.
            view: Loading, reconnect, and error screens.
            store: Persistent store for configuration and the instance lock.
            backend: Launch recipe for the backend.
            platform: Platform command provider.
            runner: External command runner.
            client: Shared HTTP client for validation and health checks.
            output_sink: Sink for backend output.
            open_process: Process factory.
            sleep: Awaitable sleep used by every timed wait.
            grace_period: Seconds between graceful and forced termination.
            window_poll_interval: Seconds between window-size checks.
            exit_on_failure: Shut down when the first startup run fails.
            logger: Optional logger.
        """
        self._host = host
        self._view = view
        self._backend = backend or BackendConfig()
        self._platform = platform or get_platform_commands()
        self._runner = runner
        self._sleep = sleep
        self._window_poll_interval = window_poll_interval
        self._exit_on_failure = exit_on_failure
        self._logger = logger
        self._scope: anyio.CancelScope | None = None
        self._startup_scope: anyio.CancelScope | None = None

        self._config = ConfigManager(store, logger=logger)
        self._lock = SingleInstanceLock(store, sleep=sleep, logger=logger)

        allocator = PortAllocator(self._platform, runner=runner, logger=logger)
        self._supervisor = ProcessSupervisor(
            name=self._backend.name,
            output_sink=output_sink,
            open_process=open_process,
            logger=logger,
        )
        pipeline = ReadinessPipeline(
            allocator,
            self._backend,
            client=client,
            view=view,
            sleep=sleep,
            logger=logger,
        )
        self._orchestrator = StartupOrchestrator(
            allocator=allocator,
            supervisor=self._supervisor,
            pipeline=pipeline,
            config=self._config,
            host=host,
            view=view,
            backend=self._backend,
            sleep=sleep,
            logger=logger,
        )
        self._health = HealthMonitor(
            supervisor=self._supervisor,
            view=view,
            reconnect=self._orchestrator.run,
            active=self._connected,
            backend=self._backend,
            client=client,
            sleep=sleep,
            logger=logger,
        )
        self._shutdown = ShutdownCoordinator(
            supervisor=self._supervisor,
            allocator=allocator,
            host=host,
            platform=self._platform,
            runner=runner,
            grace_period=grace_period,
            sleep=sleep,
            logger=logger,
        )
        self._shutdown.add_stop_hook("health_monitor", self._health.stop)
        self._shutdown.add_stop_hook("lock_heartbeat", self._lock.stop_heartbeat)
        self._shutdown.add_stop_hook("instance_lock", self._lock.release)

    def _connected(self) -> bool:
        return self._orchestrator.state is StartupState.CONNECTED

    @property
    def config(self) -> ConfigManager:
        return self._config

    @property
    def orchestrator(self) -> StartupOrchestrator:
        return self._orchestrator

    @property
    def health(self) -> HealthMonitor:
        return self._health

    @property
    def supervisor(self) -> ProcessSupervisor:
        return self._supervisor

    @property
    def instance_lock(self) -> SingleInstanceLock:
        return self._lock

    @property
    def shutdown_coordinator(self) -> ShutdownCoordinator:
        return self._shutdown

    async def run(self) -> bool:
        """Run the launcher until shutdown completes.

        Returns:
            False if another launcher instance was already running.
        """
        _ = self._config.load()

        if not self._lock.acquire():
            await self._focus_existing()
            return False

        await self._apply_window_size()

        async with anyio.create_task_group() as tg:
            self._scope = tg.cancel_scope
            self._supervisor.bind(tg)
            tg.start_soon(self._lock.heartbeat)
            tg.start_soon(self._health.run)
            tg.start_soon(self._track_window_size)

            port: int | None = None
            with anyio.CancelScope() as startup:
                self._startup_scope = startup
                port = await self._orchestrator.run()
            self._startup_scope = None

            if port is None and self._exit_on_failure:
                await self.quit("startup_failed")
            await anyio.sleep_forever()

        return True

    async def _focus_existing(self) -> None:
        if self._logger:
            self._logger.info("focusing_existing_instance")
        try:
            await self._host.show()
            await self._host.focus()
        except Exception as e:  # noqa: BLE001
            if self._logger:
                self._logger.debug("focus_failed", error=str(e))
        _ = await self._runner(CommandConfig(command=self._platform.focus_window()))
        await self._host.exit_app()

    async def _apply_window_size(self) -> None:
        size = self._config.config.window_size
        try:
            await self._host.set_size(size.width, size.height)
        except Exception as e:  # noqa: BLE001
            if self._logger:
                self._logger.debug("window_resize_failed", error=str(e))

    async def _track_window_size(self) -> None:
        while True:
            await self._sleep(self._window_poll_interval)
            await self.sync_window_size()

    async def sync_window_size(self) -> bool:
        """Persist the host window size if it changed.

        Returns:
            True if a new size was stored.
        """
        try:
            size = await self._host.get_size()
        except Exception as e:  # noqa: BLE001
            if self._logger:
                self._logger.debug("window_size_unavailable", error=str(e))
            return False
        if size is None:
            return False
        return self._config.set_window_size(*size)

    async def handle_key(
        self,
        key: str,
        *,
        ctrl: bool = False,
        meta: bool = False,
        platform: str | None = None,
    ) -> KeyAction | None:
        """Apply the action bound to a key press, if any."""
        action = resolve_key(key, ctrl=ctrl, meta=meta, platform=platform)
        if action is None:
            return None

        if action is KeyAction.TOGGLE_FULLSCREEN:
            try:
                await self._host.toggle_fullscreen()
            except Exception as e:  # noqa: BLE001
                if self._logger:
                    self._logger.debug("fullscreen_failed", error=str(e))
            return action

        if action is KeyAction.ZOOM_IN:
            level = self._config.zoom_in()
        elif action is KeyAction.ZOOM_OUT:
            level = self._config.zoom_out()
        else:
            level = self._config.reset_zoom()
        await self._view.apply_zoom(level)
        return action

    async def retry(self) -> int | None:
        """Error-screen retry action: run the startup again."""
        return await self._orchestrator.run()

    async def quit(self, reason: str = "user_quit") -> None:
        """Run the shutdown sequence and let run() return."""
        if self._startup_scope is not None:
            self._startup_scope.cancel()
        with anyio.CancelScope(shield=True):
            await self._shutdown.shutdown(reason)
        if self._scope is not None:
            self._scope.cancel()

    async def on_window_close(self) -> None:
        await self.quit("window_closed")

    async def on_host_offline(self) -> None:
        """Show a terminal error after the host shell went away."""
        if self._logger:
            self._logger.error("host_offline")
        await self._view.show_error(
            StartupFailure(
                title=HOST_OFFLINE_TITLE,
                message=HOST_OFFLINE_MESSAGE,
                attempts=0,
            )
        )

    @property
    def state(self) -> StartupState:
        return self._orchestrator.state
