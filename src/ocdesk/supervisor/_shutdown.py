"""Ordered, best-effort shutdown of the launcher."""

import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, final

import anyio

from ocdesk.utils import CommandConfig, run_command

from ._pipeline import Sleep
from ._platform import PlatformCommands, get_platform_commands
from ._ports import CommandRunner

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._protocol import LauncherHost, PortAllocatorProtocol, SupervisorProtocol

type StopHook = Callable[[], Awaitable[object] | object]

DEFAULT_GRACE_PERIOD = 3.0


@final
class ShutdownCoordinator:
    """Tears the launcher down in a fixed order.

    Stop hooks run first (health monitor, lock heartbeat, lock release),
    then:

    1. Ask the backend to terminate and release its handle.
    2. Wait out the grace period; signal delivery is never confirmed.
    3. Force-kill listeners on every port this launcher ever bound.
    4. Force-kill the backend by pid if one was recorded.
    5. Exit the host application, falling back to closing the window.

    Every step is guarded on its own, so a failure is logged and the next
    step still runs. Only the first call does anything.
    """

    __slots__ = (
        "_allocator",
        "_grace_period",
        "_hooks",
        "_host",
        "_logger",
        "_platform",
        "_runner",
        "_sleep",
        "_started",
        "_supervisor",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        supervisor: "SupervisorProtocol",
        allocator: "PortAllocatorProtocol",
        host: "LauncherHost",
        platform: PlatformCommands | None = None,
        runner: CommandRunner = run_command,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        sleep: Sleep = anyio.sleep,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        self._supervisor = supervisor
        self._allocator = allocator
        self._host = host
        self._platform = platform or get_platform_commands()
        self._runner = runner
        self._grace_period = grace_period
        self._sleep = sleep
        self._logger = logger
        self._hooks: list[tuple[str, StopHook]] = []
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def add_stop_hook(self, name: str, hook: StopHook) -> None:
        """Register a callable run before the shutdown steps."""
        self._hooks.append((name, hook))

    async def _step(self, name: str, action: Callable[[], Awaitable[object]]) -> bool:
        try:
            _ = await action()
        except Exception as e:  # noqa: BLE001
            if self._logger:
                self._logger.warning(
                    "shutdown_step_failed",
                    step=name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
            return False
        return True

    async def _run_hook(self, hook: StopHook) -> None:
        result = hook()
        if inspect.isawaitable(result):
            _ = await result

    async def _run_command(self, command: str) -> None:
        result = await self._runner(CommandConfig(command=command))
        if self._logger:
            self._logger.debug(
                "shutdown_command",
                command=command,
                exit_code=result.exit_code,
                error=result.error,
            )

    async def shutdown(self, reason: str = "requested") -> None:
        """Run the shutdown sequence once."""
        if self._started:
            return
        self._started = True

        current = self._supervisor.current
        pid = current.pid if current is not None else None
        if self._logger:
            self._logger.info(
                "shutdown_started",
                reason=reason,
                pid=pid,
                ports=list(self._supervisor.managed_ports),
            )

        for name, hook in self._hooks:
            _ = await self._step(f"hook:{name}", lambda hook=hook: self._run_hook(hook))

        if current is not None:
            _ = await self._step("terminate", self._terminate)

        _ = await self._step("grace_period", lambda: self._sleep(self._grace_period))

        for port in self._supervisor.managed_ports:
            _ = await self._step(
                f"kill_port:{port}", lambda port=port: self._allocator.kill_port(port)
            )

        if pid is not None:
            command = self._platform.force_kill_pid(pid)
            _ = await self._step("force_kill", lambda: self._run_command(command))
        self._supervisor.discard()

        if not await self._step("exit_app", self._host.exit_app):
            _ = await self._step("close_window", self._host.close_window)

        if self._logger:
            self._logger.info("shutdown_complete", reason=reason)

    async def _terminate(self) -> None:
        current = self._supervisor.current
        try:
            _ = await self._supervisor.terminate()
            if current is not None and current.pid is not None:
                await self._run_command(self._platform.terminate_pid(current.pid))
        finally:
            await self._supervisor.release()
