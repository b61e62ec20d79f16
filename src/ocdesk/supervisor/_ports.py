"""Port allocation: liveness probing, free-port search, and forced cleanup."""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, final

from ocdesk.utils import CommandConfig, CommandResult, run_command

from ._platform import PlatformCommands, get_platform_commands, probe_reports_listening

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

type CommandRunner = Callable[[CommandConfig], Awaitable[CommandResult]]

FALLBACK_RANGE_SIZE = 200
PROBE_TIMEOUT_MS = 5000
KILL_TIMEOUT_MS = 10000


@final
class PortAllocator:
    """Finds free ports and frees ports by force.

    All probing and killing goes through external commands built by the
    platform provider. Command failures never escape: a failed probe counts
    as "not listening" and a failed kill is logged and reported as False.
    The allocator does not track which ports it handed out.
    """

    __slots__ = ("_logger", "_platform", "_runner")

    def __init__(
        self,
        platform: PlatformCommands | None = None,
        *,
        runner: CommandRunner = run_command,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        self._platform = platform or get_platform_commands()
        self._runner = runner
        self._logger = logger

    @property
    def platform(self) -> PlatformCommands:
        return self._platform

    async def is_listening(self, port: int) -> bool:
        """Check whether anything listens on `port`."""
        result = await self._runner(
            CommandConfig(
                command=self._platform.probe_port(port), timeout_ms=PROBE_TIMEOUT_MS
            )
        )
        listening = probe_reports_listening(result.stdout, port)
        if self._logger:
            self._logger.debug(
                "port_probe",
                port=port,
                listening=listening,
                exit_code=result.exit_code,
                timed_out=result.timed_out,
            )
        return listening

    async def find_available_port(self, start: int, end: int) -> int | None:
        """Find the first port nothing listens on.

        Probes `[start, end]` in ascending order, then the fallback window
        `[max(start, end) + 1, max(start, end) + 200]`.

        Args:
            start: First port of the preferred range.
            end: Last port of the preferred range.

        Returns:
            A free port, or None when both ranges are exhausted.
        """
        upper = max(start, end)
        ranges = (
            range(start, end + 1),
            range(upper + 1, upper + FALLBACK_RANGE_SIZE + 1),
        )
        for candidates in ranges:
            for port in candidates:
                if port > 65535:  # noqa: PLR2004
                    break
                if not await self.is_listening(port):
                    if self._logger:
                        self._logger.info("port_found", port=port)
                    return port

        if self._logger:
            self._logger.warning("no_port_available", start=start, end=end)
        return None

    async def kill_port(self, port: int) -> bool:
        """Force-kill every listener on `port`.

        Best effort and idempotent: calling it on an idle port is harmless.

        Returns:
            True if every kill command ran without error.
        """
        if self._logger:
            self._logger.info("port_cleanup", port=port)

        owners = ""
        query = self._platform.port_owner_query(port)
        if query is not None:
            listing = await self._runner(
                CommandConfig(command=query, timeout_ms=KILL_TIMEOUT_MS)
            )
            owners = listing.stdout

        ok = True
        for command in self._platform.kill_port(port, owners):
            result = await self._runner(
                CommandConfig(command=command, timeout_ms=KILL_TIMEOUT_MS)
            )
            if result.error is not None or result.timed_out:
                ok = False
                if self._logger:
                    self._logger.warning(
                        "port_cleanup_failed",
                        port=port,
                        command=command,
                        error=result.error,
                        timed_out=result.timed_out,
                    )
        return ok

