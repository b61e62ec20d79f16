"""Readiness and validation pipeline.

After the backend has been spawned, the pipeline waits for its port to
open, checks the reported version against the supported floor, and makes
sure whatever answers on the port actually is the backend.
"""

import re
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, final

import anyio
import httpx
from anyio.streams.memory import MemoryObjectReceiveStream

from ocdesk.exceptions import OriginMismatchError

from ._models import BackendConfig, VersionCheck

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._protocol import LauncherView, PortAllocatorProtocol

type Sleep = Callable[[float], Awaitable[None]]

_VERSION_FIELDS = 3

_ANNOUNCE_TRIGGER = re.compile(r"port|localhost:|:\d{4,5}", re.IGNORECASE)
_ANNOUNCED_PORT = re.compile(
    r"(?:localhost:|:|port\D{0,16}?)(\d{4,5})(?!\d)", re.IGNORECASE
)


def _version_field(part: str) -> int:
    try:
        return int(part)
    except ValueError:
        return 0


def compare_versions(a: str, b: str) -> int:
    """Compare two dotted versions field by field.

    Only major, minor, and patch are compared. Missing or non-numeric
    fields count as 0.

    Returns:
        -1, 0, or 1 as `a` is lower than, equal to, or higher than `b`.
    """
    left = [_version_field(p) for p in str(a).split(".")][:_VERSION_FIELDS]
    right = [_version_field(p) for p in str(b).split(".")][:_VERSION_FIELDS]
    left += [0] * (_VERSION_FIELDS - len(left))
    right += [0] * (_VERSION_FIELDS - len(right))
    for x, y in zip(left, right, strict=True):
        if x != y:
            return 1 if x > y else -1
    return 0


def parse_announced_port(line: str) -> int | None:
    """Extract the port a backend announced in an output line.

    Lines that mention `port`, `localhost:`, or `:<4-5 digits>` are
    inspected; the first 4-5 digit number following one of those wins.
    """
    if not _ANNOUNCE_TRIGGER.search(line):
        return None
    match = _ANNOUNCED_PORT.search(line)
    if match is None:
        return None
    port = int(match.group(1))
    return port if 0 < port <= 65535 else None  # noqa: PLR2004


@final
class ReadinessPipeline:
    """Readiness polling and backend validation for one port at a time."""

    __slots__ = ("_allocator", "_backend", "_client", "_logger", "_sleep", "_view")

    def __init__(
        self,
        allocator: "PortAllocatorProtocol",
        backend: BackendConfig,
        *,
        client: httpx.AsyncClient | None = None,
        view: "LauncherView | None" = None,
        sleep: Sleep = anyio.sleep,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        self._allocator = allocator
        self._backend = backend
        self._client = client
        self._view = view
        self._sleep = sleep
        self._logger = logger

    async def _get(self, port: int, path: str) -> httpx.Response:
        url = self._backend.url(port, path)
        timeout = self._backend.request_timeout
        if self._client is not None:
            return await self._client.get(url, timeout=timeout)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.get(url)

    async def await_ready(
        self,
        port: int,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> bool:
        """Poll until something listens on `port`.

        Args:
            port: Port to poll.
            max_attempts: Probe budget, 60 by default.
            interval: Seconds between probes, 0.5 by default.

        Returns:
            True on the first successful probe, False once the budget is
            spent. There is no wait after the final probe.
        """
        backend = self._backend
        attempts = max_attempts if max_attempts is not None else backend.ready_attempts
        delay = interval if interval is not None else backend.ready_interval

        for attempt in range(1, attempts + 1):
            if await self._allocator.is_listening(port):
                if self._logger:
                    self._logger.info("backend_ready", port=port, attempts=attempt)
                return True
            if attempt < attempts:
                await self._sleep(delay)

        if self._logger:
            self._logger.warning("backend_not_ready", port=port, attempts=attempts)
        return False

    async def validate_version(self, port: int) -> VersionCheck | None:
        """Check the backend version against the supported floor.

        The result is advisory. A version below the floor is logged and
        shown as a message box, and never fails the startup.

        Returns:
            The comparison result, or None if the version could not be read.
        """
        try:
            response = await self._get(port, self._backend.version_path)
            _ = response.raise_for_status()
            version = str(response.json()["version"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            if self._logger:
                self._logger.warning("version_check_failed", port=port, error=str(e))
            return None

        minimum = self._backend.min_version
        check = VersionCheck(
            version=version,
            minimum=minimum,
            compatible=compare_versions(version, minimum) >= 0,
        )
        if self._logger:
            self._logger.info(
                "backend_version", version=version, compatible=check.compatible
            )

        if not check.compatible:
            if self._logger:
                self._logger.warning(
                    "backend_version_unsupported", version=version, minimum=minimum
                )
            if self._view is not None:
                await self._view.show_advisory(
                    f"Incompatible {self._backend.name} version: {version}. "
                    f"Recommended >= {minimum}"
                )
        return check

    async def validate_origin(self, port: int) -> None:
        """Make sure the service on `port` is the expected backend.

        Accepted when the identifying header is present, the `Server` header
        mentions the marker, or the body contains the marker (ignoring case).
        This is a heuristic, not authentication.

        Raises:
            OriginMismatchError: If the response does not identify the
                backend or the root resource could not be fetched.
        """
        try:
            response = await self._get(port, self._backend.root_path)
        except httpx.HTTPError as e:
            if self._logger:
                self._logger.error("origin_check_failed", port=port, error=str(e))
            msg = f"Could not reach the service on port {port}: {e}"
            raise OriginMismatchError(msg, port=port, cause=e) from e

        marker = self._backend.marker.lower()
        has_header = self._backend.identity_header in response.headers
        server = response.headers.get("server", "").lower()
        if has_header or marker in server or marker in response.text.lower():
            if self._logger:
                self._logger.debug("origin_validated", port=port)
            return

        if self._logger:
            self._logger.error(
                "origin_mismatch", port=port, status=response.status_code
            )
        msg = f"The service on port {port} does not appear to be {self._backend.name}"
        raise OriginMismatchError(msg, port=port)

    async def await_announced_port(
        self,
        lines: MemoryObjectReceiveStream[str],
        candidates: Sequence[int],
        *,
        max_attempts: int | None = None,
        interval: float | None = None,
    ) -> int | None:
        """Resolve the port of a backend that picks its own.

        Races the backend's output, where the first announcing line wins,
        against polling the candidate ports. Whichever resolves first
        cancels the other. Polling is bounded by the readiness budget.

        Args:
            lines: Subscription over the backend's output lines.
            candidates: Ports the backend may choose from.
            max_attempts: Polling rounds, 60 by default.
            interval: Seconds between rounds, 0.5 by default.

        Returns:
            The resolved port, or None if neither source produced one.
        """
        backend = self._backend
        attempts = max_attempts if max_attempts is not None else backend.ready_attempts
        delay = interval if interval is not None else backend.ready_interval
        resolved: int | None = None

        async with anyio.create_task_group() as tg:

            async def from_output() -> None:
                nonlocal resolved
                async for line in lines:
                    port = parse_announced_port(line)
                    if port is not None:
                        if self._logger:
                            self._logger.info("port_announced", port=port, line=line)
                        resolved = port
                        tg.cancel_scope.cancel()
                        return

            async def from_polling() -> None:
                nonlocal resolved
                for attempt in range(1, attempts + 1):
                    for port in candidates:
                        if await self._allocator.is_listening(port):
                            if self._logger:
                                self._logger.info("port_discovered", port=port)
                            resolved = port
                            tg.cancel_scope.cancel()
                            return
                    if attempt < attempts:
                        await self._sleep(delay)
                tg.cancel_scope.cancel()

            tg.start_soon(from_output)
            tg.start_soon(from_polling)

        return resolved
