"""Protocol definitions for the supervisor system.

This module defines the interfaces that decouple the supervisor core from
the window toolkit, the UI, and the OS:
- OutputSink: Consumes backend output lines
- LauncherHost: Window and application primitives of the host shell
- LauncherView: Loading, reconnect, and error screens
- PortAllocatorProtocol: Port probing and cleanup
- SupervisorProtocol: Owner of the single supervised process
"""

import signal
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from anyio.streams.memory import MemoryObjectReceiveStream

    from ._models import ManagedPortSet, StartupFailure, SupervisedProcess


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for consuming backend output lines."""

    async def write_line(
        self,
        source: str,
        pid: int | None,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        """Write a line of backend output.

        Args:
            source: Name of the backend that produced the output.
            pid: Process ID of the backend, if known.
            stream: Which output stream the line came from.
            line: The output line (without trailing newline).
        """
        ...


@runtime_checkable
class LauncherHost(Protocol):
    """Window and application primitives provided by the host shell."""

    async def show(self) -> None: ...

    async def focus(self) -> None: ...

    async def get_size(self) -> tuple[int, int] | None:
        """Return the current window size, or None if it is unknown."""
        ...

    async def set_size(self, width: int, height: int) -> None: ...

    async def toggle_fullscreen(self) -> None: ...

    async def load_url(self, url: str) -> None:
        """Point the embedded view at the backend."""
        ...

    async def exit_app(self) -> None:
        """Exit the host application.

        Raises:
            Exception: Any failure; callers fall back to close_window().
        """
        ...

    async def close_window(self) -> None: ...


@runtime_checkable
class LauncherView(Protocol):
    """User-facing loading, reconnect, and error screens."""

    async def show_step(self, step: int, message: str) -> None:
        """Advance the loading indicator to `step` (1-4)."""
        ...

    async def show_overlay(self, message: str) -> None:
        """Show a transient overlay such as "Reconnecting..."."""
        ...

    async def hide_overlay(self) -> None: ...

    async def show_error(self, failure: "StartupFailure") -> None:
        """Show the terminal error screen with retry and quit actions."""
        ...

    async def show_advisory(self, message: str) -> None:
        """Show a non-blocking message box."""
        ...

    async def apply_zoom(self, level: float) -> None: ...


@runtime_checkable
class PortAllocatorProtocol(Protocol):
    """Port probing, search, and forced cleanup."""

    async def is_listening(self, port: int) -> bool: ...

    async def find_available_port(self, start: int, end: int) -> int | None: ...

    async def kill_port(self, port: int) -> bool: ...


@runtime_checkable
class SupervisorProtocol(Protocol):
    """Owner of the single supervised backend process."""

    @property
    def current(self) -> "SupervisedProcess | None":
        """Return the active supervised process, if any."""
        ...

    @property
    def managed_ports(self) -> "ManagedPortSet": ...

    def subscribe_output(self) -> "MemoryObjectReceiveStream[str]":
        """Subscribe to the backend's output lines."""
        ...

    async def spawn(
        self, command: Sequence[str], env: Mapping[str, str], *, port: int
    ) -> "SupervisedProcess":
        """Spawn the backend.

        Raises:
            SpawnError: If the OS cannot create the process.
        """
        ...

    async def terminate(self, sig: int = signal.SIGTERM) -> bool: ...

    async def release(self) -> None: ...

    def discard(self) -> None: ...
