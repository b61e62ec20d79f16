"""Platform-specific shell commands.

Everything that differs between POSIX and Windows when probing ports,
killing listeners, or focusing a window lives here. The provider is chosen
once with get_platform_commands() and then used the same way everywhere.
"""

import re
import sys
from typing import Protocol, final, runtime_checkable

WINDOW_TITLE = "OpenChamber Desktop"
MAC_PROCESS_NAME = "openchamber-launcher"

_WHITESPACE = re.compile(r"\s+")


@runtime_checkable
class PlatformCommands(Protocol):
    """Builds the shell commands used by the allocator and shutdown."""

    @property
    def name(self) -> str: ...

    def probe_port(self, port: int) -> str:
        """Command whose stdout mentions `port` iff something listens on it."""
        ...

    def port_owner_query(self, port: int) -> str | None:
        """Command listing the owners of `port`, or None if not needed."""
        ...

    def kill_port(self, port: int, owners: str = "") -> list[str]:
        """Commands force-killing every listener on `port`.

        Args:
            port: Port to free.
            owners: Output of port_owner_query(), if one was run.
        """
        ...

    def terminate_pid(self, pid: int) -> str: ...

    def force_kill_pid(self, pid: int) -> str: ...

    def focus_window(self) -> str:
        """Command bringing an already running launcher to the front."""
        ...


def probe_reports_listening(stdout: str, port: int) -> bool:
    """Interpret probe output: listening iff `:<port>` appears as a whole port.

    `:1504` inside `:15040` does not count.
    """
    return re.search(rf":{port}(?!\d)", stdout) is not None


@final
class PosixCommands:
    """Commands for Linux and macOS."""

    __slots__ = ("_macos",)

    def __init__(self, *, macos: bool = False) -> None:
        self._macos = macos

    @property
    def name(self) -> str:
        return "macos" if self._macos else "posix"

    def probe_port(self, port: int) -> str:
        return (
            f'ss -tln 2>/dev/null | grep -E ":{port}([^0-9]|$)" || '
            f'netstat -tln 2>/dev/null | grep -E ":{port}([^0-9]|$)"'
        )

    def port_owner_query(self, port: int) -> str | None:  # noqa: ARG002
        return None

    def kill_port(self, port: int, owners: str = "") -> list[str]:  # noqa: ARG002
        return [
            f"lsof -ti:{port} | xargs kill -9 2>/dev/null || true",
            f"fuser -k {port}/tcp 2>/dev/null || true",
        ]

    def terminate_pid(self, pid: int) -> str:
        return f"kill -15 {pid} 2>/dev/null"

    def force_kill_pid(self, pid: int) -> str:
        return f"kill -9 {pid} 2>/dev/null"

    def focus_window(self) -> str:
        if self._macos:
            return (
                "osascript -e 'tell application \"System Events\" to tell process "
                f'"{MAC_PROCESS_NAME}" to set frontmost to true\''
            )
        return (
            f'xdotool search --name "{WINDOW_TITLE}" windowactivate 2>/dev/null || '
            f'wmctrl -a "{WINDOW_TITLE}" 2>/dev/null || true'
        )


@final
class WindowsCommands:
    """Commands for Windows (cmd.exe)."""

    __slots__ = ()

    @property
    def name(self) -> str:
        return "windows"

    def probe_port(self, port: int) -> str:
        return f'netstat -an | findstr /C:":{port} " | findstr "LISTENING"'

    def port_owner_query(self, port: int) -> str | None:
        return f'netstat -ano | findstr /C:":{port} " | findstr "LISTENING"'

    def kill_port(self, port: int, owners: str = "") -> list[str]:
        return [
            f"taskkill /F /PID {pid} 2>nul || exit 0"
            for pid in parse_listening_pids(owners, port)
        ]

    def terminate_pid(self, pid: int) -> str:
        return f"taskkill /PID {pid} 2>nul"

    def force_kill_pid(self, pid: int) -> str:
        return f"taskkill /F /PID {pid} 2>nul"

    def focus_window(self) -> str:
        return (
            'powershell -Command "Add-Type -AssemblyName Microsoft.VisualBasic; '
            f"[Microsoft.VisualBasic.Interaction]::AppActivate('{WINDOW_TITLE}')\""
        )


def parse_listening_pids(listing: str, port: int) -> list[int]:
    """Extract owning pids from `netstat -ano` lines for a listening port.

    Lines look like `TCP  0.0.0.0:1504  0.0.0.0:0  LISTENING  4242`. Only
    lines whose local address ends in `:<port>` are considered, pid 0 is
    skipped and duplicates are collapsed.

    Args:
        listing: Raw netstat output.
        port: Port whose owners are wanted.

    Returns:
        Unique pids in order of appearance.
    """
    pids: list[int] = []
    suffix = f":{port}"
    for raw in listing.splitlines():
        parts = _WHITESPACE.split(raw.strip())
        if len(parts) < 5 or "LISTENING" not in parts:  # noqa: PLR2004
            continue
        if not parts[1].endswith(suffix):
            continue
        try:
            pid = int(parts[-1])
        except ValueError:
            continue
        if pid > 0 and pid not in pids:
            pids.append(pid)
    return pids


def get_platform_commands(platform: str | None = None) -> PlatformCommands:
    """Select the command provider for a platform.

    Args:
        platform: A `sys.platform` value. Defaults to the running platform.
    """
    platform = platform or sys.platform
    if platform.startswith("win"):
        return WindowsCommands()
    return PosixCommands(macos=platform == "darwin")
