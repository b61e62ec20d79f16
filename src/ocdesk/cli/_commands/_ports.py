# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: D415
"""Port commands: find a free port or free an occupied one."""

from typing import Annotated

import anyio
from cyclopts import App, Parameter

from ocdesk.config import DEFAULT_PREFERRED_PORT
from ocdesk.supervisor import DEFAULT_PORT_RANGE_END, PortAllocator

from ._context import CLIContext
from ._shared import ExitCode, exit_with_error

app = App(name="ports", help="Inspect and free local ports", help_on_error=True)


@app.command(name="find")
def find(
    *,
    start: Annotated[int, Parameter(help="First port to probe.")] = (
        DEFAULT_PREFERRED_PORT
    ),
    end: Annotated[int, Parameter(help="Last port of the preferred range.")] = (
        DEFAULT_PORT_RANGE_END
    ),
) -> None:
    """Print the first port nothing is listening on

    The preferred range is scanned first, then a fallback range above it.
    """
    allocator = PortAllocator(logger=CLIContext.get_current().logger)
    port = anyio.run(allocator.find_available_port, start, end)
    if port is None:
        exit_with_error(f"No available port from {start}", ExitCode.NO_PORT)
    print(port)


@app.command(name="kill")
def kill(
    port: Annotated[int, Parameter(help="Port whose listeners are killed.")],
) -> None:
    """Force-kill whatever listens on a port"""
    allocator = PortAllocator(logger=CLIContext.get_current().logger)
    if not anyio.run(allocator.kill_port, port):
        exit_with_error(f"Could not free port {port}", ExitCode.FAILURE)
    print(f"Port {port} freed")
