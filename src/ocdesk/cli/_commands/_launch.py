# pyright: reportUnusedCallResult=false
"""Launch command: run the launcher against the local backend."""

import shlex
import signal
import sys
from typing import TYPE_CHECKING, Annotated

import anyio
from cyclopts import Parameter

from ocdesk.launcher import BrowserHost, ConsoleView, Launcher
from ocdesk.supervisor import (
    DEFAULT_BACKEND_NAME,
    DEFAULT_MIN_VERSION,
    DEFAULT_PORT_RANGE_END,
    BackendConfig,
    ConsoleOutputSink,
    StartupState,
)

from ._context import CLIContext
from ._shared import ExitCode, exit_with_error

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ocdesk.utils import StateStore


async def _quit_on_signal(launcher: Launcher) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            await launcher.quit(f"signal_{signal.Signals(signum).name.lower()}")
            return


async def run_launch(launcher: Launcher) -> ExitCode:
    """Run a launcher until it shuts down and map the outcome to an exit code.

    SIGINT and SIGTERM trigger the ordered shutdown on platforms that
    deliver them to the event loop.
    """
    async with anyio.create_task_group() as tg:
        if sys.platform != "win32":
            tg.start_soon(_quit_on_signal, launcher)
        started = await launcher.run()
        tg.cancel_scope.cancel()

    if not started:
        return ExitCode.ALREADY_RUNNING
    if launcher.state is StartupState.FAILED:
        return ExitCode.FAILURE
    return ExitCode.SUCCESS


def build_launcher(  # noqa: PLR0913
    store: "StateStore",
    backend: BackendConfig,
    *,
    preferred_port: int | None = None,
    open_browser: bool = True,
    exit_on_failure: bool = True,
    logger: "FilteringBoundLogger | None" = None,
) -> Launcher:
    """Assemble a terminal launcher: rich console view, browser host."""
    launcher = Launcher(
        host=BrowserHost(open_browser=open_browser),
        view=ConsoleView(),
        store=store,
        backend=backend,
        output_sink=ConsoleOutputSink(),
        exit_on_failure=exit_on_failure,
        logger=logger,
    )
    if preferred_port is not None:
        _ = launcher.config.load()
        launcher.config.set_preferred_port(preferred_port)
    return launcher


def launch(  # noqa: PLR0913
    *,
    command: Annotated[
        str,
        Parameter(help="Backend command line, split with shell quoting rules."),
    ] = DEFAULT_BACKEND_NAME,
    preferred_port: Annotated[
        int | None,
        Parameter(help="Port to try first (persisted for later launches)."),
    ] = None,
    port_range_end: Annotated[
        int,
        Parameter(help="Last port of the preferred range."),
    ] = DEFAULT_PORT_RANGE_END,
    port_env_var: Annotated[
        str,
        Parameter(help="Environment variable that passes the port to the backend."),
    ] = "PORT",
    announce: Annotated[
        bool,
        Parameter(help="Let the backend pick its port and read it from its output."),
    ] = False,
    min_version: Annotated[
        str,
        Parameter(help="Oldest backend version that is not flagged."),
    ] = DEFAULT_MIN_VERSION,
    no_browser: Annotated[
        bool,
        Parameter(name="--no-browser", help="Do not open the UI in a browser."),
    ] = False,
    keep_open: Annotated[
        bool,
        Parameter(help="Stay on the error screen when startup fails."),
    ] = False,
) -> None:
    """Start the backend and open its UI.

    Finds a free port, spawns the backend, waits for it to answer, checks
    its identity, then keeps it healthy until Ctrl+C.
    """
    argv = tuple(shlex.split(command))
    if not argv:
        exit_with_error("Backend command must not be empty", ExitCode.FAILURE)

    ctx = CLIContext.get_current()
    backend = BackendConfig(
        name=argv[0].rsplit("/", 1)[-1],
        command=argv,
        port_env_var=None if announce else port_env_var,
        port_range_end=port_range_end,
        min_version=min_version,
    )
    launcher = build_launcher(
        ctx.open_store(),
        backend,
        preferred_port=preferred_port,
        open_browser=not no_browser,
        exit_on_failure=not keep_open,
        logger=ctx.logger,
    )

    code = anyio.run(run_launch, launcher)
    if code is ExitCode.ALREADY_RUNNING:
        print("ocdesk is already running; focused the existing window")
    raise SystemExit(code)
