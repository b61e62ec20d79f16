"""ocdesk CLI commands."""
# pyright: reportUnusedCallResult=false

from typing import TYPE_CHECKING

from ._config import app as config_app
from ._context import CLIContext, OutputFormat
from ._launch import build_launcher, launch, run_launch
from ._ports import app as ports_app
from ._shared import (
    ExitCode,
    FormattableData,
    exit_with_error,
    format_json,
    format_table,
    format_yaml,
    get_error_console,
)
from ._stub import stub

if TYPE_CHECKING:
    from cyclopts import App

__all__ = [
    "CLIContext",
    "ExitCode",
    "FormattableData",
    "OutputFormat",
    "build_launcher",
    "config_app",
    "exit_with_error",
    "format_json",
    "format_table",
    "format_yaml",
    "get_error_console",
    "launch",
    "ports_app",
    "run_launch",
    "stub",
]


def register_commands(app: "App") -> None:
    app.default(launch)
    app.command(launch, name="launch")
    app.command(config_app)
    app.command(ports_app)
    app.command(stub, name="stub")

    @app.command(name="data-path")
    def _data_path() -> None:  # pyright: ignore[reportUnusedFunction]
        """Show where launcher state is stored."""
        print(CLIContext.get_current().state_db)
