"""The command-line interface for ocdesk."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from rich.console import Console

from ocdesk.config import LogFormat, LoggingConfig, LogLevel
from ocdesk.utils import create_launcher_logger

from ._commands import register_commands
from ._commands._context import CLIContext

APP_HELP = "Desktop launcher that supervises a local backend server."


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="ocdesk",
        help=APP_HELP,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.meta.default
    def _default(  # pyright: ignore[reportUnusedFunction]
        *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
        log_level: Annotated[
            LogLevel, Parameter(name="--log-level", help="Log level")
        ] = LogLevel.INFO,
        log_format: Annotated[
            LogFormat, Parameter(name="--log-format", help="Log file format")
        ] = LogFormat.JSON,
        log_file: Annotated[
            Path | None, Parameter(name="--log-file", help="Path to the log file")
        ] = None,
        data_dir: Annotated[
            Path | None,
            Parameter(name="--data-dir", help="Directory holding launcher state"),
        ] = None,
    ) -> None:
        """Run ocdesk with global options.

        Args:
            tokens: Command tokens to pass to subcommands.
            log_level: Minimum level written to the log file.
            log_format: Log file format (json or text).
            log_file: Explicit log file path.
            data_dir: Directory holding the state database.
        """
        logging_config = LoggingConfig(
            level=log_level,
            format=log_format,
            file=str(log_file) if log_file is not None else "",
        )
        logger = create_launcher_logger(
            level=logging_config.level.value,
            log_format=logging_config.format.value,  # type: ignore[arg-type]
            log_file=logging_config.file,
        )

        CLIContext.set_current(CLIContext(data_dir=data_dir, logger=logger))
        try:
            app(tokens)
        finally:
            CLIContext.reset()

    register_commands(app)
    return app


def main() -> None:
    """Default entrypoint for the `ocdesk` CLI."""
    app = create_app()
    app.meta()
