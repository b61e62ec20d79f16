# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: D415, A002
"""Config commands for viewing and editing the persisted launcher settings."""

from typing import Annotated

from cyclopts import App, Parameter

from ocdesk.config import ConfigManager, LauncherConfig

from ._context import CLIContext, OutputFormat
from ._shared import ExitCode, exit_with_error, format_json, format_table, format_yaml

app = App(name="config", help="View and edit launcher settings", help_on_error=True)


def _open_manager() -> ConfigManager:
    ctx = CLIContext.get_current()
    manager = ConfigManager(ctx.open_store(), logger=ctx.logger)
    _ = manager.load()
    return manager


def _table_rows(config: LauncherConfig) -> list[list[str]]:
    size = config.window_size
    return [
        ["preferred_port", str(config.preferred_port)],
        ["zoom_level", f"{config.zoom_level:g}"],
        ["window_size", f"{size.width}x{size.height}"],
        ["last_used_ports", ", ".join(str(p) for p in config.last_used_ports)],
    ]


@app.command(name="show")
def show(
    *,
    format: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format."),
    ] = OutputFormat.JSON,
) -> None:
    """Show the merged launcher configuration

    Args:
        format: Output format (json, yaml, table).
    """
    config = _open_manager().config

    match format:
        case OutputFormat.JSON:
            print(format_json(config.model_dump(mode="json")))
        case OutputFormat.YAML:
            print(format_yaml(config.model_dump(mode="json")), end="")
        case OutputFormat.TABLE:
            print(format_table(["key", "value"], _table_rows(config)))


@app.command(name="reset")
def reset() -> None:
    """Restore the default configuration"""
    config = _open_manager().reset()
    print(f"Configuration reset (preferred port {config.preferred_port})")


@app.command(name="set-port")
def set_port(
    port: Annotated[int, Parameter(help="Port to try first on startup.")],
) -> None:
    """Set the preferred backend port

    Args:
        port: Port to try first on startup (1-65535).
    """
    if not 1 <= port <= 65535:  # noqa: PLR2004
        exit_with_error(f"Invalid port: {port}", ExitCode.FAILURE)

    manager = _open_manager()
    manager.set_preferred_port(port)
    print(f"Preferred port set to {port}")
