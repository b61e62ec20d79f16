# pyright: reportExplicitAny=false
"""Shared CLI utilities for commands.

Exit codes, output formatters, and error reporting used by every command.
"""

from enum import IntEnum
from typing import TYPE_CHECKING, Any, Never

if TYPE_CHECKING:
    from rich.console import Console

FormattableData = dict[str, Any]

__all__ = [
    "ExitCode",
    "FormattableData",
    "exit_with_error",
    "format_json",
    "format_table",
    "format_yaml",
    "get_error_console",
]


class ExitCode(IntEnum):
    """Exit codes for ocdesk commands."""

    SUCCESS = 0
    FAILURE = 1
    ALREADY_RUNNING = 2
    NO_PORT = 3


def format_json(data: FormattableData, *, indent: bool = True) -> str:
    """Format data as JSON.

    Args:
        data: Dictionary to format as JSON.
        indent: Whether to pretty-print with indentation.

    Returns:
        JSON-formatted string representation.
    """
    import orjson

    options = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(data, option=options).decode("utf-8")


def format_yaml(data: FormattableData) -> str:
    import yaml

    return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True)


def format_table(headers: list[str], rows: list[list[str]]) -> str:
    """Format rows as a Markdown table."""
    from pytablewriter import MarkdownTableWriter

    writer = MarkdownTableWriter(
        headers=headers,
        value_matrix=rows,
        margin=1,
    )
    return writer.dumps()


def get_error_console() -> "Console":
    from rich.console import Console

    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.FAILURE,
    *,
    console: "Console | None" = None,
) -> Never:
    """Print an error message and exit with the specified code.

    Args:
        message: The error message to display.
        code: The exit code to use.
        console: Optional Rich console for output. Defaults to stderr.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(code)
