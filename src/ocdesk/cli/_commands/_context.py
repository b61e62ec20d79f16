# pyright: reportUnusedCallResult=false
# ruff: noqa: TC003  # Path needed at runtime for dataclass field
"""CLI context for global state management.

The CLIContext is set once by the meta command from the global options and
read by every subcommand through a context variable.
"""

import contextvars
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from ocdesk.utils import SQLiteStateStore, get_state_db

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger


class OutputFormat(StrEnum):
    """Supported output formats for commands."""

    JSON = "json"
    YAML = "yaml"
    TABLE = "table"


_current_cli_context: "contextvars.ContextVar[CLIContext | None]" = (
    contextvars.ContextVar("cli_context", default=None)
)


@dataclass(frozen=True, slots=True)
class CLIContext:
    """Global CLI options shared with the subcommands.

    Attributes:
        data_dir: Explicit data directory, or None for the platform default.
        logger: Structured logger for launcher components (file only).
    """

    data_dir: Path | None = None
    logger: "FilteringBoundLogger | None" = field(default=None, repr=False)

    @property
    def state_db(self) -> Path:
        """Path of the state database for this invocation."""
        if self.data_dir is not None:
            return self.data_dir / "state.db"
        return get_state_db()

    def open_store(self) -> SQLiteStateStore:
        """Open the persistent state store shared by all launcher instances."""
        return SQLiteStateStore(self.state_db, logger=self.logger)

    @classmethod
    def get_current(cls) -> "CLIContext":
        """Get the active CLIContext, or a default one if none is set."""
        ctx = _current_cli_context.get()
        if ctx is not None:
            return ctx
        return cls()

    @classmethod
    def set_current(cls, ctx: "CLIContext") -> None:
        _current_cli_context.set(ctx)

    @classmethod
    def reset(cls) -> None:
        """Reset to the default context.

        Mostly useful in tests to keep invocations independent.
        """
        _current_cli_context.set(None)
