"""Shared utilities for ocdesk."""

from ._exec import (
    DEFAULT_TIMEOUT_MS,
    CommandConfig,
    CommandResult,
    run_command,
    truncate_output,
)
from ._logging import create_launcher_logger
from ._paths import get_data_dir, get_launcher_log_file, get_log_dir, get_state_db
from ._state_store import (
    DEFAULT_NAMESPACE,
    MockStateStore,
    SQLiteStateStore,
    StateEntry,
    StateStore,
)

__all__ = [
    "DEFAULT_NAMESPACE",
    "DEFAULT_TIMEOUT_MS",
    "CommandConfig",
    "CommandResult",
    "MockStateStore",
    "SQLiteStateStore",
    "StateEntry",
    "StateStore",
    "create_launcher_logger",
    "get_data_dir",
    "get_launcher_log_file",
    "get_log_dir",
    "get_state_db",
    "run_command",
    "truncate_output",
]
