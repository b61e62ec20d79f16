import os
from pathlib import Path

import platformdirs

APP_NAME = "ocdesk"


def get_data_dir() -> Path:
    """Get the launcher data directory.

    Honors the OCDESK_DATA_DIR environment variable, falling back to the
    platform user data directory.
    """
    override = os.environ.get("OCDESK_DATA_DIR")
    if override:
        return Path(override)
    return platformdirs.user_data_path(APP_NAME)


def get_log_dir() -> Path:
    """Get the directory that holds launcher log files."""
    override = os.environ.get("OCDESK_DATA_DIR")
    if override:
        return Path(override) / "logs"
    return platformdirs.user_log_path(APP_NAME)


def get_launcher_log_file() -> Path:
    """Get the path to the launcher log file."""
    return get_log_dir() / "launcher.log"


def get_state_db() -> Path:
    """Get the path to the persistent key-value store.

    Returns:
        Path to the state database (<data dir>/state.db).
    """
    return get_data_dir() / "state.db"
