from pathlib import Path

import pytest

from ocdesk.utils import get_data_dir, get_launcher_log_file, get_log_dir, get_state_db


class TestPaths:
    def test_data_dir_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OCDESK_DATA_DIR", "/tmp/ocdesk-test")

        assert get_data_dir() == Path("/tmp/ocdesk-test")
        assert get_state_db() == Path("/tmp/ocdesk-test/state.db")
        assert get_log_dir() == Path("/tmp/ocdesk-test/logs")
        assert get_launcher_log_file() == Path("/tmp/ocdesk-test/logs/launcher.log")

    def test_platform_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OCDESK_DATA_DIR", raising=False)

        assert get_data_dir().name == "ocdesk"
        assert get_state_db().name == "state.db"
        assert get_launcher_log_file().name == "launcher.log"
