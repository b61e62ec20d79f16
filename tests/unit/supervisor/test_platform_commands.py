import pytest

from ocdesk.supervisor import (
    PlatformCommands,
    PosixCommands,
    WindowsCommands,
    get_platform_commands,
    parse_listening_pids,
    probe_reports_listening,
)

NETSTAT_LISTING = """
  Proto  Local Address          Foreign Address        State           PID
  TCP    0.0.0.0:1504           0.0.0.0:0              LISTENING       4242
  TCP    [::]:1504              [::]:0                 LISTENING       4242
  TCP    127.0.0.1:15040        0.0.0.0:0              LISTENING       5555
  TCP    127.0.0.1:1504         127.0.0.1:50000        ESTABLISHED     6666
  TCP    0.0.0.0:1504           0.0.0.0:0              LISTENING       0
  TCP    0.0.0.0:1504           0.0.0.0:0              LISTENING       7777
"""


class TestGetPlatformCommands:
    @pytest.mark.parametrize(
        ("platform", "name"),
        [("linux", "posix"), ("darwin", "macos"), ("win32", "windows")],
    )
    def test_selects_provider(self, platform: str, name: str) -> None:
        commands = get_platform_commands(platform)
        assert isinstance(commands, PlatformCommands)
        assert commands.name == name


class TestPosixCommands:
    def test_probe_uses_ss_with_netstat_fallback(self) -> None:
        command = PosixCommands().probe_port(1504)
        assert command.startswith('ss -tln 2>/dev/null | grep -E ":1504([^0-9]|$)"')
        assert 'netstat -tln 2>/dev/null | grep -E ":1504([^0-9]|$)"' in command

    def test_no_owner_query(self) -> None:
        assert PosixCommands().port_owner_query(1504) is None

    def test_kill_port_tries_lsof_then_fuser(self) -> None:
        assert PosixCommands().kill_port(1504) == [
            "lsof -ti:1504 | xargs kill -9 2>/dev/null || true",
            "fuser -k 1504/tcp 2>/dev/null || true",
        ]

    def test_pid_signals(self) -> None:
        commands = PosixCommands()
        assert commands.terminate_pid(42) == "kill -15 42 2>/dev/null"
        assert commands.force_kill_pid(42) == "kill -9 42 2>/dev/null"

    def test_focus_window(self) -> None:
        assert "xdotool" in PosixCommands().focus_window()
        assert "wmctrl" in PosixCommands().focus_window()
        assert "osascript" in PosixCommands(macos=True).focus_window()


class TestWindowsCommands:
    def test_probe_filters_listening(self) -> None:
        assert WindowsCommands().probe_port(1504) == (
            'netstat -an | findstr /C:":1504 " | findstr "LISTENING"'
        )

    def test_owner_query_includes_pids(self) -> None:
        query = WindowsCommands().port_owner_query(1504)
        assert query is not None
        assert query.startswith("netstat -ano")

    def test_kill_port_targets_each_owner(self) -> None:
        commands = WindowsCommands().kill_port(1504, NETSTAT_LISTING)
        assert commands == [
            "taskkill /F /PID 4242 2>nul || exit 0",
            "taskkill /F /PID 7777 2>nul || exit 0",
        ]

    def test_kill_port_without_owners(self) -> None:
        assert WindowsCommands().kill_port(1504, "") == []

    def test_pid_signals(self) -> None:
        commands = WindowsCommands()
        assert commands.terminate_pid(42) == "taskkill /PID 42 2>nul"
        assert commands.force_kill_pid(42) == "taskkill /F /PID 42 2>nul"

    def test_focus_window(self) -> None:
        assert "AppActivate('OpenChamber Desktop')" in WindowsCommands().focus_window()


class TestParseListeningPids:
    def test_extracts_unique_listening_pids(self) -> None:
        assert parse_listening_pids(NETSTAT_LISTING, 1504) == [4242, 7777]

    def test_ignores_other_ports(self) -> None:
        assert parse_listening_pids(NETSTAT_LISTING, 15040) == [5555]
        assert parse_listening_pids(NETSTAT_LISTING, 9999) == []

    def test_ignores_malformed_lines(self) -> None:
        listing = "TCP 0.0.0.0:1504 LISTENING\nTCP 0.0.0.0:1504 x LISTENING abc\n"
        assert parse_listening_pids(listing, 1504) == []


class TestProbeReportsListening:
    def test_port_in_output(self) -> None:
        assert probe_reports_listening("LISTEN 0 128 0.0.0.0:1504 *:*", 1504)

    def test_empty_output(self) -> None:
        assert not probe_reports_listening("", 1504)

    @pytest.mark.parametrize(
        "stdout",
        [
            "LISTEN 0 128 0.0.0.0:15040 *:*",
            "LISTEN 0 128 [::]:15049 [::]:*",
            "tcp 0 0 127.0.0.1:21504 0.0.0.0:* LISTEN",
        ],
    )
    def test_longer_port_does_not_count(self, stdout: str) -> None:
        assert not probe_reports_listening(stdout, 1504)

    @pytest.mark.parametrize(
        "stdout",
        [
            "LISTEN 0 128 [::]:1504 [::]:*",
            "tcp 0 0 127.0.0.1:1504 0.0.0.0:* LISTEN",
            "  TCP    0.0.0.0:1504           0.0.0.0:0              LISTENING",
            "LISTEN 0 128 *:1504",
        ],
    )
    def test_whole_port_counts(self, stdout: str) -> None:
        assert probe_reports_listening(stdout, 1504)
