import pytest
from rich.console import Console

from ocdesk.supervisor import ConsoleOutputSink

pytestmark = pytest.mark.anyio


class TestConsoleOutputSink:
    async def test_prefixes_name_and_pid(self, console: Console) -> None:
        sink = ConsoleOutputSink(console)

        with console.capture() as capture:
            await sink.write_line("openchamber", 4242, "stdout", "listening on 1504")

        assert capture.get() == "[openchamber:4242] listening on 1504\n"

    async def test_without_pid(self, console: Console) -> None:
        sink = ConsoleOutputSink(console)

        with console.capture() as capture:
            await sink.write_line("openchamber", None, "stderr", "warning: slow disk")

        assert capture.get() == "[openchamber] warning: slow disk\n"

    async def test_line_is_not_markup(self, console: Console) -> None:
        sink = ConsoleOutputSink(console)

        with console.capture() as capture:
            await sink.write_line("openchamber", 1, "stdout", "[bold]raw[/bold]")

        assert "[bold]raw[/bold]" in capture.get()
