import sys
from typing import Literal

import anyio
import pytest

from ocdesk.exceptions import SpawnError
from ocdesk.supervisor import ProcessSupervisor

pytestmark = pytest.mark.anyio

_ANNOUNCER = """
import os, sys, time
print("booting", flush=True)
print("listening on port " + os.environ["PORT"], flush=True)
print("warming cache", file=sys.stderr, flush=True)
time.sleep(30)
"""


class RecordingSink:
    def __init__(self) -> None:
        self.lines: list[tuple[str, int | None, str, str]] = []

    async def write_line(
        self,
        source: str,
        pid: int | None,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        self.lines.append((source, pid, stream, line))


class TestRealProcess:
    async def test_output_reaches_subscribers_and_sink(self) -> None:
        sink = RecordingSink()
        supervisor = ProcessSupervisor(name="backend", output_sink=sink)

        with anyio.fail_after(10):
            async with anyio.create_task_group() as tg:
                supervisor.bind(tg)
                lines = supervisor.subscribe_output()
                record = await supervisor.spawn(
                    [sys.executable, "-c", _ANNOUNCER], {"PORT": "1504"}, port=1504
                )
                received = [await lines.receive(), await lines.receive()]

                assert received == ["booting", "listening on port 1504"]
                assert record.pid is not None

                assert await supervisor.terminate() is True
                await supervisor.release()
                lines.close()

        assert ("backend", record.pid, "stdout", "booting") in sink.lines
        assert record.terminating is True

    async def test_exit_code_recorded(self) -> None:
        supervisor = ProcessSupervisor()

        with anyio.fail_after(10):
            async with anyio.create_task_group() as tg:
                supervisor.bind(tg)
                record = await supervisor.spawn(
                    [sys.executable, "-c", "raise SystemExit(3)"], {}, port=1504
                )

        assert record.exit_code == 3
        assert record.terminating is False

    async def test_unbound_supervisor_discards_output(self) -> None:
        supervisor = ProcessSupervisor()

        record = await supervisor.spawn(
            [sys.executable, "-c", "print('ignored')"], {}, port=1504
        )

        assert supervisor.current is record
        _ = await supervisor.terminate()
        await supervisor.release()

    async def test_missing_executable(self) -> None:
        supervisor = ProcessSupervisor(name="backend")

        with pytest.raises(SpawnError, match="Failed to start backend"):
            _ = await supervisor.spawn(
                ["/nonexistent/ocdesk-backend"], {}, port=1504
            )
