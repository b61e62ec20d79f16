from typing import TYPE_CHECKING

import pytest

from ocdesk.supervisor import (
    PortAllocator,
    PosixCommands,
    ShutdownCoordinator,
    SupervisedProcess,
)
from tests.conftest import FakeHost, FakeRunner, FakeSupervisor, RecordingSleep

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

pytestmark = pytest.mark.anyio


@pytest.fixture
def supervisor() -> FakeSupervisor:
    supervisor = FakeSupervisor()
    process = SupervisedProcess(process_id=2, port=1505, pid=4242)
    supervisor._current = process  # noqa: SLF001
    supervisor.managed_ports.add(1504)
    supervisor.managed_ports.add(1505)
    return supervisor


def _coordinator(
    supervisor: FakeSupervisor,
    runner: FakeRunner,
    host: FakeHost,
    sleep: RecordingSleep,
    *,
    grace_period: float = 3.0,
    logger: object = None,
) -> ShutdownCoordinator:
    platform = PosixCommands()
    return ShutdownCoordinator(
        supervisor=supervisor,
        allocator=PortAllocator(platform, runner=runner),
        host=host,
        platform=platform,
        runner=runner,
        grace_period=grace_period,
        sleep=sleep,
        logger=logger,  # pyright: ignore[reportArgumentType]
    )


class TestShutdown:
    async def test_full_sequence(
        self,
        supervisor: FakeSupervisor,
        runner: FakeRunner,
        host: FakeHost,
        sleep: RecordingSleep,
    ) -> None:
        coordinator = _coordinator(supervisor, runner, host, sleep)

        await coordinator.shutdown("user_quit")

        assert supervisor.calls == ["terminate:15", "release", "discard"]
        assert sleep.delays == [3.0]
        assert runner.commands == [
            "kill -15 4242 2>/dev/null",
            "lsof -ti:1504 | xargs kill -9 2>/dev/null || true",
            "fuser -k 1504/tcp 2>/dev/null || true",
            "lsof -ti:1505 | xargs kill -9 2>/dev/null || true",
            "fuser -k 1505/tcp 2>/dev/null || true",
            "kill -9 4242 2>/dev/null",
        ]
        assert host.calls == ["exit_app"]
        assert supervisor.current is None

    async def test_runs_once(
        self,
        supervisor: FakeSupervisor,
        runner: FakeRunner,
        host: FakeHost,
        sleep: RecordingSleep,
    ) -> None:
        coordinator = _coordinator(supervisor, runner, host, sleep)

        await coordinator.shutdown()
        await coordinator.shutdown()

        assert coordinator.started is True
        assert host.calls == ["exit_app"]
        assert sleep.delays == [3.0]

    async def test_without_backend_still_cleans_ports(
        self, runner: FakeRunner, host: FakeHost, sleep: RecordingSleep
    ) -> None:
        supervisor = FakeSupervisor()
        supervisor.managed_ports.add(1504)
        coordinator = _coordinator(supervisor, runner, host, sleep, grace_period=0.5)

        await coordinator.shutdown()

        assert "terminate:15" not in supervisor.calls
        assert sleep.delays == [0.5]
        assert runner.commands[0].startswith("lsof -ti:1504")
        assert not any(c.startswith("kill -9") for c in runner.commands)

    async def test_hooks_run_first_and_failures_are_contained(
        self,
        supervisor: FakeSupervisor,
        runner: FakeRunner,
        host: FakeHost,
        sleep: RecordingSleep,
        mocker: "MockerFixture",
    ) -> None:
        order: list[str] = []
        logger = mocker.MagicMock()
        coordinator = _coordinator(supervisor, runner, host, sleep, logger=logger)

        def failing_hook() -> None:
            order.append("sync")
            msg = "hook failed"
            raise RuntimeError(msg)

        async def async_hook() -> None:
            order.append("async")

        coordinator.add_stop_hook("failing", failing_hook)
        coordinator.add_stop_hook("async", async_hook)

        await coordinator.shutdown()

        assert order == ["sync", "async"]
        assert supervisor.calls[0] == "terminate:15"
        failed = [
            c.kwargs["step"]
            for c in logger.warning.call_args_list
            if c.args[0] == "shutdown_step_failed"
        ]
        assert failed == ["hook:failing"]

    async def test_exit_failure_falls_back_to_close(
        self,
        supervisor: FakeSupervisor,
        runner: FakeRunner,
        sleep: RecordingSleep,
    ) -> None:
        host = FakeHost(fail_exit=True)
        coordinator = _coordinator(supervisor, runner, host, sleep)

        await coordinator.shutdown()

        assert host.calls == ["exit_app", "close_window"]

    async def test_failed_kill_does_not_stop_sequence(
        self,
        supervisor: FakeSupervisor,
        runner: FakeRunner,
        host: FakeHost,
        sleep: RecordingSleep,
    ) -> None:
        runner.failing.add("lsof")
        coordinator = _coordinator(supervisor, runner, host, sleep)

        await coordinator.shutdown()

        assert "kill -9 4242 2>/dev/null" in runner.commands
        assert host.calls == ["exit_app"]
