"""Shared test fixtures for ocdesk tests."""

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

import anyio
import anyio.lowlevel
import httpx
import pytest
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from rich.console import Console

from ocdesk.config import ConfigManager
from ocdesk.exceptions import SpawnError
from ocdesk.supervisor import (
    BackendConfig,
    ManagedPortSet,
    PortAllocator,
    PosixCommands,
    ReadinessPipeline,
    StartupFailure,
    StartupOrchestrator,
    SupervisedProcess,
)
from ocdesk.utils import CommandConfig, CommandResult, MockStateStore

_PROBED_PORT = re.compile(r'":(\d+)')


@pytest.fixture
def console() -> Console:
    return Console(
        width=70,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ---------------------------------------------------------------------------
# Fakes for the OS, host shell, view, and process supervisor
# ---------------------------------------------------------------------------


@dataclass
class FakeRunner:
    """Command runner that answers port probes from a set of listening ports.

    Attributes:
        listening: Ports reported as listening by probe commands.
        outputs: Substring -> stdout for non-probe commands.
        failing: Substrings of commands that fail with an error.
        commands: Every command line run, in order.
    """

    listening: set[int] = field(default_factory=set)
    outputs: dict[str, str] = field(default_factory=dict)
    failing: set[str] = field(default_factory=set)
    commands: list[str] = field(default_factory=list)

    async def __call__(self, config: CommandConfig) -> CommandResult:
        command = config.command
        self.commands.append(command)

        if any(needle in command for needle in self.failing):
            return CommandResult(success=False, error="simulated failure")

        for needle, stdout in self.outputs.items():
            if needle in command:
                return CommandResult(success=True, exit_code=0, stdout=stdout)

        match = _PROBED_PORT.search(command)
        if match is not None:
            port = int(match.group(1))
            if port in self.listening:
                return CommandResult(
                    success=True,
                    exit_code=0,
                    stdout=f"LISTEN 0 4096 0.0.0.0:{port} 0.0.0.0:*\n",
                )
            return CommandResult(success=True, exit_code=1)

        return CommandResult(success=True, exit_code=0)

    def probes(self) -> list[int]:
        """Ports probed so far, in order."""
        return [
            int(m.group(1))
            for c in self.commands
            if (m := _PROBED_PORT.search(c)) is not None
        ]


@dataclass
class FakeHost:
    size: tuple[int, int] | None = None
    urls: list[str] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    fail_exit: bool = False

    async def show(self) -> None:
        self.calls.append("show")

    async def focus(self) -> None:
        self.calls.append("focus")

    async def get_size(self) -> tuple[int, int] | None:
        return self.size

    async def set_size(self, width: int, height: int) -> None:
        self.calls.append("set_size")
        self.size = (width, height)

    async def toggle_fullscreen(self) -> None:
        self.calls.append("toggle_fullscreen")

    async def load_url(self, url: str) -> None:
        self.urls.append(url)

    async def exit_app(self) -> None:
        self.calls.append("exit_app")
        if self.fail_exit:
            msg = "host exit failed"
            raise RuntimeError(msg)

    async def close_window(self) -> None:
        self.calls.append("close_window")


@dataclass
class FakeView:
    steps: list[tuple[int, str]] = field(default_factory=list)
    overlays: list[str] = field(default_factory=list)
    overlay_hidden: int = 0
    errors: list[StartupFailure] = field(default_factory=list)
    advisories: list[str] = field(default_factory=list)
    zooms: list[float] = field(default_factory=list)

    async def show_step(self, step: int, message: str) -> None:
        self.steps.append((step, message))

    async def show_overlay(self, message: str) -> None:
        self.overlays.append(message)

    async def hide_overlay(self) -> None:
        self.overlay_hidden += 1

    async def show_error(self, failure: StartupFailure) -> None:
        self.errors.append(failure)

    async def show_advisory(self, message: str) -> None:
        self.advisories.append(message)

    async def apply_zoom(self, level: float) -> None:
        self.zooms.append(level)


class FakeSupervisor:
    """In-memory supervisor; spawning binds the port in the fake runner.

    Attributes:
        listening: Shared with FakeRunner; spawned backends bind here.
        bind_on_spawn: Whether a spawned backend starts listening.
        announce: Line sent to output subscribers on spawn, if any.
        announce_port: Port bound instead of the assigned one when announcing.
        spawn_error: Raised by spawn() when set.
    """

    def __init__(
        self,
        listening: set[int] | None = None,
        *,
        bind_on_spawn: bool = True,
        announce: str | None = None,
        announce_port: int | None = None,
    ) -> None:
        self.listening = listening if listening is not None else set()
        self.bind_on_spawn = bind_on_spawn
        self.announce = announce
        self.announce_port = announce_port
        self.spawn_error: SpawnError | None = None
        self.spawned: list[SupervisedProcess] = []
        self.envs: list[dict[str, str]] = []
        self.calls: list[str] = []
        self._current: SupervisedProcess | None = None
        self._managed_ports = ManagedPortSet()
        self._subscribers: list[MemoryObjectSendStream[str]] = []

    @property
    def current(self) -> SupervisedProcess | None:
        return self._current

    @property
    def managed_ports(self) -> ManagedPortSet:
        return self._managed_ports

    def subscribe_output(self) -> MemoryObjectReceiveStream[str]:
        send, receive = anyio.create_memory_object_stream[str](16)
        self._subscribers.append(send)
        return receive

    async def spawn(
        self, command: Sequence[str], env: Mapping[str, str], *, port: int
    ) -> SupervisedProcess:
        self.calls.append("spawn")
        if self.spawn_error is not None:
            raise self.spawn_error
        n = len(self.spawned) + 1
        record = SupervisedProcess(process_id=n, port=port, pid=4000 + n)
        self.spawned.append(record)
        self.envs.append(dict(env))
        self._current = record

        bound = self.announce_port if self.announce_port is not None else port
        if self.bind_on_spawn:
            self.listening.add(bound)
        if self.announce is not None:
            for subscriber in tuple(self._subscribers):
                try:
                    subscriber.send_nowait(self.announce)
                except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                    self._subscribers.remove(subscriber)
        return record

    async def terminate(self, sig: int = 15) -> bool:
        self.calls.append(f"terminate:{sig}")
        if self._current is None:
            return False
        self._current.terminating = True
        return True

    async def release(self) -> None:
        self.calls.append("release")

    def discard(self) -> None:
        self.calls.append("discard")
        self._current = None


@dataclass
class RecordingSleep:
    """Awaitable sleep that records delays instead of waiting."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await anyio.lowlevel.checkpoint()


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def view() -> FakeView:
    return FakeView()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

type Handler = Callable[[httpx.Request], httpx.Response]


def backend_handler(
    *,
    version: str = "1.2.0",
    impostor_ports: Sequence[int] = (),
    healthy: bool = True,
) -> Handler:
    """Build a MockTransport handler imitating the backend.

    Ports listed in `impostor_ports` answer like an unrelated web server.
    """

    def handle(request: httpx.Request) -> httpx.Response:
        port = request.url.port
        if port in impostor_ports:
            return httpx.Response(200, text="<h1>It works!</h1>")
        if request.url.path == "/api/version":
            return httpx.Response(200, json={"version": version})
        if request.url.path == "/api/health":
            return httpx.Response(200 if healthy else 503, json={"status": "ok"})
        return httpx.Response(
            200,
            headers={"X-OpenChamber": version},
            text="<title>OpenChamber</title>",
        )

    return handle


def mock_client(handler: Handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Startup harness
# ---------------------------------------------------------------------------


@dataclass
class StartupHarness:
    """The real allocator, pipeline, and orchestrator over fakes."""

    runner: FakeRunner
    supervisor: FakeSupervisor
    host: FakeHost
    view: FakeView
    sleep: RecordingSleep
    store: MockStateStore
    config: ConfigManager
    allocator: PortAllocator
    pipeline: ReadinessPipeline
    orchestrator: StartupOrchestrator
    client: httpx.AsyncClient


type HarnessFactory = Callable[..., StartupHarness]


@pytest.fixture
def startup_harness(
    runner: FakeRunner, host: FakeHost, view: FakeView, sleep: RecordingSleep
) -> HarnessFactory:
    def _build(
        *,
        handler: Handler | None = None,
        client: httpx.AsyncClient | None = None,
        backend: BackendConfig | None = None,
        supervisor: FakeSupervisor | None = None,
        max_retries: int = 3,
    ) -> StartupHarness:
        backend = backend or BackendConfig(ready_attempts=3)
        supervisor = supervisor or FakeSupervisor(runner.listening)
        supervisor.listening = runner.listening
        store = MockStateStore()
        config = ConfigManager(store)
        _ = config.load()
        client = client or mock_client(handler or backend_handler())
        allocator = PortAllocator(PosixCommands(), runner=runner)
        pipeline = ReadinessPipeline(
            allocator, backend, client=client, view=view, sleep=sleep
        )
        orchestrator = StartupOrchestrator(
            allocator=allocator,
            supervisor=supervisor,
            pipeline=pipeline,
            config=config,
            host=host,
            view=view,
            backend=backend,
            max_retries=max_retries,
            sleep=sleep,
        )
        return StartupHarness(
            runner=runner,
            supervisor=supervisor,
            host=host,
            view=view,
            sleep=sleep,
            store=store,
            config=config,
            allocator=allocator,
            pipeline=pipeline,
            orchestrator=orchestrator,
            client=client,
        )

    return _build
