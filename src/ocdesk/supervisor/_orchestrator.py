"""Startup orchestrator: the retrying state machine that brings the backend up.

One run allocates a port, spawns the backend, waits for it to become
ready, validates it, and hands the port to the host view. Any failure
abandons the attempt; attempts are retried with exponential backoff until
the budget is spent, which is the only terminal startup failure.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, final

import anyio

from ocdesk.exceptions import (
    LaunchAttemptError,
    NoPortAvailableError,
    ReadinessTimeoutError,
)

from ._backoff import ExponentialBackoff
from ._models import (
    BackendConfig,
    StartupAttemptRecord,
    StartupFailure,
    StartupState,
)
from ._pipeline import Sleep

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ocdesk.config import ConfigManager

    from ._pipeline import ReadinessPipeline
    from ._protocol import (
        LauncherHost,
        LauncherView,
        PortAllocatorProtocol,
        SupervisorProtocol,
    )

type StateObserver = Callable[[StartupState], None]

DEFAULT_MAX_RETRIES = 3
READY_PAUSE_SECONDS = 0.5


@final
class StartupOrchestrator:
    """Drives allocator, supervisor, and pipeline through one startup.

    The orchestrator is re-entrant: the health monitor and the error
    screen's retry action run it again from CONNECTED or FAILED. Runs are
    serialized; a second caller waits for the first run to finish.
    """

    __slots__ = (
        "_allocator",
        "_backend",
        "_backoff",
        "_config",
        "_host",
        "_lock",
        "_logger",
        "_max_retries",
        "_observers",
        "_pipeline",
        "_ready_pause",
        "_record",
        "_sleep",
        "_state",
        "_supervisor",
        "_view",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        allocator: "PortAllocatorProtocol",
        supervisor: "SupervisorProtocol",
        pipeline: "ReadinessPipeline",
        config: "ConfigManager",
        host: "LauncherHost",
        view: "LauncherView",
        backend: BackendConfig | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff: ExponentialBackoff | None = None,
        ready_pause: float = READY_PAUSE_SECONDS,
        sleep: Sleep = anyio.sleep,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            allocator: Port allocator.
            supervisor: Owner of the backend process.
            pipeline: Readiness and validation pipeline.
            config: Launcher configuration, updated on success.
            host: Host shell, told which URL to load.
            view: Loading and error screens.
            backend: Launch recipe for the backend.
            max_retries: Retries after the first attempt.
            backoff: Delay calculator between attempts.
            ready_pause: Seconds the "ready" step stays visible.
            sleep: Awaitable sleep, replaceable in tests.
            logger: Optional logger.
        """
        self._allocator = allocator
        self._supervisor = supervisor
        self._pipeline = pipeline
        self._config = config
        self._host = host
        self._view = view
        self._backend = backend or BackendConfig()
        self._max_retries = max_retries
        self._backoff = backoff or ExponentialBackoff(base=1.0, multiplier=2.0)
        self._ready_pause = ready_pause
        self._sleep = sleep
        self._logger = logger
        self._state = StartupState.IDLE
        self._record: StartupAttemptRecord | None = None
        self._observers: list[StateObserver] = []
        self._lock = anyio.Lock()

    @property
    def state(self) -> StartupState:
        return self._state

    @property
    def record(self) -> StartupAttemptRecord | None:
        """Attempt record of the latest run."""
        return self._record

    def add_observer(self, observer: StateObserver) -> None:
        """Register a callback invoked on every state transition."""
        self._observers.append(observer)

    def _set_state(self, state: StartupState) -> None:
        previous, self._state = self._state, state
        if self._logger:
            self._logger.debug(
                "startup_state", previous=previous.value, state=state.value
            )
        for observer in tuple(self._observers):
            observer(state)

    def _log(self, record: StartupAttemptRecord, message: str) -> None:
        _ = record.add(message)
        if self._logger:
            self._logger.info("startup_log", message=message, attempt=record.attempts)

    async def run(self) -> int | None:
        """Run the startup state machine to completion.

        Returns:
            The connected port, or None after every attempt failed.
        """
        async with self._lock:
            return await self._run()

    async def _run(self) -> int | None:
        record = StartupAttemptRecord()
        self._record = record
        total = self._max_retries + 1

        await self.retire()

        for attempt in range(total):
            if attempt > 0:
                delay = self._backoff.delay(attempt - 1)
                record.delays.append(delay)
                self._set_state(StartupState.RETRY_WAIT)
                self._log(record, f"Retrying in {delay:g}s...")
                await self._sleep(delay)

            record.attempts = attempt + 1
            self._log(record, f"Starting attempt {attempt + 1}/{total}")
            try:
                port = await self._attempt(record)
            except LaunchAttemptError as e:
                self._log(record, f"Attempt {attempt + 1} failed: {e}")
                if self._logger:
                    self._logger.warning(
                        "startup_attempt_failed",
                        attempt=attempt + 1,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                await self.retire()
                continue

            await self._connect(port, record)
            return port

        self._set_state(StartupState.FAILED)
        failure = StartupFailure(
            title=f"Failed to start {self._backend.name}",
            message=(
                f"{self._backend.name} could not be started after "
                f"{total} attempts. Check the log below for details."
            ),
            attempts=record.attempts,
            log=tuple(record.log),
        )
        if self._logger:
            self._logger.error("startup_failed", attempts=record.attempts)
        await self._view.show_error(failure)
        return None

    async def _attempt(self, record: StartupAttemptRecord) -> int:
        backend = self._backend

        self._set_state(StartupState.FINDING_PORT)
        await self._view.show_step(1, "Finding available port...")
        start = self._config.config.preferred_port
        port = await self._allocator.find_available_port(start, backend.port_range_end)
        if port is None:
            msg = f"No available port in {start}-{backend.port_range_end} or fallback"
            raise NoPortAvailableError(msg, start=start, end=backend.port_range_end)
        self._log(record, f"Using port {port}")

        self._set_state(StartupState.SPAWNING)
        await self._view.show_step(2, f"Starting {backend.name} server...")
        announce = backend.port_env_var is None
        lines = self._supervisor.subscribe_output() if announce else None
        try:
            process = await self._supervisor.spawn(
                backend.command, backend.process_env(port), port=port
            )
            self._supervisor.managed_ports.add(port)
            self._log(record, f"Spawned {backend.name} (pid {process.pid})")

            self._set_state(StartupState.AWAITING_READY)
            await self._view.show_step(3, "Connecting to server...")
            if lines is not None:
                announced = await self._pipeline.await_announced_port(
                    lines, backend.candidate_ports or (port,)
                )
                if announced is None:
                    msg = f"{backend.name} never announced a port"
                    raise ReadinessTimeoutError(
                        msg, port=None, attempts=backend.ready_attempts
                    )
                process.port = port = announced
                self._supervisor.managed_ports.add(port)
                self._log(record, f"{backend.name} announced port {port}")
        finally:
            if lines is not None:
                lines.close()

        if not await self._pipeline.await_ready(port):
            msg = f"Port {port} did not open after {backend.ready_attempts} checks"
            raise ReadinessTimeoutError(msg, port=port, attempts=backend.ready_attempts)
        self._log(record, f"Port {port} is accepting connections")

        self._set_state(StartupState.VALIDATING)
        check = await self._pipeline.validate_version(port)
        if check is None:
            self._log(record, "Warning: could not validate version")
        else:
            self._log(record, f"{backend.name} version: {check.version}")
        self._log(record, "Validating origin...")
        await self._pipeline.validate_origin(port)
        return port

    async def _connect(self, port: int, record: StartupAttemptRecord) -> None:
        await self._view.show_step(4, "Ready!")
        await self._sleep(self._ready_pause)

        _ = self._config.record_port(port)
        self._set_state(StartupState.CONNECTED)
        self._log(record, f"Connected on port {port}")

        await self._host.load_url(self._backend.url(port))
        await self._view.hide_overlay()
        await self._view.apply_zoom(self._config.config.zoom_level)

    async def retire(self) -> None:
        """Terminate, release, and forget the current backend, if any.

        Its port stays in the managed port set for shutdown cleanup.
        """
        current = self._supervisor.current
        if current is None:
            return
        if self._logger:
            self._logger.info("backend_retired", pid=current.pid, port=current.port)
        _ = await self._supervisor.terminate()
        await self._supervisor.release()
        self._supervisor.discard()
