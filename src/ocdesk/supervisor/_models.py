"""Data models for the backend supervisor.

This module defines the core data types for supervising the local backend:
- StartupState: States of the startup state machine
- SupervisedProcess: Mutable record of the single backend instance
- ManagedPortSet: Every port this launcher has bound
- StartupAttemptRecord: Attempt log of one startup run
- StartupFailure: Terminal failure report surfaced to the view
- VersionCheck: Advisory result of the version check
- BackendConfig: The launch recipe for the backend
- InstanceLockRecord: Persisted single-instance lock
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import final

import pendulum
from pydantic import BaseModel

DEFAULT_BACKEND_NAME = "openchamber"
DEFAULT_PORT_RANGE_END = 1550
DEFAULT_MIN_VERSION = "1.0.0"


class StartupState(StrEnum):
    """Startup state machine states.

    The happy path runs IDLE -> FINDING_PORT -> SPAWNING -> AWAITING_READY
    -> VALIDATING -> CONNECTED. RETRY_WAIT is entered between attempts and
    FAILED once every attempt has been used up.
    """

    IDLE = "idle"
    FINDING_PORT = "finding_port"
    SPAWNING = "spawning"
    AWAITING_READY = "awaiting_ready"
    VALIDATING = "validating"
    CONNECTED = "connected"
    RETRY_WAIT = "retry_wait"
    FAILED = "failed"


@dataclass(slots=True)
class SupervisedProcess:
    """Mutable record of the backend instance owned by this launcher.

    Attributes:
        process_id: Opaque handle id assigned at spawn.
        port: Port the backend was told to bind.
        pid: OS process id, if the platform reported one.
        spawned_at: ISO 8601 timestamp of the spawn.
        terminating: Set once termination has been requested.
        exit_code: Exit code, once the process has been reaped.
    """

    process_id: int
    port: int
    pid: int | None = None
    spawned_at: str = field(
        default_factory=lambda: pendulum.now("UTC").to_iso8601_string()
    )
    terminating: bool = False
    exit_code: int | None = None


@final
class ManagedPortSet:
    """Insertion-ordered, append-only set of ports bound by this launcher.

    Only the shutdown sequence consumes it, so that listeners left behind by
    earlier failed attempts are cleaned up as well.
    """

    __slots__ = ("_ports",)

    def __init__(self, ports: tuple[int, ...] = ()) -> None:
        self._ports: dict[int, None] = dict.fromkeys(ports)

    def add(self, port: int) -> None:
        self._ports.setdefault(port, None)

    def __contains__(self, port: object) -> bool:
        return port in self._ports

    def __iter__(self) -> Iterator[int]:
        return iter(tuple(self._ports))

    def __len__(self) -> int:
        return len(self._ports)

    def __repr__(self) -> str:
        return f"ManagedPortSet({tuple(self._ports)!r})"


@dataclass(slots=True)
class StartupAttemptRecord:
    """Attempt log of a single startup run.

    Attributes:
        attempts: Number of attempts started so far.
        delays: Backoff delays applied before attempts 2 and later.
        log: Timestamped log lines in the order they happened.
    """

    attempts: int = 0
    delays: list[float] = field(default_factory=list)
    log: list[str] = field(default_factory=list)

    def add(self, message: str) -> str:
        """Append a `[HH:MM:SS] message` line and return it."""
        line = f"[{pendulum.now().format('HH:mm:ss')}] {message}"
        self.log.append(line)
        return line

    @property
    def text(self) -> str:
        return "\n".join(self.log)


@dataclass(frozen=True, slots=True)
class StartupFailure:
    """Terminal startup failure report.

    Attributes:
        title: Short headline for the error screen.
        message: Human-readable explanation.
        attempts: Number of attempts made.
        log: Full attempt log.
    """

    title: str
    message: str
    attempts: int
    log: tuple[str, ...] = ()

    @property
    def details(self) -> str:
        return "\n".join(self.log)


@dataclass(frozen=True, slots=True)
class VersionCheck:
    """Outcome of comparing the backend version against the supported floor."""

    version: str
    minimum: str
    compatible: bool


@dataclass(frozen=True, slots=True)
class BackendConfig:
    """Launch recipe for the backend process.

    Attributes:
        name: Backend name, used in logs and messages.
        command: Command and arguments to execute.
        env: Extra environment variables for the process.
        port_env_var: Variable used to tell the backend which port to bind.
            None means the backend picks its own port and announces it.
        candidate_ports: Ports an announcing backend may choose from.
        port_range_end: Last port of the preferred search range.
        min_version: Oldest backend version known to work.
        marker: Case-insensitive string identifying the backend.
        identity_header: Response header identifying the backend.
        host: Host the backend listens on.
        root_path: Path fetched for origin validation.
        version_path: Path reporting `{"version": "x.y.z"}`.
        health_path: Path answering 2xx while healthy.
        ready_attempts: Readiness probes per attempt.
        ready_interval: Seconds between readiness probes.
        request_timeout: Seconds allowed for validation requests.
    """

    name: str = DEFAULT_BACKEND_NAME
    command: tuple[str, ...] = (DEFAULT_BACKEND_NAME,)
    env: dict[str, str] = field(default_factory=dict)
    port_env_var: str | None = "PORT"
    candidate_ports: tuple[int, ...] = ()
    port_range_end: int = DEFAULT_PORT_RANGE_END
    min_version: str = DEFAULT_MIN_VERSION
    marker: str = DEFAULT_BACKEND_NAME
    identity_header: str = "X-OpenChamber"
    host: str = "localhost"
    root_path: str = "/"
    version_path: str = "/api/version"
    health_path: str = "/api/health"
    ready_attempts: int = 60
    ready_interval: float = 0.5
    request_timeout: float = 5.0

    def url(self, port: int, path: str = "") -> str:
        """Build a URL for the backend listening on `port`."""
        return f"http://{self.host}:{port}{path}"

    def process_env(self, port: int) -> dict[str, str]:
        """Environment injected into the spawned backend."""
        env = dict(self.env)
        if self.port_env_var is not None:
            env[self.port_env_var] = str(port)
        return env


class InstanceLockRecord(BaseModel):
    """Single-instance lock persisted in the state store.

    Attributes:
        pid: Process id of the launcher holding the lock.
        timestamp: Unix timestamp (seconds) of the last heartbeat.
    """

    pid: int
    timestamp: float
