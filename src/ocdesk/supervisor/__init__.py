"""Supervisor package for the local backend.

This package allocates a port, spawns and validates the backend process,
monitors its health, reconnects on failure, and shuts everything down in
order.

Key Components:
    - PlatformCommands: POSIX and Windows shell commands
    - PortAllocator: Port probing, search, and forced cleanup
    - ProcessSupervisor: Owner of the single backend process
    - ReadinessPipeline: Readiness polling, version and origin checks
    - StartupOrchestrator: Retrying startup state machine
    - HealthMonitor: Periodic health checks and reconnects
    - ShutdownCoordinator: Ordered best-effort teardown
    - SingleInstanceLock: One launcher per user

Example:
    >>> allocator = PortAllocator()
    >>> port = await allocator.find_available_port(1504, 1550)
"""

from ._backoff import ExponentialBackoff
from ._health import HealthMonitor
from ._instance import LOCK_KEY, SingleInstanceLock
from ._models import (
    DEFAULT_BACKEND_NAME,
    DEFAULT_MIN_VERSION,
    DEFAULT_PORT_RANGE_END,
    BackendConfig,
    InstanceLockRecord,
    ManagedPortSet,
    StartupAttemptRecord,
    StartupFailure,
    StartupState,
    SupervisedProcess,
    VersionCheck,
)
from ._orchestrator import StartupOrchestrator
from ._output import ConsoleOutputSink
from ._pipeline import ReadinessPipeline, compare_versions, parse_announced_port
from ._platform import (
    PlatformCommands,
    PosixCommands,
    WindowsCommands,
    get_platform_commands,
    parse_listening_pids,
    probe_reports_listening,
)
from ._ports import PortAllocator
from ._process import ProcessSupervisor
from ._protocol import (
    LauncherHost,
    LauncherView,
    OutputSink,
    PortAllocatorProtocol,
    SupervisorProtocol,
)
from ._shutdown import ShutdownCoordinator

__all__ = [
    "DEFAULT_BACKEND_NAME",
    "DEFAULT_MIN_VERSION",
    "DEFAULT_PORT_RANGE_END",
    "LOCK_KEY",
    "BackendConfig",
    "ConsoleOutputSink",
    "ExponentialBackoff",
    "HealthMonitor",
    "InstanceLockRecord",
    "LauncherHost",
    "LauncherView",
    "ManagedPortSet",
    "OutputSink",
    "PlatformCommands",
    "PortAllocator",
    "PortAllocatorProtocol",
    "PosixCommands",
    "ProcessSupervisor",
    "ReadinessPipeline",
    "ShutdownCoordinator",
    "SingleInstanceLock",
    "StartupAttemptRecord",
    "StartupFailure",
    "StartupOrchestrator",
    "StartupState",
    "SupervisedProcess",
    "SupervisorProtocol",
    "VersionCheck",
    "WindowsCommands",
    "compare_versions",
    "get_platform_commands",
    "parse_announced_port",
    "parse_listening_pids",
    "probe_reports_listening",
]
