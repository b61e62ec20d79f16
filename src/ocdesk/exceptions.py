"""ocdesk exceptions."""

from collections.abc import Sequence


class OcdeskError(Exception):
    """Base exception for ocdesk errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(OcdeskError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a persisted configuration record cannot be decoded.

    Attributes:
        key: The storage key the record was read from.
        cause: The underlying decode or validation error.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and storage context."""
        super().__init__(message)
        self.key: str = key
        self.cause: Exception | None = cause


# =============================================================================
# Launcher Exceptions
# =============================================================================


class LauncherError(OcdeskError):
    """Base exception for launcher errors."""


class LaunchAttemptError(LauncherError):
    """Base exception for failures that abandon a single startup attempt.

    Every subclass is retryable: the startup orchestrator catches it,
    records it in the attempt log, and schedules the next attempt.
    """


class NoPortAvailableError(LaunchAttemptError):
    """Raised when neither the preferred nor the fallback range has a free port.

    Attributes:
        start: First port of the preferred range.
        end: Last port of the preferred range.
    """

    def __init__(self, message: str, *, start: int, end: int) -> None:
        """Initialize with error message and the searched range.

        Args:
            message: Human-readable error message.
            start: First port of the preferred range.
            end: Last port of the preferred range.
        """
        super().__init__(message)
        self.start: int = start
        self.end: int = end


class SpawnError(LaunchAttemptError):
    """Raised when the backend process cannot be created.

    Attributes:
        command: The command that failed to start.
        cause: The underlying OS error.
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and spawn context.

        Args:
            message: Human-readable error message.
            command: The command that failed to start.
            cause: The underlying OS error.
        """
        super().__init__(message)
        self.command: tuple[str, ...] = tuple(command) if command else ()
        self.cause: Exception | None = cause


class ReadinessTimeoutError(LaunchAttemptError):
    """Raised when the backend port never opened within the poll budget.

    Attributes:
        port: The port that was polled.
        attempts: Number of probes performed.
    """

    def __init__(self, message: str, *, port: int | None, attempts: int) -> None:
        """Initialize with error message and polling context.

        Args:
            message: Human-readable error message.
            port: The port that was polled, or None if it was never resolved.
            attempts: Number of probes performed.
        """
        super().__init__(message)
        self.port: int | None = port
        self.attempts: int = attempts


class OriginMismatchError(LaunchAttemptError):
    """Raised when the service on a port does not look like the backend.

    Attributes:
        port: The port whose root resource was inspected.
        cause: The network error, if the root resource could not be fetched.
    """

    def __init__(
        self,
        message: str,
        *,
        port: int,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and origin context.

        Args:
            message: Human-readable error message.
            port: The port whose root resource was inspected.
            cause: The network error, if any.
        """
        super().__init__(message)
        self.port: int = port
        self.cause: Exception | None = cause
