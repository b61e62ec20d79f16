"""Execution utilities for external shell commands.

This module provides a scoped, async command runner used for port probing,
forced termination, and window focusing. The runner never raises: every
outcome, including timeouts and missing executables, is reported through
a CommandResult so callers can treat these operations as best-effort.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import anyio

# Default timeout in milliseconds
DEFAULT_TIMEOUT_MS: int = 10000  # 10 seconds

# Maximum output size in bytes
MAX_OUTPUT_BYTES: int = 102400  # 100KB

# Exit code reported by POSIX shells when the command is not found
_SHELL_NOT_FOUND_EXIT_CODE: int = 127


@dataclass(frozen=True, slots=True)
class CommandConfig:
    """Configuration for command execution.

    Attributes:
        command: Shell command line to execute.
        cwd: Working directory for execution.
        env: Additional environment variables to set.
        timeout_ms: Execution timeout in milliseconds.
    """

    command: str
    cwd: str | Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    timeout_ms: int = DEFAULT_TIMEOUT_MS


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result from command execution.

    Attributes:
        success: Whether the command ran to completion.
        exit_code: Process exit code, or None if execution failed.
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        error: Error message if execution failed (timeout, not found, etc.).
        timed_out: Whether the command timed out.
        command_not_found: Whether the command was not found.
    """

    success: bool
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    error: str | None = None
    timed_out: bool = False
    command_not_found: bool = False


def truncate_output(output: str, max_bytes: int = MAX_OUTPUT_BYTES) -> str:
    """Truncate output to max bytes, preserving valid UTF-8.

    Args:
        output: The string to truncate.
        max_bytes: Maximum size in bytes.

    Returns:
        Truncated string with indicator if truncated.
    """
    if not output:
        return output

    encoded = output.encode("utf-8")
    if len(encoded) <= max_bytes:
        return output

    # Drop incomplete multi-byte sequences at the cut
    truncated = encoded[:max_bytes].decode("utf-8", errors="ignore")
    return truncated + "\n... [output truncated]"


async def run_command(config: CommandConfig) -> CommandResult:
    """Execute a shell command line and capture its output.

    The command is run through the platform shell so that pipelines and
    redirections (``a | b 2>/dev/null || true``) work as written.

    Args:
        config: Command configuration specifying command, env, cwd, timeout.

    Returns:
        CommandResult with execution outcome.
    """
    if not config.command.strip():
        return CommandResult(success=False, error="No command specified")

    env = {**os.environ, **config.env}
    timeout_seconds = config.timeout_ms / 1000.0

    try:
        with anyio.fail_after(timeout_seconds):
            result = await anyio.run_process(
                config.command,
                cwd=config.cwd,
                env=env,
                check=False,
            )
    except TimeoutError:
        return CommandResult(
            success=False,
            error=f"Command timed out after {timeout_seconds}s",
            timed_out=True,
        )
    except FileNotFoundError as e:
        return CommandResult(success=False, error=str(e), command_not_found=True)
    except OSError as e:
        return CommandResult(success=False, error=str(e))

    stdout = truncate_output(result.stdout.decode("utf-8", errors="replace"))
    stderr = truncate_output(result.stderr.decode("utf-8", errors="replace"))

    return CommandResult(
        success=True,
        exit_code=result.returncode,
        stdout=stdout,
        stderr=stderr,
        command_not_found=result.returncode == _SHELL_NOT_FOUND_EXIT_CODE,
    )
