"""Process supervisor for the single backend instance.

This module provides the ProcessSupervisor class that spawns the backend,
pumps its output to a sink and to line subscribers, and signals it on
request.
"""

import itertools
import os
import signal
import subprocess
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Literal, final

import anyio
import anyio.abc
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from anyio.streams.text import TextReceiveStream

from ocdesk.exceptions import SpawnError

from ._models import DEFAULT_BACKEND_NAME, ManagedPortSet, SupervisedProcess

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._protocol import OutputSink

OUTPUT_BUFFER_SIZE = 256

_process_ids = itertools.count(1)


@final
class ProcessSupervisor:
    """Owns the single supervised backend process.

    Spawning records the handle and pid immediately. Output is pumped only
    when a task group has been bound with bind(); otherwise the backend's
    output is discarded. Terminating is fire-and-forget: the signal is sent
    through the handle and nobody waits for the exit.

    Attributes:
        name: Backend name used as the output source.
    """

    __slots__ = (
        "_current",
        "_logger",
        "_managed_ports",
        "_open_process",
        "_output_sink",
        "_process",
        "_pump_scope",
        "_subscribers",
        "_task_group",
        "name",
    )

    def __init__(
        self,
        *,
        name: str = DEFAULT_BACKEND_NAME,
        managed_ports: ManagedPortSet | None = None,
        output_sink: "OutputSink | None" = None,
        logger: "FilteringBoundLogger | None" = None,
        open_process: Callable[..., Any] = anyio.open_process,
    ) -> None:
        """Initialize the supervisor.

        Args:
            name: Backend name used as the output source.
            managed_ports: Shared record of every port bound by this launcher.
            output_sink: Sink receiving every output line.
            logger: Optional logger.
            open_process: Process factory, `anyio.open_process` by default.
        """
        self.name = name
        self._managed_ports = (
            managed_ports if managed_ports is not None else ManagedPortSet()
        )
        self._output_sink = output_sink
        self._logger = logger
        self._open_process = open_process
        self._current: SupervisedProcess | None = None
        self._process: anyio.abc.Process | None = None
        self._pump_scope: anyio.CancelScope | None = None
        self._subscribers: list[MemoryObjectSendStream[str]] = []
        self._task_group: anyio.abc.TaskGroup | None = None

    @property
    def current(self) -> SupervisedProcess | None:
        """Return the active supervised process, if any."""
        return self._current

    @property
    def managed_ports(self) -> ManagedPortSet:
        return self._managed_ports

    def bind(self, task_group: anyio.abc.TaskGroup) -> None:
        """Bind the task group that output pumping runs in."""
        self._task_group = task_group

    def subscribe_output(self) -> MemoryObjectReceiveStream[str]:
        """Subscribe to output lines of the current and future processes.

        Closing the returned stream unsubscribes. Lines are dropped for a
        subscriber whose buffer is full.
        """
        send, receive = anyio.create_memory_object_stream[str](OUTPUT_BUFFER_SIZE)
        self._subscribers.append(send)
        return receive

    async def spawn(
        self, command: Sequence[str], env: Mapping[str, str], *, port: int
    ) -> SupervisedProcess:
        """Spawn the backend process.

        Args:
            command: Command and arguments to execute.
            env: Environment variables merged over the current environment.
            port: Port the backend was told to bind.

        Returns:
            The new supervised process record.

        Raises:
            SpawnError: If the OS cannot create the process.
        """
        if not command:
            msg = "Cannot spawn backend: empty command"
            raise SpawnError(msg, command=command)

        pump = self._task_group is not None
        stdio = subprocess.PIPE if pump else subprocess.DEVNULL
        try:
            process: anyio.abc.Process = await self._open_process(
                list(command),
                env={**os.environ, **env},
                stdin=subprocess.DEVNULL,
                stdout=stdio,
                stderr=stdio,
            )
        except OSError as e:
            if self._logger:
                self._logger.error(
                    "spawn_failed", command=list(command), port=port, error=str(e)
                )
            msg = f"Failed to start {self.name} ({command[0]}): {e}"
            raise SpawnError(msg, command=command, cause=e) from e

        record = SupervisedProcess(
            process_id=next(_process_ids), port=port, pid=process.pid
        )
        self._process = process
        self._current = record

        if self._logger:
            self._logger.info(
                "backend_spawned",
                process_id=record.process_id,
                pid=record.pid,
                port=port,
            )

        if self._task_group is not None:
            scope = anyio.CancelScope()
            self._pump_scope = scope
            self._task_group.start_soon(self._pump, process, record, scope)

        return record

    async def terminate(self, sig: int = signal.SIGTERM) -> bool:
        """Send a signal to the current process without waiting for exit.

        Returns:
            True if the signal was delivered to the OS.
        """
        if self._current is not None:
            self._current.terminating = True

        process = self._process
        if process is None or process.returncode is not None:
            return False

        try:
            process.send_signal(sig)
        except (ProcessLookupError, OSError) as e:
            if self._logger:
                self._logger.warning(
                    "terminate_failed", pid=process.pid, signal=int(sig), error=str(e)
                )
            return False

        if self._logger:
            self._logger.info("terminate_requested", pid=process.pid, signal=int(sig))
        return True

    async def release(self) -> None:
        """Stop pumping output and drop the process handle.

        The supervised record, including its pid, is kept until discard().
        """
        if self._pump_scope is not None:
            self._pump_scope.cancel()
            self._pump_scope = None
        self._process = None

    def discard(self) -> None:
        """Forget the current supervised process."""
        if self._logger and self._current is not None:
            self._logger.debug("backend_discarded", process_id=self._current.process_id)
        self._current = None

    async def _pump(
        self,
        process: anyio.abc.Process,
        record: SupervisedProcess,
        scope: anyio.CancelScope,
    ) -> None:
        with scope:
            async with anyio.create_task_group() as tg:
                if process.stdout is not None:
                    tg.start_soon(self._stream_output, process.stdout, record, "stdout")
                if process.stderr is not None:
                    tg.start_soon(self._stream_output, process.stderr, record, "stderr")
                record.exit_code = await process.wait()

            if self._logger:
                self._logger.info(
                    "backend_exited",
                    process_id=record.process_id,
                    pid=record.pid,
                    exit_code=record.exit_code,
                    requested=record.terminating,
                )

    async def _stream_output(
        self,
        stream: anyio.abc.ByteReceiveStream,
        record: SupervisedProcess,
        stream_name: Literal["stdout", "stderr"],
    ) -> None:
        pending = ""
        try:
            async for chunk in TextReceiveStream(stream, errors="replace"):
                pending += chunk
                *lines, pending = pending.split("\n")
                for raw_line in lines:
                    await self._dispatch(record, stream_name, raw_line.rstrip("\r"))
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            # Stream closed, which is expected on process exit
            pass
        if pending:
            await self._dispatch(record, stream_name, pending.rstrip("\r"))

    async def _dispatch(
        self,
        record: SupervisedProcess,
        stream_name: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        if self._logger:
            self._logger.debug("backend_output", stream=stream_name, line=line)

        for subscriber in tuple(self._subscribers):
            try:
                subscriber.send_nowait(line)
            except anyio.WouldBlock:
                continue
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                self._subscribers.remove(subscriber)

        if self._output_sink is not None:
            try:  # noqa: SIM105
                await self._output_sink.write_line(
                    self.name, record.pid, stream_name, line
                )
            except Exception:  # noqa: BLE001, S110
                # Output sink errors should not stop the pump
                pass
