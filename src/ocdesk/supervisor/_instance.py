"""Single-instance lock shared by all launcher processes of a user.

The lock is a `{pid, timestamp}` record in the state store. A record
younger than the staleness window means another launcher is alive; older
records belong to a crashed launcher and are taken over. The holder
refreshes the timestamp on a heartbeat. Two launchers starting within the
same instant can both win; the cost of that is a second window.
"""

import os
from collections.abc import Callable
from typing import TYPE_CHECKING, final

import anyio
import pendulum
from pydantic import ValidationError

from ._models import InstanceLockRecord
from ._pipeline import Sleep

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ocdesk.utils import StateStore

LOCK_KEY = "instance_lock"
DEFAULT_STALE_AFTER = 10.0
DEFAULT_HEARTBEAT_INTERVAL = 5.0


def _now() -> float:
    return pendulum.now("UTC").timestamp()


@final
class SingleInstanceLock:
    """Check-then-write lock with a staleness window and heartbeat."""

    __slots__ = (
        "_clock",
        "_held",
        "_interval",
        "_logger",
        "_pid",
        "_scope",
        "_sleep",
        "_stale_after",
        "_store",
    )

    def __init__(  # noqa: PLR0913
        self,
        store: "StateStore",
        *,
        pid: int | None = None,
        stale_after: float = DEFAULT_STALE_AFTER,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        clock: Callable[[], float] = _now,
        sleep: Sleep = anyio.sleep,
        logger: "FilteringBoundLogger | None" = None,
    ) -> None:
        self._store = store
        self._pid = pid if pid is not None else os.getpid()
        self._stale_after = stale_after
        self._interval = heartbeat_interval
        self._clock = clock
        self._sleep = sleep
        self._logger = logger
        self._held = False
        self._scope: anyio.CancelScope | None = None

    @property
    def held(self) -> bool:
        return self._held

    def read(self) -> InstanceLockRecord | None:
        """Read the current lock record; unparsable records count as absent."""
        raw = self._store.get(LOCK_KEY)
        if raw is None:
            return None
        if not isinstance(raw, str | bytes):
            return None
        try:
            return InstanceLockRecord.model_validate_json(raw)
        except ValidationError:
            if self._logger:
                self._logger.warning("instance_lock_unreadable")
            return None

    def _write(self) -> None:
        record = InstanceLockRecord(pid=self._pid, timestamp=self._clock())
        self._store.set(LOCK_KEY, record.model_dump_json())

    def acquire(self) -> bool:
        """Take the lock unless another live launcher holds it.

        Returns:
            False if a fresh lock of another process exists.
        """
        record = self.read()
        if record is not None and record.pid != self._pid:
            age = self._clock() - record.timestamp
            if age < self._stale_after:
                if self._logger:
                    self._logger.info(
                        "instance_already_running", pid=record.pid, age=round(age, 3)
                    )
                return False
            if self._logger:
                self._logger.info(
                    "instance_lock_stale", pid=record.pid, age=round(age, 3)
                )

        self._write()
        self._held = True
        if self._logger:
            self._logger.debug("instance_lock_acquired", pid=self._pid)
        return True

    async def heartbeat(self) -> None:
        """Refresh the lock timestamp until stop_heartbeat() or release()."""
        with anyio.CancelScope() as scope:
            self._scope = scope
            while self._held:
                await self._sleep(self._interval)
                if not self._held:
                    break
                self._write()
        self._scope = None

    def stop_heartbeat(self) -> None:
        if self._scope is not None:
            self._scope.cancel()

    def release(self) -> None:
        """Stop the heartbeat and delete the record if it is ours."""
        self.stop_heartbeat()
        if not self._held:
            return
        self._held = False
        record = self.read()
        if record is not None and record.pid == self._pid:
            _ = self._store.delete(LOCK_KEY)
            if self._logger:
                self._logger.debug("instance_lock_released", pid=self._pid)
