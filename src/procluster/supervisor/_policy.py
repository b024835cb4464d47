"""Restart policy for dead and oversized workers.

A dead worker is replaced at once. An oversized worker is still doing work,
so it is asked to stop, given a grace period, terminated, and only then
replaced. Both procedures keep the worker's slot index.
"""

from __future__ import annotations

import os
import signal
from typing import TYPE_CHECKING, final

import anyio

from procluster.exceptions import LaunchError, SlotNotFoundError

from ._signals import deliver_signal

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._models import WorkerSlot
    from ._protocol import Launcher, SignalSender
    from ._state import ClusterState
    from ._table import SlotTable

SOFT_STOP_SIGNAL = signal.SIGUSR1
HARD_STOP_SIGNAL = signal.SIGTERM


@final
class RestartPolicy:
    """Replaces dead and oversized workers in their slots.

    Every procedure is safe to call for a pid that has already been
    released: it logs and returns without touching the table.
    """

    __slots__ = ("_grace_period", "_kill", "_launcher", "_logger", "_state", "_table")

    def __init__(  # noqa: PLR0913
        self,
        table: SlotTable,
        launcher: Launcher,
        state: ClusterState,
        logger: FilteringBoundLogger,
        *,
        grace_period: float = 5.0,
        kill: SignalSender = os.kill,
    ) -> None:
        """Initialize the restart policy.

        Args:
            table: The supervisor's slot table.
            launcher: Starts replacement workers.
            state: Shared lifecycle state.
            logger: Logger for restart events.
            grace_period: Seconds between soft-stop and terminate.
            kill: Signal sender, ``os.kill`` by default.
        """
        self._table = table
        self._launcher = launcher
        self._state = state
        self._logger = logger
        self._grace_period = grace_period
        self._kill = kill

    @property
    def grace_period(self) -> float:
        """Return the seconds an oversized worker gets to stop on its own."""
        return self._grace_period

    async def replace_dead(self, pid: int) -> int | None:
        """Replace a worker that is no longer running.

        Args:
            pid: Process ID of the dead worker.

        Returns:
            The pid of the replacement, or None if nothing was launched.
        """
        try:
            slot = await self._table.release(pid)
        except SlotNotFoundError:
            self._logger.debug("dead worker already released", pid=pid)
            return None

        self._logger.info(
            "worker died, restarting",
            index=slot.index,
            pid=pid,
            started_at=slot.started_at,
        )
        self._remove_pidfile(slot)
        return await self._respawn(slot, pid)

    async def replace_oversized(self, pid: int) -> int | None:
        """Stop an oversized worker gracefully and replace it.

        The worker stops receiving forwarded signals first, so a shutdown
        arriving during the grace period does not signal it twice.

        Args:
            pid: Process ID of the oversized worker.

        Returns:
            The pid of the replacement, or None if nothing was launched.
        """
        try:
            slot = await self._table.exclude_from_signals(pid)
        except SlotNotFoundError:
            self._logger.debug("oversized worker already released", pid=pid)
            return None

        _ = deliver_signal(self._kill, pid, SOFT_STOP_SIGNAL, self._logger)
        await anyio.sleep(self._grace_period)
        # No reaping beyond this; a worker that ignores SIGTERM lingers.
        _ = deliver_signal(self._kill, pid, HARD_STOP_SIGNAL, self._logger)

        try:
            slot = await self._table.release(pid)
        except SlotNotFoundError:
            self._logger.debug("oversized worker already released", pid=pid)
            return None

        return await self._respawn(slot, pid)

    async def fill_vacant(self) -> list[int]:
        """Launch a worker into every slot left empty by a failed replacement.

        Returns:
            The pids of the workers launched.
        """
        if not self._state.auto_respawn:
            return []

        launched: list[int] = []
        for index in await self._table.vacant():
            self._logger.info("retrying empty slot", index=index)
            new_pid = await self._respawn(self._table.slot(index), None)
            if new_pid is not None:
                launched.append(new_pid)
        return launched

    async def _respawn(self, slot: WorkerSlot, old_pid: int | None) -> int | None:
        if not self._state.auto_respawn:
            self._logger.info(
                "shutting down, not replacing worker",
                index=slot.index,
                pid=old_pid,
            )
            return None

        try:
            new_pid = await self._launcher.launch(slot.index)
        except LaunchError as e:
            self._logger.error(
                f"Failed to replace worker {slot.index}: {e}",
                index=slot.index,
                pid=old_pid,
            )
            return None

        _ = await self._table.register(slot.index, new_pid)
        self._logger.info(
            "replaced lost pid",
            index=slot.index,
            old_pid=old_pid,
            new_pid=new_pid,
        )

        # Shutdown may have started while the replacement was launching.
        if self._state.shutting_down:
            _ = deliver_signal(self._kill, new_pid, HARD_STOP_SIGNAL, self._logger)

        return new_pid

    def _remove_pidfile(self, slot: WorkerSlot) -> None:
        try:
            slot.pidfile.unlink(missing_ok=True)
        except OSError as e:
            self._logger.error(
                f"Failed to remove pidfile {slot.pidfile}: {e}",
                index=slot.index,
            )
