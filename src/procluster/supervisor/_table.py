"""Authoritative slot table for the worker pool.

The table maps live process IDs to the fixed slots of the pool and keeps
the set of processes that receive forwarded signals. Every read-modify-write
sequence takes the same lock, so the signal path, the monitor path and the
launch path never observe a half-updated table.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, final

import anyio

from procluster.exceptions import SlotNotFoundError, SupervisorError

from ._models import WorkerSlot

if TYPE_CHECKING:
    from collections.abc import Sequence


def _get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    import pendulum  # noqa: PLC0415

    return pendulum.now("UTC").to_iso8601_string()


@final
class SlotTable:
    """Pid-to-slot mapping with a fixed set of slots.

    Slots are created once, indexed ``0..len(pidfiles) - 1``, and live as
    long as the table. Each slot is bound to at most one pid at a time.
    """

    __slots__ = ("_by_pid", "_lock", "_signal_targets", "_slots")

    def __init__(self, pidfiles: Sequence[str | Path]) -> None:
        """Initialize the table.

        Args:
            pidfiles: Pidfile path for each slot, in slot order.
        """
        self._slots: tuple[WorkerSlot, ...] = tuple(
            WorkerSlot(index=index, pidfile=Path(pidfile))
            for index, pidfile in enumerate(pidfiles)
        )
        self._by_pid: dict[int, WorkerSlot] = {}
        self._signal_targets: set[int] = set()
        self._lock = anyio.Lock()

    def __len__(self) -> int:
        return len(self._slots)

    @property
    def slots(self) -> tuple[WorkerSlot, ...]:
        """Return all slots in index order."""
        return self._slots

    def slot(self, index: int) -> WorkerSlot:
        """Return the slot at ``index``.

        Raises:
            IndexError: If the index is outside the pool.
        """
        return self._slots[index]

    async def register(self, index: int, pid: int) -> WorkerSlot:
        """Bind a newly launched pid to a slot.

        The pid also becomes a signal target. A slot that was occupied
        before counts the registration as a restart.

        Args:
            index: Slot index.
            pid: Process ID of the new worker.

        Returns:
            The updated slot.

        Raises:
            SupervisorError: If the slot already holds a live pid.
        """
        async with self._lock:
            slot = self._slots[index]
            if slot.pid is not None:
                msg = f"Slot {index} already holds pid {slot.pid}"
                raise SupervisorError(msg)

            if slot.started_at is not None:
                slot.restart_count += 1
            slot.pid = pid
            slot.started_at = _get_timestamp()
            self._by_pid[pid] = slot
            self._signal_targets.add(pid)
            return slot

    async def release(self, pid: int) -> WorkerSlot:
        """Unbind a pid from its slot and from the signal targets.

        Returns:
            The slot the pid was bound to, now with ``pid=None``.

        Raises:
            SlotNotFoundError: If the pid is not in the table.
        """
        async with self._lock:
            slot = self._by_pid.pop(pid, None)
            if slot is None:
                msg = f"No slot is bound to pid {pid}"
                raise SlotNotFoundError(msg, pid=pid)

            slot.pid = None
            self._signal_targets.discard(pid)
            return slot

    async def slot_for(self, pid: int) -> WorkerSlot:
        """Return the slot bound to a pid.

        Raises:
            SlotNotFoundError: If the pid is not in the table.
        """
        async with self._lock:
            slot = self._by_pid.get(pid)
            if slot is None:
                msg = f"No slot is bound to pid {pid}"
                raise SlotNotFoundError(msg, pid=pid)
            return slot

    async def exclude_from_signals(self, pid: int) -> WorkerSlot:
        """Stop forwarding signals to a pid that is being replaced.

        The lookup and the exclusion happen under one lock acquisition, so
        a signal routed concurrently either reaches the pid before this call
        or not at all.

        Returns:
            The slot the pid is bound to.

        Raises:
            SlotNotFoundError: If the pid is not in the table.
        """
        async with self._lock:
            slot = self._by_pid.get(pid)
            if slot is None:
                msg = f"No slot is bound to pid {pid}"
                raise SlotNotFoundError(msg, pid=pid)
            self._signal_targets.discard(pid)
            return slot

    async def vacant(self) -> list[int]:
        """Return the indices of slots without a worker, in index order."""
        async with self._lock:
            return [slot.index for slot in self._slots if slot.pid is None]

    async def live_pids(self) -> frozenset[int]:
        """Return the pids currently bound to a slot."""
        async with self._lock:
            return frozenset(self._by_pid)

    async def signal_targets(self) -> frozenset[int]:
        """Return the pids that receive forwarded signals."""
        async with self._lock:
            return frozenset(self._signal_targets)

    async def occupied(self) -> list[tuple[int, int]]:
        """Return ``(index, pid)`` for every occupied slot, in index order."""
        async with self._lock:
            return [
                (slot.index, slot.pid) for slot in self._slots if slot.pid is not None
            ]
