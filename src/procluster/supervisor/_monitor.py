"""Periodic memory monitor for the worker pool.

This module provides the MemoryMonitor class that samples every live
worker's share of system memory, classifies it against the per-worker
budget, and hands dead and oversized workers to the RestartPolicy.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, final

import anyio
import anyio.to_thread

from procluster.exceptions import SamplingError

from ._models import MemoryClass, MemorySample

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from structlog.typing import FilteringBoundLogger

    from ._policy import RestartPolicy
    from ._protocol import MemoryProbe
    from ._state import ClusterState
    from ._table import SlotTable


def classify(usage: float, budget: float) -> MemoryClass:
    """Classify a memory sample against the per-worker budget.

    Zero usage means the process is gone, not that it allocates nothing,
    so it is checked before the budget.

    Args:
        usage: Percent of system RAM used by the worker.
        budget: Percent of system RAM each worker may use.

    Returns:
        DEAD, OVERSIZED or HEALTHY.
    """
    if usage == 0.0:
        return MemoryClass.DEAD
    if usage > budget:
        return MemoryClass.OVERSIZED
    return MemoryClass.HEALTHY


@final
class MemoryMonitor:
    """Samples worker memory on a fixed interval.

    Each round takes a fresh snapshot of the occupied slots, samples all of
    them against the same budget, and then runs the resulting restarts
    concurrently so a graceful replacement does not hold up the others.
    """

    __slots__ = (
        "_budget",
        "_clock",
        "_interval",
        "_last_summary",
        "_logger",
        "_policy",
        "_probe",
        "_state",
        "_summary_interval",
        "_table",
    )

    def __init__(  # noqa: PLR0913
        self,
        table: SlotTable,
        probe: MemoryProbe,
        policy: RestartPolicy,
        state: ClusterState,
        logger: FilteringBoundLogger,
        *,
        budget: float,
        interval: float = 10.0,
        summary_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the monitor.

        Args:
            table: The supervisor's slot table.
            probe: Memory query used for every sample.
            policy: Restart policy for dead and oversized workers.
            state: Shared lifecycle state.
            logger: Logger for monitoring events.
            budget: Percent of system RAM each worker may use.
            interval: Seconds between rounds.
            summary_interval: Minimum seconds between summary log lines.
            clock: Monotonic clock used to throttle the summary.
        """
        self._table = table
        self._probe = probe
        self._policy = policy
        self._state = state
        self._logger = logger
        self._budget = budget
        self._interval = interval
        self._summary_interval = summary_interval
        self._clock = clock
        self._last_summary: float | None = None

    @property
    def budget(self) -> float:
        """Return the per-worker memory budget in percent."""
        return self._budget

    async def sample(self, workers: Sequence[tuple[int, int]]) -> list[MemorySample]:
        """Sample and classify a set of workers.

        Args:
            workers: ``(slot index, pid)`` pairs to sample.

        Returns:
            One sample per worker, in the given order.
        """
        samples: list[MemorySample] = []
        for index, pid in workers:
            try:
                usage = await anyio.to_thread.run_sync(self._probe.memory_percent, pid)
            except SamplingError as e:
                samples.append(
                    MemorySample(
                        index=index,
                        pid=pid,
                        usage=None,
                        classification=MemoryClass.SKIPPED,
                        error=str(e),
                    )
                )
                continue

            samples.append(
                MemorySample(
                    index=index,
                    pid=pid,
                    usage=usage,
                    classification=classify(usage, self._budget),
                )
            )
        return samples

    async def check(self) -> list[MemorySample]:
        """Run one monitoring round.

        Slots left empty by a failed replacement are refilled first, before
        this round's restarts can empty any others.

        Returns:
            The samples taken in this round.
        """
        _ = await self._policy.fill_vacant()
        samples = await self.sample(await self._table.occupied())

        if self._summary_due():
            for sample in samples:
                self._logger.info(
                    "worker memory",
                    index=sample.index,
                    pid=sample.pid,
                    memory_pct=_rounded(sample.usage),
                )

        for sample in samples:
            self._log_sample(sample)

        async with anyio.create_task_group() as tg:
            for sample in samples:
                if sample.classification == MemoryClass.DEAD:
                    tg.start_soon(self._policy.replace_dead, sample.pid)
                elif sample.classification == MemoryClass.OVERSIZED:
                    tg.start_soon(self._policy.replace_oversized, sample.pid)

        return samples

    async def run(self) -> None:
        """Monitor the pool until shutdown begins.

        A round in progress when shutdown begins runs to completion.
        """
        self._logger.info("watching for oversized workers", budget_pct=self._budget)
        while not self._state.shutting_down:
            await self._state.sleep(self._interval)
            if self._state.shutting_down:
                break
            _ = await self.check()
        self._logger.info("leaving the monitor loop")

    def _summary_due(self) -> bool:
        now = self._clock()
        if (
            self._last_summary is not None
            and now - self._last_summary < self._summary_interval
        ):
            return False
        self._last_summary = now
        return True

    def _log_sample(self, sample: MemorySample) -> None:
        if sample.classification == MemoryClass.DEAD:
            self._logger.info("worker died", index=sample.index, pid=sample.pid)
        elif sample.classification == MemoryClass.OVERSIZED:
            self._logger.info(
                "worker crossed memory threshold, replacing",
                index=sample.index,
                pid=sample.pid,
                memory_pct=_rounded(sample.usage),
                budget_pct=round(self._budget, 2),
            )
        elif sample.classification == MemoryClass.SKIPPED:
            self._logger.error(
                f"Skipped memory sample: {sample.error}",
                index=sample.index,
                pid=sample.pid,
            )
        else:
            self._logger.debug(
                "worker memory",
                index=sample.index,
                pid=sample.pid,
                memory_pct=_rounded(sample.usage),
            )


def _rounded(usage: float | None) -> float | None:
    return round(usage, 2) if usage is not None else None
