"""Main supervisor coordinator for the worker pool.

This module provides the Supervisor class that owns the slot table, fills
the pool, and runs the memory monitor and the signal router using anyio
for structured concurrency.
"""

from __future__ import annotations

import os
import signal
import time
from typing import TYPE_CHECKING, final

import anyio

from procluster.exceptions import LaunchError
from procluster.utils import create_cluster_logger

from ._launcher import ProcessLauncher
from ._monitor import MemoryMonitor
from ._policy import RestartPolicy
from ._probe import PsutilMemoryProbe
from ._router import SignalRouter
from ._signals import deliver_signal
from ._state import ClusterState
from ._table import SlotTable

if TYPE_CHECKING:
    from collections.abc import Callable

    from structlog.typing import FilteringBoundLogger

    from procluster.config import ClusterConfig

    from ._models import SupervisorState
    from ._protocol import Launcher, MemoryProbe, SignalSender


def logger_for(config: ClusterConfig) -> FilteringBoundLogger:
    """Create the logger described by a cluster configuration."""
    return create_cluster_logger(
        level="debug" if config.debug else config.logging.level.value,
        log_format=config.logging.format.value,  # type: ignore[arg-type]
        log_file=config.logging.file,
        quiet=config.logging.quiet,
        name=config.name,
    )


@final
class Supervisor:
    """Keeps a fixed-size pool of workers alive and within memory limits.

    The per-worker budget is computed once from the configuration. The
    supervisor fills every slot, then samples memory on an interval while
    forwarding OS signals, and returns once shutdown was requested and
    every worker has exited.
    """

    __slots__ = (
        "_budget",
        "_config",
        "_kill",
        "_launcher",
        "_logger",
        "_monitor",
        "_policy",
        "_router",
        "_state",
        "_table",
    )

    def __init__(  # noqa: PLR0913
        self,
        config: ClusterConfig,
        logger: FilteringBoundLogger | None = None,
        *,
        launcher: Launcher | None = None,
        probe: MemoryProbe | None = None,
        kill: SignalSender = os.kill,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the supervisor.

        Args:
            config: Cluster configuration.
            logger: Logger shared by all components. Built from config if None.
            launcher: Worker launcher. Uses ProcessLauncher if None.
            probe: Memory query. Uses PsutilMemoryProbe if None.
            kill: Signal sender, ``os.kill`` by default.
            clock: Monotonic clock for the monitor's summary throttle.
        """
        self._config = config
        self._logger: FilteringBoundLogger = (
            logger if logger is not None else logger_for(config)
        )
        self._budget = config.per_worker_memory_limit
        self._kill = kill
        self._table = SlotTable(
            [config.pidfile_for(index) for index in range(config.process_count)]
        )
        self._state = ClusterState()
        self._launcher: Launcher = (
            launcher if launcher is not None else ProcessLauncher(config, self._logger)
        )
        self._policy = RestartPolicy(
            self._table,
            self._launcher,
            self._state,
            self._logger,
            grace_period=config.grace_period,
            kill=kill,
        )
        self._monitor = MemoryMonitor(
            self._table,
            probe if probe is not None else PsutilMemoryProbe(),
            self._policy,
            self._state,
            self._logger,
            budget=self._budget,
            interval=config.monitor_interval,
            summary_interval=config.summary_interval,
            clock=clock or time.monotonic,
        )
        self._router = SignalRouter(self._table, self._state, self._logger, kill=kill)

    @property
    def config(self) -> ClusterConfig:
        """Return the cluster configuration."""
        return self._config

    @property
    def per_worker_budget(self) -> float:
        """Return the percent of system RAM each worker may use."""
        return self._budget

    @property
    def table(self) -> SlotTable:
        """Return the authoritative slot table."""
        return self._table

    @property
    def state(self) -> SupervisorState:
        """Return the current lifecycle state."""
        return self._state.state

    @property
    def auto_respawn(self) -> bool:
        """Return whether dead workers are still being replaced."""
        return self._state.auto_respawn

    @property
    def monitor(self) -> MemoryMonitor:
        """Return the memory monitor."""
        return self._monitor

    @property
    def policy(self) -> RestartPolicy:
        """Return the restart policy."""
        return self._policy

    @property
    def router(self) -> SignalRouter:
        """Return the signal router."""
        return self._router

    async def start_pool(self) -> None:
        """Launch a worker into every slot.

        A launch failure aborts startup: workers already started are
        terminated and waited for before the error is re-raised.

        Raises:
            LaunchError: If any worker cannot be started.
        """
        for index in range(len(self._table)):
            if self._state.shutting_down:
                break
            try:
                pid = await self._launcher.launch(index)
            except LaunchError:
                self._logger.error("startup aborted, stopping started workers")
                await self._abort_startup()
                raise
            _ = await self._table.register(index, pid)

            # A terminating signal routed during the launch missed this pid.
            if self._state.shutting_down:
                _ = deliver_signal(self._kill, pid, signal.SIGTERM, self._logger)
                break

    async def _abort_startup(self) -> None:
        _ = self._state.begin_shutdown()
        for pid in sorted(await self._table.live_pids()):
            _ = deliver_signal(self._kill, pid, signal.SIGTERM, self._logger)
        await self._launcher.wait_all()

    async def run(self) -> None:
        """Run the supervisor.

        Blocks until shutdown is triggered (via signal or shutdown()) and
        every worker has exited.

        Raises:
            LaunchError: If the pool cannot be filled at startup.
        """
        config = self._config
        self._logger.info("starting up cluster", workers=config.process_count)
        self._logger.info(
            "cluster max memory limit",
            memory_pct=round(config.memory_percent_limit, 2),
        )
        self._logger.info("per worker memory limit", memory_pct=round(self._budget, 2))

        failure: LaunchError | None = None
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._router.run)
            try:
                await self.start_pool()
            except LaunchError as e:
                failure = e
            else:
                await self._monitor.run()
                await self._launcher.wait_all()
            tg.cancel_scope.cancel()

        if failure is not None:
            raise failure
        self._logger.info("shutting down")

    async def shutdown(self) -> None:
        """Trigger shutdown as if SIGTERM had been received.

        Workers receive SIGTERM and are not respawned; run() returns once
        they have all exited.
        """
        _ = await self._router.handle(signal.SIGTERM)
