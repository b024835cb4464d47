"""OS signal routing for the worker pool.

This module provides the SignalRouter class that receives interrupt,
terminate and soft-stop signals, forwards them to every worker, and starts
shutdown on the terminating ones.
"""

from __future__ import annotations

import os
import signal
from typing import TYPE_CHECKING, final

import anyio

from ._signals import deliver_signal, signal_name

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._protocol import SignalSender
    from ._state import ClusterState
    from ._table import SlotTable

HANDLED_SIGNALS: tuple[signal.Signals, ...] = (
    signal.SIGINT,
    signal.SIGUSR1,
    signal.SIGTERM,
)
TERMINATING_SIGNALS: frozenset[int] = frozenset({signal.SIGINT, signal.SIGTERM})


@final
class SignalRouter:
    """Forwards OS signals to the pool.

    SIGINT and SIGTERM switch the supervisor to SHUTTING_DOWN, which is
    permanent and turns off respawning. Every handled signal is forwarded
    as-is to the current signal targets; the router never waits for the
    workers to exit.
    """

    __slots__ = ("_kill", "_logger", "_state", "_table")

    def __init__(
        self,
        table: SlotTable,
        state: ClusterState,
        logger: FilteringBoundLogger,
        *,
        kill: SignalSender = os.kill,
    ) -> None:
        """Initialize the router.

        Args:
            table: The supervisor's slot table.
            state: Shared lifecycle state.
            logger: Logger for signal events.
            kill: Signal sender, ``os.kill`` by default.
        """
        self._table = table
        self._state = state
        self._logger = logger
        self._kill = kill

    async def handle(self, signum: int) -> list[int]:
        """Handle one received signal.

        Args:
            signum: The signal number.

        Returns:
            The pids the signal was delivered to.
        """
        name = signal_name(signum)
        self._logger.info("received OS signal", signal=name)

        if signum in TERMINATING_SIGNALS and self._state.begin_shutdown():
            self._logger.info("shutdown initiated, workers will not be respawned")

        delivered: list[int] = []
        for pid in sorted(await self._table.signal_targets()):
            if deliver_signal(self._kill, pid, signum, self._logger):
                delivered.append(pid)
        return delivered

    async def run(self) -> None:
        """Receive and handle signals until cancelled."""
        with anyio.open_signal_receiver(*HANDLED_SIGNALS) as signals:
            async for signum in signals:
                _ = await self.handle(signum)
