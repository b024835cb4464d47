"""Worker process launcher.

This module provides the ProcessLauncher class that starts one worker
process per slot, pointing the worker at its own pidfile and tagging it as
a member of the cluster.
"""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING, final

import anyio
import anyio.abc

from procluster.exceptions import LaunchError

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from procluster.config import ClusterConfig


@final
class ProcessLauncher:
    """Starts worker processes for pool slots.

    Each worker runs the configured command with the user's launch
    arguments, followed by its pidfile option and the cluster tag. Workers
    run in their own session so terminal signals reach them only through
    the supervisor.
    """

    __slots__ = ("_config", "_logger", "_processes")

    def __init__(self, config: ClusterConfig, logger: FilteringBoundLogger) -> None:
        """Initialize the launcher.

        Args:
            config: Cluster configuration.
            logger: Logger for launch events.
        """
        self._config = config
        self._logger = logger
        self._processes: dict[int, anyio.abc.Process] = {}

    def argv_for(self, slot_index: int) -> list[str]:
        """Build the command line of the worker for a slot."""
        config = self._config
        return [
            *config.command,
            *config.launch_args,
            config.pidfile_flag,
            config.pidfile_for(slot_index),
            config.tag_flag,
            config.cluster_tag,
        ]

    async def launch(self, slot_index: int) -> int:
        """Start the worker for a slot without waiting for it.

        Args:
            slot_index: Index of the slot the worker will occupy.

        Returns:
            The process ID of the new worker.

        Raises:
            LaunchError: If the process cannot be started.
        """
        argv = self.argv_for(slot_index)
        self._prune()
        self._logger.info("starting worker", index=slot_index)
        self._logger.debug("worker command", index=slot_index, command=" ".join(argv))

        try:
            process = await anyio.open_process(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=None,
                stderr=None,
                start_new_session=True,
            )
        except OSError as e:
            msg = f"Failed to start worker {slot_index}: {e}"
            self._logger.error(msg, index=slot_index, command=argv[0])
            raise LaunchError(msg, slot_index=slot_index, cause=e) from e

        self._processes[process.pid] = process
        return process.pid

    async def wait_all(self) -> None:
        """Block until every launched worker has exited."""
        while self._processes:
            pid, process = next(iter(self._processes.items()))
            exit_code = await process.wait()
            self._logger.debug("worker exited", pid=pid, exit_code=exit_code)
            _ = self._processes.pop(pid, None)

    def _prune(self) -> None:
        """Forget workers that have already exited."""
        for pid, process in list(self._processes.items()):
            if process.returncode is not None:
                del self._processes[pid]
