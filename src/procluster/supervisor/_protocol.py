"""Protocol definitions for the supervisor system.

This module defines the boundaries between the supervision core and the
operating system:
- Launcher: Starts one worker for a slot
- MemoryProbe: Reports a process's share of system memory
- SignalSender: Delivers a signal to a process
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Launcher(Protocol):
    """Protocol for starting worker processes.

    Implementations start one worker for a slot and return immediately with
    its process ID, without waiting for the worker to finish.
    """

    async def launch(self, slot_index: int) -> int:
        """Start a worker for a slot.

        Args:
            slot_index: Index of the slot the worker will occupy.

        Returns:
            The process ID of the new worker.

        Raises:
            LaunchError: If the worker cannot be started.
        """
        ...

    async def wait_all(self) -> None:
        """Block until every launched worker has exited."""
        ...


@runtime_checkable
class MemoryProbe(Protocol):
    """Protocol for querying a process's memory footprint."""

    def memory_percent(self, pid: int) -> float:
        """Return the percent of total system RAM used by a process.

        Args:
            pid: The process to query.

        Returns:
            The usage in percent, or 0.0 if the process no longer exists.

        Raises:
            SamplingError: If the query fails for any other reason.
        """
        ...


class SignalSender(Protocol):
    """Callable that delivers a signal to a process, like ``os.kill``."""

    def __call__(self, pid: int, signum: int, /) -> None:
        """Send ``signum`` to ``pid``.

        Raises:
            ProcessLookupError: If the process does not exist.
        """
        ...
