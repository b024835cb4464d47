"""Signal delivery to worker processes."""

from __future__ import annotations

import signal
from typing import TYPE_CHECKING

from procluster.exceptions import SignalDeliveryError

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from ._protocol import SignalSender


def signal_name(signum: int) -> str:
    """Return the conventional name of a signal number, e.g. ``SIGTERM``."""
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


def deliver_signal(
    kill: SignalSender,
    pid: int,
    signum: int,
    logger: FilteringBoundLogger,
) -> bool:
    """Send a signal to a worker, logging delivery failures.

    A worker that has already exited is not an error for the caller: the
    failure is logged and reported through the return value.

    Args:
        kill: Callable that delivers the signal.
        pid: Process ID of the worker.
        signum: Signal to send.
        logger: Logger for delivery failures.

    Returns:
        True if the signal was delivered, False otherwise.
    """
    try:
        kill(pid, signum)
    except (ProcessLookupError, PermissionError) as e:
        error = SignalDeliveryError(
            f"Failed to send {signal_name(signum)} to pid {pid}: {e}",
            pid=pid,
            signum=signum,
            cause=e,
        )
        logger.error(str(error), pid=pid, signal=signal_name(signum))
        return False
    return True
