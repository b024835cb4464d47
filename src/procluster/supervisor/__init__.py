"""Supervisor package for managing a pool of worker processes.

This package keeps a fixed number of worker processes running, limits each
to a share of system memory, replaces dead or oversized workers in place,
and forwards OS signals to the whole pool.

Key Components:
    - WorkerSlot: Fixed pool position with its current pid and pidfile
    - SlotTable: Lock-guarded pid-to-slot mapping
    - ProcessLauncher: Starts one worker for a slot
    - PsutilMemoryProbe: Memory query backed by psutil
    - MemoryMonitor: Periodic sampling and classification
    - RestartPolicy: Dead and oversized worker replacement
    - SignalRouter: Signal forwarding and shutdown
    - Supervisor: Pool coordinator

Example:
    >>> from procluster.config import ClusterConfig
    >>> from procluster.supervisor import Supervisor
    >>> config = ClusterConfig(name="mailers", process_count=4)
    >>> supervisor = Supervisor(config)
    >>> await supervisor.run()  # Blocks until shutdown
"""

from ._launcher import ProcessLauncher
from ._models import MemoryClass, MemorySample, SupervisorState, WorkerSlot
from ._monitor import MemoryMonitor, classify
from ._policy import HARD_STOP_SIGNAL, SOFT_STOP_SIGNAL, RestartPolicy
from ._probe import PsutilMemoryProbe
from ._protocol import Launcher, MemoryProbe, SignalSender
from ._router import HANDLED_SIGNALS, TERMINATING_SIGNALS, SignalRouter
from ._signals import deliver_signal, signal_name
from ._state import ClusterState
from ._supervisor import Supervisor, logger_for
from ._table import SlotTable

__all__ = [
    "HANDLED_SIGNALS",
    "HARD_STOP_SIGNAL",
    "SOFT_STOP_SIGNAL",
    "TERMINATING_SIGNALS",
    "ClusterState",
    "Launcher",
    "MemoryClass",
    "MemoryMonitor",
    "MemoryProbe",
    "MemorySample",
    "ProcessLauncher",
    "PsutilMemoryProbe",
    "RestartPolicy",
    "SignalRouter",
    "SignalSender",
    "SlotTable",
    "Supervisor",
    "SupervisorState",
    "WorkerSlot",
    "classify",
    "deliver_signal",
    "logger_for",
    "signal_name",
]
