"""Data models for the supervisor system.

This module defines the core data types for worker supervision:
- SupervisorState: Lifecycle states of the supervisor itself
- MemoryClass: Classification of a worker's memory sample
- MemorySample: Immutable result of sampling one worker
- WorkerSlot: Mutable record of one fixed pool position
"""

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path  # noqa: TC003 - Used in runtime type annotations


class SupervisorState(StrEnum):
    """Supervisor lifecycle states.

    - RUNNING: Workers that die are replaced
    - SHUTTING_DOWN: A terminating signal was received; nothing is replaced
    """

    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


class MemoryClass(StrEnum):
    """Classification of a worker's memory sample.

    - HEALTHY: Usage is within the per-worker budget
    - DEAD: The OS reports no usage; the process is gone
    - OVERSIZED: Usage exceeds the per-worker budget
    - SKIPPED: The memory query failed; retried next round
    """

    HEALTHY = "healthy"
    DEAD = "dead"
    OVERSIZED = "oversized"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class MemorySample:
    """Immutable result of sampling one worker.

    Attributes:
        index: Slot index of the worker.
        pid: Process ID that was sampled.
        usage: Percent of system RAM in use, or None if sampling failed.
        classification: How the sample was classified.
        error: Failure message if sampling failed.
    """

    index: int
    pid: int
    usage: float | None
    classification: MemoryClass
    error: str | None = None


@dataclass(slots=True)
class WorkerSlot:
    """Mutable record of one pool position.

    A slot persists for the supervisor lifetime while the worker occupying
    it is replaced. Its pid moves None -> P -> None -> Q and never refers to
    two live processes at once.

    Attributes:
        index: Fixed position of the slot in the pool.
        pidfile: Pidfile written by the worker in this slot.
        pid: Process ID of the current worker, if any.
        restart_count: Number of times the worker has been replaced.
        started_at: ISO 8601 timestamp of the last launch.
    """

    index: int
    pidfile: Path
    pid: int | None = None
    restart_count: int = 0
    started_at: str | None = None
