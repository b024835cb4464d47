from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from procluster.exceptions import LaunchError, SamplingError
from procluster.supervisor import ClusterState, RestartPolicy, SlotTable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from unittest.mock import MagicMock

    from procluster.config import ClusterConfig


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.unit)


@dataclass
class FakeLauncher:
    """Launcher that hands out increasing pids without starting anything."""

    next_pid: int = 1000
    fail_indices: set[int] = field(default_factory=set)
    launched: list[tuple[int, int]] = field(default_factory=list)
    wait_all_calls: int = 0
    on_launch: Callable[[int], Awaitable[None]] | None = None

    async def launch(self, slot_index: int) -> int:
        if slot_index in self.fail_indices:
            msg = f"Failed to start worker {slot_index}: no such file"
            raise LaunchError(
                msg, slot_index=slot_index, cause=FileNotFoundError("worker")
            )
        pid = self.next_pid
        self.next_pid += 1
        self.launched.append((slot_index, pid))
        if self.on_launch is not None:
            await self.on_launch(slot_index)
        return pid

    async def wait_all(self) -> None:
        self.wait_all_calls += 1


@dataclass
class FakeProbe:
    """Memory probe returning canned usage per pid."""

    usage: dict[int, float | Exception] = field(default_factory=dict)
    default: float = 1.0
    queried: list[int] = field(default_factory=list)

    def memory_percent(self, pid: int) -> float:
        self.queried.append(pid)
        value = self.usage.get(pid, self.default)
        if isinstance(value, Exception):
            msg = f"Failed to read memory usage of pid {pid}: {value}"
            raise SamplingError(msg, pid=pid, cause=value)
        return value


@dataclass
class SignalRecorder:
    """Signal sender that records deliveries instead of sending them."""

    gone: set[int] = field(default_factory=set)
    sent: list[tuple[int, int, float]] = field(default_factory=list)

    def __call__(self, pid: int, signum: int, /) -> None:
        if pid in self.gone:
            raise ProcessLookupError(3, "No such process")
        self.sent.append((pid, signum, time.monotonic()))

    def signals_for(self, pid: int) -> list[int]:
        return [signum for sent_pid, signum, _ in self.sent if sent_pid == pid]


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def kill() -> SignalRecorder:
    return SignalRecorder()


@pytest.fixture
def state() -> ClusterState:
    return ClusterState()


@pytest.fixture
def table(cluster_config: ClusterConfig) -> SlotTable:
    return SlotTable(
        [
            cluster_config.pidfile_for(index)
            for index in range(cluster_config.process_count)
        ]
    )


@pytest.fixture
def policy(
    table: SlotTable,
    launcher: FakeLauncher,
    state: ClusterState,
    mock_logger: MagicMock,
    kill: SignalRecorder,
    cluster_config: ClusterConfig,
) -> RestartPolicy:
    return RestartPolicy(
        table,
        launcher,
        state,
        mock_logger,
        grace_period=cluster_config.grace_period,
        kill=kill,
    )
