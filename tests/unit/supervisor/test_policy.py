from __future__ import annotations

import signal
from pathlib import Path
from typing import TYPE_CHECKING

import anyio
import pytest

from procluster.supervisor import SignalRouter

if TYPE_CHECKING:
    from unittest.mock import MagicMock

    from procluster.supervisor import ClusterState, RestartPolicy, SlotTable

    from tests.unit.conftest import FakeLauncher, SignalRecorder

pytestmark = pytest.mark.anyio


async def fill(table: SlotTable, first_pid: int = 100) -> list[int]:
    pids = [first_pid + index for index in range(len(table))]
    for index, pid in enumerate(pids):
        _ = await table.register(index, pid)
    return pids


class TestReplaceDead:
    async def test_relaunches_into_same_slot(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        launcher: FakeLauncher,
    ) -> None:
        _ = await fill(table)

        new_pid = await policy.replace_dead(102)

        assert new_pid == 1000
        assert launcher.launched == [(2, 1000)]
        assert table.slot(2).pid == 1000
        assert 102 not in await table.live_pids()
        assert 102 not in await table.signal_targets()
        assert 1000 in await table.signal_targets()

    async def test_removes_pidfile_of_slot(
        self, policy: RestartPolicy, table: SlotTable
    ) -> None:
        _ = await fill(table)
        pidfile = table.slot(2).pidfile
        _ = pidfile.write_text("102")

        _ = await policy.replace_dead(102)

        assert not pidfile.exists()

    async def test_missing_pidfile_is_not_an_error(
        self, policy: RestartPolicy, table: SlotTable, mock_logger: MagicMock
    ) -> None:
        _ = await fill(table)

        new_pid = await policy.replace_dead(101)

        assert new_pid is not None
        mock_logger.error.assert_not_called()

    async def test_logs_substitution(
        self, policy: RestartPolicy, table: SlotTable, mock_logger: MagicMock
    ) -> None:
        _ = await fill(table)

        _ = await policy.replace_dead(102)

        mock_logger.info.assert_any_call(
            "replaced lost pid", index=2, old_pid=102, new_pid=1000
        )

    async def test_second_call_is_a_no_op(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        launcher: FakeLauncher,
    ) -> None:
        _ = await fill(table)

        _ = await policy.replace_dead(102)
        again = await policy.replace_dead(102)

        assert again is None
        assert len(launcher.launched) == 1
        assert await table.occupied() == [(0, 100), (1, 101), (2, 1000), (3, 103)]

    async def test_does_not_relaunch_when_shutting_down(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        launcher: FakeLauncher,
        state: ClusterState,
    ) -> None:
        _ = await fill(table)
        _ = state.begin_shutdown()

        new_pid = await policy.replace_dead(102)

        assert new_pid is None
        assert launcher.launched == []
        assert table.slot(2).pid is None

    async def test_failed_replacement_is_retried(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        launcher: FakeLauncher,
        mock_logger: MagicMock,
    ) -> None:
        _ = await fill(table)
        launcher.fail_indices.add(2)

        new_pid = await policy.replace_dead(102)

        assert new_pid is None
        assert table.slot(2).pid is None
        mock_logger.error.assert_called_once()
        assert "Failed to replace worker 2" in mock_logger.error.call_args.args[0]

        launcher.fail_indices.clear()
        refilled = await policy.fill_vacant()

        assert refilled == [1000]
        assert table.slot(2).pid == 1000
        assert await table.vacant() == []


class TestFillVacant:
    async def test_every_failure_is_logged_until_launch_succeeds(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        launcher: FakeLauncher,
        mock_logger: MagicMock,
    ) -> None:
        _ = await table.register(0, 100)
        _ = await table.register(1, 101)
        launcher.fail_indices.add(3)

        first = await policy.fill_vacant()
        second = await policy.fill_vacant()

        assert first == [1000]
        assert second == []
        assert table.slot(2).pid == 1000
        assert table.slot(3).pid is None
        assert mock_logger.error.call_count == 2

    async def test_nothing_is_launched_when_shutting_down(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        launcher: FakeLauncher,
        state: ClusterState,
    ) -> None:
        _ = state.begin_shutdown()

        assert await policy.fill_vacant() == []
        assert launcher.launched == []
        assert await table.vacant() == [0, 1, 2, 3]

    async def test_full_pool_launches_nothing(
        self, policy: RestartPolicy, table: SlotTable, launcher: FakeLauncher
    ) -> None:
        _ = await fill(table)

        assert await policy.fill_vacant() == []
        assert launcher.launched == []


class TestReplaceOversized:
    async def test_soft_stop_then_terminate_after_grace(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        kill: SignalRecorder,
    ) -> None:
        _ = await fill(table)

        _ = await policy.replace_oversized(101)

        assert kill.signals_for(101) == [signal.SIGUSR1, signal.SIGTERM]
        usr1_at = kill.sent[0][2]
        term_at = kill.sent[1][2]
        assert term_at - usr1_at >= policy.grace_period * 0.9

    async def test_relaunches_into_same_slot(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        launcher: FakeLauncher,
    ) -> None:
        _ = await fill(table)

        new_pid = await policy.replace_oversized(101)

        assert launcher.launched == [(1, 1000)]
        assert new_pid == 1000
        assert table.slot(1).pid == 1000
        assert 101 not in await table.live_pids()

    async def test_pid_leaves_signal_targets_before_soft_stop(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        kill: SignalRecorder,
    ) -> None:
        _ = await fill(table)
        targets_at_soft_stop: list[frozenset[int]] = []
        original_call = type(kill).__call__

        def recording_call(pid: int, signum: int, /) -> None:
            targets_at_soft_stop.append(frozenset(table._signal_targets))
            original_call(kill, pid, signum)

        policy._kill = recording_call  # pyright: ignore[reportAttributeAccessIssue]

        _ = await policy.replace_oversized(101)

        assert 101 not in targets_at_soft_stop[0]

    async def test_terminate_routed_while_excluding_skips_worker(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        state: ClusterState,
        launcher: FakeLauncher,
        kill: SignalRecorder,
        mock_logger: MagicMock,
    ) -> None:
        _ = await fill(table)
        router = SignalRouter(table, state, mock_logger, kill=kill)

        async with anyio.create_task_group() as tg:
            tg.start_soon(policy.replace_oversized, 101)
            tg.start_soon(router.handle, signal.SIGTERM)

        assert kill.signals_for(101) == [signal.SIGUSR1, signal.SIGTERM]
        assert kill.signals_for(100) == [signal.SIGTERM]
        assert launcher.launched == []

    async def test_gone_process_is_still_replaced(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        kill: SignalRecorder,
        mock_logger: MagicMock,
    ) -> None:
        _ = await fill(table)
        kill.gone.add(101)

        new_pid = await policy.replace_oversized(101)

        assert new_pid is not None
        assert mock_logger.error.call_count == 2

    async def test_does_not_relaunch_when_shutdown_starts_during_grace(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        launcher: FakeLauncher,
        kill: SignalRecorder,
        state: ClusterState,
    ) -> None:
        _ = await fill(table)

        def stop_on_soft_stop(pid: int, signum: int, /) -> None:
            kill(pid, signum)
            if signum == signal.SIGUSR1:
                _ = state.begin_shutdown()

        policy._kill = stop_on_soft_stop  # pyright: ignore[reportAttributeAccessIssue]

        new_pid = await policy.replace_oversized(101)

        assert new_pid is None
        assert launcher.launched == []
        assert kill.signals_for(101) == [signal.SIGUSR1, signal.SIGTERM]
        assert table.slot(1).pid is None

    async def test_unknown_pid_is_ignored(
        self,
        policy: RestartPolicy,
        kill: SignalRecorder,
        launcher: FakeLauncher,
    ) -> None:
        new_pid = await policy.replace_oversized(4242)

        assert new_pid is None
        assert kill.sent == []
        assert launcher.launched == []


class TestPidfilePath:
    async def test_dead_replacement_targets_prefix_and_index(
        self,
        policy: RestartPolicy,
        table: SlotTable,
        pid_prefix: str,
    ) -> None:
        _ = await fill(table)
        other = Path(f"{pid_prefix}.1")
        target = Path(f"{pid_prefix}.3")
        _ = other.write_text("101")
        _ = target.write_text("103")

        _ = await policy.replace_dead(103)

        assert not target.exists()
        assert other.exists()
