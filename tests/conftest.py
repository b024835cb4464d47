"""Shared test fixtures for procluster tests."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from rich.console import Console

from procluster.config import ClusterConfig

if TYPE_CHECKING:
    from unittest.mock import MagicMock


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def mock_logger() -> MagicMock:
    from unittest.mock import MagicMock

    logger = MagicMock()
    logger.bind.return_value = logger
    return logger


@pytest.fixture
def pid_prefix(tmp_path: Path) -> str:
    pids_dir = tmp_path / "pids"
    pids_dir.mkdir()
    return str(pids_dir / "worker.pid")


@pytest.fixture
def cluster_config(pid_prefix: str) -> ClusterConfig:
    """Four-worker cluster with an 80% ceiling and short timings."""
    return ClusterConfig(
        name="test",
        pid_prefix=pid_prefix,
        process_count=4,
        memory_percent_limit=80.0,
        command=("worker",),
        launch_args=("-c", "10"),
        monitor_interval=0.01,
        grace_period=0.05,
        summary_interval=60.0,
    )


@pytest.fixture
def console() -> Console:
    return Console(
        width=70,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )
