import sys
from pathlib import Path

import pytest

from procluster.config import ClusterConfig

# Sleeps until signaled; extra arguments (pidfile, tag) land in sys.argv.
SLEEPER = "import time; time.sleep(60)"


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if Path(item.path).is_relative_to(Path(__file__).parent):
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def sleeper_config(pid_prefix: str) -> ClusterConfig:
    """Two real sleeping workers sampled every 50ms."""
    return ClusterConfig(
        name="it",
        pid_prefix=pid_prefix,
        process_count=2,
        memory_percent_limit=80.0,
        command=(sys.executable, "-c", SLEEPER),
        monitor_interval=0.05,
        grace_period=0.1,
        summary_interval=60.0,
    )
