"""psutil-backed memory probe."""

from typing import final

import psutil

from procluster.exceptions import SamplingError


@final
class PsutilMemoryProbe:
    """Reports worker memory through psutil.

    A missing or zombie process reports 0.0, which the monitor reads as a
    dead worker. Any other psutil failure is a sampling error.
    """

    __slots__ = ()

    def memory_percent(self, pid: int) -> float:
        try:
            process = psutil.Process(pid)
            if process.status() == psutil.STATUS_ZOMBIE:
                return 0.0
            return process.memory_percent()
        except psutil.NoSuchProcess:
            # Includes psutil.ZombieProcess
            return 0.0
        except psutil.Error as e:
            msg = f"Failed to read memory usage of pid {pid}: {e}"
            raise SamplingError(msg, pid=pid, cause=e) from e
