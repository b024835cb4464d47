"""Configuration models for procluster.

This module defines the frozen Pydantic models consumed by the supervisor:
- LogLevel / LogFormat: logging enums
- LoggingConfig: where and how the cluster logs
- ClusterConfig: the pool definition (size, memory ceiling, worker command)
"""

import os
from enum import StrEnum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_RAM_PERCENT = 80.0


def default_process_count() -> int:
    """Return the default pool size: one worker per core, minus one."""
    return max((os.cpu_count() or 1) - 1, 1)


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty logs to stdout).
        quiet: Discard all log output.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.TEXT
    file: str = ""
    quiet: bool = False


class ClusterConfig(BaseModel):
    """Configuration for a worker cluster.

    Attributes:
        name: Name of the cluster, used to tag its workers.
        pid_prefix: Pidfile prefix; worker N writes ``{pid_prefix}.{N}``.
        process_count: Number of worker slots.
        memory_percent_limit: Percent of system RAM the whole cluster may use.
        command: Worker program and its fixed leading arguments.
        launch_args: Extra arguments passed to every worker.
        pidfile_flag: Worker option that receives the pidfile path.
        tag_flag: Worker option that receives the cluster tag.
        tag_prefix: Prefix of the cluster tag.
        monitor_interval: Seconds between memory sampling rounds.
        grace_period: Seconds between soft-stop and terminate on replacement.
        summary_interval: Minimum seconds between memory summary log lines.
        debug: Log worker command lines and per-worker samples.
        logging: Logging settings.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="default", min_length=1)
    pid_prefix: str = Field(default="tmp/pids/worker.pid", min_length=1)
    process_count: int = Field(default_factory=default_process_count, gt=0)
    memory_percent_limit: float = Field(default=MAX_RAM_PERCENT, gt=0, le=100)
    command: tuple[str, ...] = Field(
        default=("bundle", "exec", "sidekiq"), min_length=1
    )
    launch_args: tuple[str, ...] = ()
    pidfile_flag: str = "-P"
    tag_flag: str = "--tag"
    tag_prefix: str = "sidekiq"
    monitor_interval: float = Field(default=10.0, gt=0)
    grace_period: float = Field(default=5.0, ge=0)
    summary_interval: float = Field(default=60.0, ge=0)
    debug: bool = False
    logging: LoggingConfig = LoggingConfig()

    @field_validator("command")
    @classmethod
    def _command_has_program(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value[0].strip():
            msg = "command must start with a program name"
            raise ValueError(msg)
        return value

    @property
    def per_worker_memory_limit(self) -> float:
        """Return the share of system RAM each worker may use, in percent."""
        return self.memory_percent_limit / self.process_count

    @property
    def cluster_tag(self) -> str:
        """Return the tag that identifies workers of this cluster."""
        return f"{self.tag_prefix}.{self.name}"

    def pidfile_for(self, index: int) -> str:
        """Return the pidfile path for the worker in slot ``index``."""
        return f"{self.pid_prefix}.{index}"
