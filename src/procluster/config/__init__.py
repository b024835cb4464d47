"""procluster configuration.

This module provides the public API for cluster configuration: the frozen
models the supervisor consumes and the TOML loader that builds them.

Example:
    >>> from procluster.config import load_config
    >>> config = load_config(overrides={"process_count": 4})
    >>> config.per_worker_memory_limit
    20.0
"""

from procluster.exceptions import (
    ConfigError,
    ConfigLoadError,
    ConfigValidationError,
)

from ._loader import deep_merge, load_config, read_toml_file
from ._models import (
    MAX_RAM_PERCENT,
    ClusterConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    default_process_count,
)

__all__ = [
    "MAX_RAM_PERCENT",
    "ClusterConfig",
    "ConfigError",
    "ConfigLoadError",
    "ConfigValidationError",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "deep_merge",
    "default_process_count",
    "load_config",
    "read_toml_file",
]
