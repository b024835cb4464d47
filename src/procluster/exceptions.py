"""procluster exceptions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path


class ProclusterError(Exception):
    """Base exception for procluster errors."""


class ConfigError(ProclusterError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when configuration cannot be loaded or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path
        self.line: int | None = line
        self.column: int | None = column


class ConfigValidationError(ConfigError):
    """Raised when configuration fails validation."""

    def __init__(
        self,
        message: str,
        *,
        key: str,
        value: Any,  # pyright: ignore[reportAny,reportExplicitAny]
        expected: str,
    ) -> None:
        """Initialize with error message and validation context."""
        super().__init__(message)
        self.key: str = key
        self.value: Any = value  # pyright: ignore[reportExplicitAny]
        self.expected: str = expected


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(ProclusterError):
    """Base exception for supervisor errors."""


class LaunchError(SupervisorError):
    """Raised when a worker process cannot be started.

    Attributes:
        slot_index: Index of the slot the worker was launched for.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        slot_index: int,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and slot context.

        Args:
            message: Human-readable error message.
            slot_index: Index of the slot the worker was launched for.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.slot_index: int = slot_index
        self.cause: Exception | None = cause


class SamplingError(SupervisorError):
    """Raised when the memory usage of a worker cannot be queried.

    A sampling failure is not a dead worker: the sample is skipped and
    retried in the next monitoring round.

    Attributes:
        pid: Process ID that was being sampled.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        pid: int,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and process context."""
        super().__init__(message)
        self.pid: int = pid
        self.cause: Exception | None = cause


class SignalDeliveryError(SupervisorError):
    """Raised when a signal cannot be delivered to a worker.

    Attributes:
        pid: Process ID the signal was addressed to.
        signum: The signal number.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        pid: int,
        signum: int,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and delivery context."""
        super().__init__(message)
        self.pid: int = pid
        self.signum: int = signum
        self.cause: Exception | None = cause


class SlotNotFoundError(SupervisorError, KeyError):
    """Raised when no slot is associated with a process ID.

    Attributes:
        pid: The process ID that was looked up.
    """

    def __init__(self, message: str, *, pid: int) -> None:
        """Initialize with error message and process context."""
        super().__init__(message)
        self.pid: int = pid
