"""Shared utilities for procluster."""

from ._logging import LogFormatType, create_cluster_logger

__all__ = ["LogFormatType", "create_cluster_logger"]
