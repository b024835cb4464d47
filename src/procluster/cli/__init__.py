"""The procluster command-line interface."""

from ._app import app, build_overrides, create_app, main, run_cluster

__all__ = ["app", "build_overrides", "create_app", "main", "run_cluster"]
