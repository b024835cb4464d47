# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""TOML configuration file loading and merging."""

from __future__ import annotations

import tomllib
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from procluster.exceptions import ConfigLoadError, ConfigValidationError

from ._models import ClusterConfig

if TYPE_CHECKING:
    from pathlib import Path


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML file.

    Args:
        path: Path to the TOML file.

    Returns:
        Parsed TOML content as dictionary.

    Raises:
        ConfigLoadError: If the file is missing or cannot be parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        msg = f"Config file not found: {path}"
        raise ConfigLoadError(msg, path=path) from e
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        raise ConfigLoadError(
            msg,
            path=path,
            line=e.lineno,
            column=e.colno,
        ) from e


def deep_merge(
    base: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    override: dict[str, Any],  # pyright: ignore[reportExplicitAny]
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Deep merge two configuration dictionaries.

    Merges `override` into `base`, returning a new dictionary. Neither input
    is modified.

    Merge rules:
        - Dictionaries are recursively merged
        - Arrays are replaced entirely (no element-wise merge)
        - Scalars are replaced with override value
    """
    result = dict(base)
    for key, value in override.items():
        existing = result.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            result[key] = deep_merge(existing, value)  # pyright: ignore[reportUnknownArgumentType]
        else:
            result[key] = value
    return result


def _flatten_file_values(
    raw: dict[str, Any],  # pyright: ignore[reportExplicitAny]
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    # [cluster] keys sit at the model root; [logging] stays nested.
    values: dict[str, Any] = dict(raw.get("cluster", {}))  # pyright: ignore[reportExplicitAny]
    if "logging" in raw:
        values["logging"] = raw["logging"]
    return values


def _validation_error(error: ValidationError) -> ConfigValidationError:
    first = error.errors()[0]
    key = ".".join(str(part) for part in first["loc"]) or "<root>"
    msg = f"Invalid configuration for '{key}': {first['msg']}"
    return ConfigValidationError(
        msg,
        key=key,
        value=first.get("input"),
        expected=first["type"],
    )


def load_config(
    path: Path | None = None,
    overrides: dict[str, Any] | None = None,  # pyright: ignore[reportExplicitAny]
) -> ClusterConfig:
    """Load and validate the cluster configuration.

    Values come from the optional TOML file (``[cluster]`` and ``[logging]``
    tables) with ``overrides`` (typically from command-line flags) merged on
    top.

    Args:
        path: Optional TOML configuration file.
        overrides: Values taking precedence over the file.

    Returns:
        The validated, frozen configuration.

    Raises:
        ConfigLoadError: If the file is missing or is not valid TOML.
        ConfigValidationError: If a value fails validation.
    """
    values: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    if path is not None:
        values = _flatten_file_values(read_toml_file(path))
    if overrides:
        values = deep_merge(values, overrides)

    try:
        return ClusterConfig.model_validate(values)
    except ValidationError as e:
        raise _validation_error(e) from e
