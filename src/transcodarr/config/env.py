"""Environment variable reader with dependency injection support."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)


class EnvReader:
    """Environment variable reader with type conversion and validation.

    Accepts an optional mapping so tests can inject variables without
    touching os.environ.

    Example:
        reader = EnvReader({"TRANSCODARR_MAX_CONCURRENT_JOBS": "2"})
        reader.get_int("TRANSCODARR_MAX_CONCURRENT_JOBS", 1)  # 2
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env: Mapping[str, str] = env if env is not None else os.environ

    def get_str(self, var: str, default: str | None = None) -> str | None:
        """Get a string, or ``default`` if unset or empty."""
        value = self._env.get(var)
        if not value:
            return default
        return value

    def get_int(self, var: str, default: int | None = None) -> int | None:
        """Get an integer.

        Returns:
            Parsed value, or ``default`` if unset or invalid. Invalid
            values are logged.
        """
        value = self._env.get(var)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid integer value for %s: %s", var, value)
            return default

    def get_float(self, var: str, default: float | None = None) -> float | None:
        """Get a float, or ``default`` if unset or invalid."""
        value = self._env.get(var)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid float value for %s: %s", var, value)
            return default

    def get_bool(self, var: str, default: bool | None = None) -> bool | None:
        """Get a boolean.

        "true", "1", "yes" and "on" (any case) are true; anything else is
        false.
        """
        value = self._env.get(var)
        if value is None:
            return default
        return value.lower() in ("true", "1", "yes", "on")

    def get_path(self, var: str, default: Path | None = None) -> Path | None:
        """Get a path with ``~`` expanded, or ``default`` if unset."""
        value = self._env.get(var)
        if not value:
            return default
        return Path(value).expanduser()

    def get_path_list(
        self, var: str, separator: str = ":", default: list[Path] | None = None
    ) -> list[Path]:
        """Get a separator-delimited list of paths. Empty parts are skipped."""
        value = self._env.get(var)
        if value is None:
            return list(default) if default is not None else []

        paths: list[Path] = []
        for part in value.split(separator):
            part = part.strip()
            if part:
                paths.append(Path(part).expanduser())
        return paths
