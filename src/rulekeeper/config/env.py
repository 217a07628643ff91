"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidConfigurationValueError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given environment variables or raise if any are missing/blank."""

    missing: list[str] = []
    values: dict[str, str] = {}
    for name in names:
        value = os.getenv(name)
        if value is None or not value.strip():
            missing.append(name)
            continue
        values[name] = value

    if missing:
        missing_list = ", ".join(sorted(missing))
        raise MissingConfigurationError(f"Missing configuration for: {missing_list}")

    return values


def optional_env_var(name: str) -> str | None:
    """Return a stripped environment variable, treating blank values as unset."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = optional_env_var(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidConfigurationValueError(name, raw, "an integer") from None
    if minimum is not None and value < minimum:
        raise InvalidConfigurationValueError(name, raw, f"an integer >= {minimum}")
    return value


def env_float(name: str, default: float, *, minimum: float | None = None) -> float:
    raw = optional_env_var(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InvalidConfigurationValueError(name, raw, "a number") from None
    if minimum is not None and value < minimum:
        raise InvalidConfigurationValueError(name, raw, f"a number >= {minimum}")
    return value
