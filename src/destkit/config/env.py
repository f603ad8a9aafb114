"""Read destkit settings from environment variables.

Blank values count as unset everywhere, so an exported but empty variable in a
``.env`` file never overrides a default.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def optional_env_var(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return every variable in ``names``; report all missing ones at once."""

    values = {name: optional_env_var(name) for name in names}
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise MissingConfigurationError(missing)
    return {name: value for name, value in values.items() if value is not None}


def env_int(name: str, default: int) -> int:
    raw = optional_env_var(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", setting=name) from exc
