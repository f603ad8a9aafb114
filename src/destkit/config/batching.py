"""Batch sizing for destination actions."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int
from .errors import ConfigurationError

# HubSpot batch endpoints accept at most 100 inputs per call
DEFAULT_MAX_BATCH_SIZE = 100
MAX_BATCH_SIZE_ENV = "DESTKIT_MAX_BATCH_SIZE"


@dataclass(frozen=True, slots=True)
class BatchConfig:
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE

    def __post_init__(self) -> None:
        if not 1 <= self.max_batch_size <= DEFAULT_MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"max_batch_size must be between 1 and {DEFAULT_MAX_BATCH_SIZE}",
                setting="max_batch_size",
            )


def get_batch_config() -> BatchConfig:
    return BatchConfig(max_batch_size=env_int(MAX_BATCH_SIZE_ENV, DEFAULT_MAX_BATCH_SIZE))
