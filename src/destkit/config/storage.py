"""Where destkit keeps files on disk.

The only persistent file is the sqlite HTTP cache used for slowly changing
remote metadata such as HubSpot contact property definitions.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_var

APP_DIR_NAME: Final[str] = "destkit"
HTTP_CACHE_FILENAME: Final[str] = "http_cache.db"
DATA_DIR_ENV: Final[str] = "DESTKIT_DATA_DIR"


def platform_data_home() -> Path:
    """Per-user data directory: ``%LOCALAPPDATA%`` on Windows, XDG elsewhere."""

    if os.name == "nt":
        local = optional_env_var("LOCALAPPDATA")
        return Path(local) if local else Path.home() / "AppData" / "Local"
    xdg = optional_env_var("XDG_DATA_HOME")
    return Path(xdg) if xdg else Path.home() / ".local" / "share"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    http_cache_filename: str = HTTP_CACHE_FILENAME

    @classmethod
    def from_env(cls) -> StorageConfig:
        override = optional_env_var(DATA_DIR_ENV)
        base = Path(override) if override else platform_data_home() / APP_DIR_NAME
        return cls(data_dir=base.expanduser().resolve())

    def http_cache_path(self, *, create_dir: bool = True) -> Path:
        if create_dir:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir / self.http_cache_filename


def get_storage_config() -> StorageConfig:
    return StorageConfig.from_env()


def get_http_cache_path() -> Path:
    return get_storage_config().http_cache_path()
