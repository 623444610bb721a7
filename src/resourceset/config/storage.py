"""On-disk locations used by the operator (currently only HTTP caches)."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final
from urllib.parse import urlsplit

APP_DIR_NAME: Final[str] = "resourceset"
DATA_DIR_ENV: Final[str] = "RESOURCESET_DATA_DIR"

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9.-]+")


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    def resolve_data_dir(self, *, ensure: bool = True) -> Path:
        data_dir = self.data_dir.expanduser().resolve()
        if ensure:
            data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def http_cache_path(self, endpoint: str, *, ensure: bool = True) -> Path:
        """SQLite cache file for ``endpoint``; every API server gets its own file."""

        host = urlsplit(endpoint).netloc or endpoint or "default"
        filename = f"http-cache-{_UNSAFE_FILENAME.sub('_', host)}.db"
        return self.resolve_data_dir(ensure=ensure) / filename


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv(DATA_DIR_ENV)
    if env_dir:
        return StorageConfig(data_dir=Path(env_dir))
    cache_home = os.getenv("XDG_CACHE_HOME")
    base = Path(cache_home) if cache_home else Path.home() / ".cache"
    return StorageConfig(data_dir=base / APP_DIR_NAME)
