"""
Key/value backends for persisted blobs (current-run snapshot, history ledger).

Gracefully selects:
  - REDIS_URL set   → shared Redis backend
  - otherwise       → one JSON file per key under the state directory
Tests use the in-process MemoryBackend.
"""
import os
from pathlib import Path
from typing import Optional, Protocol

import redis


class KeyValueBackend(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryBackend:
    """In-process storage; nothing survives the process."""

    def __init__(self):
        self._items: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class FileBackend:
    """Stores each key as <state_dir>/<key>.json."""

    def __init__(self, state_dir: str | Path):
        self.state_dir = Path(state_dir)

    def _path(self, key: str) -> Path:
        return self.state_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        file_path = self._path(key)
        if not file_path.is_file():
            return None
        with open(file_path, encoding="utf-8") as f:
            return f.read()

    def set(self, key: str, value: str) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        file_path = self._path(key)
        tmp_path = file_path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(value)
        # Readers never see a half-written blob
        os.replace(tmp_path, file_path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class RedisBackend:
    """Stores each key as a Redis string."""

    def __init__(self, client):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisBackend":
        return cls(redis.Redis.from_url(url, decode_responses=True, socket_timeout=5))

    def get(self, key: str) -> Optional[str]:
        value = self._client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        self._client.set(key, value)

    def remove(self, key: str) -> None:
        self._client.delete(key)


def build_backend(settings) -> KeyValueBackend:
    if settings.redis_url:
        return RedisBackend.from_url(settings.redis_url)
    return FileBackend(settings.state_dir)
