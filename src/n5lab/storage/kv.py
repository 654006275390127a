"""Key-value persistence (JSON files + fcntl.flock + atomic write).

Stores raise on failure. Engines go through ``read_value``/``write_value``/
``remove_value``, which turn failures into a returned ``StorageError`` so
that progress tracking never interrupts a study session.
"""

import fcntl
import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import structlog

logger = structlog.get_logger()


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


@dataclass(frozen=True)
class StorageError:
    """A failed store operation."""

    operation: str  # "read", "write" or "remove"
    key: str
    message: str


class JsonFileStore:
    """One JSON document per key under ``directory``."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_SH)
            try:
                return json.load(f)
            finally:
                fcntl.flock(f, fcntl.LOCK_UN)

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        with tempfile.NamedTemporaryFile(
            "w", dir=self.directory, delete=False, suffix=".json", encoding="utf-8"
        ) as tmp:
            json.dump(value, tmp, ensure_ascii=False)
        os.replace(tmp.name, path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class MemoryStore:
    """In-process store, used when nothing should touch the disk."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so callers can't alias stored state
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


def read_value(store: KeyValueStore, key: str) -> tuple[Any | None, StorageError | None]:
    """Read ``key``; returns ``(value, None)`` or ``(None, error)``."""
    try:
        return store.get(key), None
    except Exception as e:
        logger.warning("storage_read_failed", key=key, error=str(e))
        return None, StorageError("read", key, str(e))


def write_value(store: KeyValueStore, key: str, value: Any) -> StorageError | None:
    """Write ``value`` under ``key``; returns the error instead of raising."""
    try:
        store.set(key, value)
    except Exception as e:
        logger.warning("storage_write_failed", key=key, error=str(e))
        return StorageError("write", key, str(e))
    return None


def remove_value(store: KeyValueStore, key: str) -> StorageError | None:
    try:
        store.remove(key)
    except Exception as e:
        logger.warning("storage_remove_failed", key=key, error=str(e))
        return StorageError("remove", key, str(e))
    return None
