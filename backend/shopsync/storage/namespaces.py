"""Key-value namespaces backing the durable store.

A namespace maps string keys to JSON-serializable values. Two drivers share
the same contract:

- ``FileNamespace`` keeps one JSON document per key in a directory. Writes go
  to a temp file that is renamed over the target, so each key is replaced
  atomically and survives a crash mid-write.
- ``MemoryNamespace`` keeps serialized documents in a dict. It is used when
  the filesystem is unusable and in tests.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.parse import quote, unquote

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class Namespace(ABC):
    """Abstract key-value namespace contract."""

    driver: str = "abstract"

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value for ``key`` or None when absent."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key``. Absent keys are ignored."""

    @abstractmethod
    def keys(self) -> list[str]:
        """Return all keys in the namespace."""

    @abstractmethod
    def values(self) -> list[Any]:
        """Return all stored values."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored keys."""

    @abstractmethod
    def clear(self) -> None:
        """Delete every key."""


class FileNamespace(Namespace):
    driver = "file"

    def __init__(self, directory: Path):
        self.directory = directory

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{_SUFFIX}"

    def _files(self) -> list[Path]:
        if not self.directory.exists():
            return []
        return sorted(self.directory.glob(f"*{_SUFFIX}"))

    def set(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(json.dumps(value, sort_keys=True), encoding="utf-8")
        tmp.replace(path)

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        return [unquote(path.name[: -len(_SUFFIX)]) for path in self._files()]

    def values(self) -> list[Any]:
        values = []
        for path in self._files():
            try:
                values.append(json.loads(path.read_text(encoding="utf-8")))
            except FileNotFoundError:
                # Removed between glob and read
                continue
            except json.JSONDecodeError as exc:
                logger.warning(
                    "storage_record_unreadable",
                    extra={"path": str(path), "error": str(exc)},
                )
        return values

    def count(self) -> int:
        return len(self._files())

    def clear(self) -> None:
        for path in self._files():
            path.unlink(missing_ok=True)


class MemoryNamespace(Namespace):
    driver = "memory"

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def set(self, key: str, value: Any) -> None:
        self._items[key] = json.dumps(value, sort_keys=True)

    def get(self, key: str) -> Any | None:
        raw = self._items.get(key)
        return None if raw is None else json.loads(raw)

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)

    def values(self) -> list[Any]:
        return [json.loads(self._items[key]) for key in sorted(self._items)]

    def count(self) -> int:
        return len(self._items)

    def clear(self) -> None:
        self._items.clear()
