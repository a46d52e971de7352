"""Durable store holding queue entries and short-lived cached data."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable

from shopsync.storage.namespaces import FileNamespace, MemoryNamespace, Namespace

logger = logging.getLogger(__name__)

PROBE_KEY = "__probe__"
DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60


class CacheStore:
    """Cache namespace whose items carry their own TTL.

    Expired items are treated as absent and deleted on read.
    """

    def __init__(
        self,
        namespace: Namespace,
        default_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.namespace = namespace
        self.default_ttl_seconds = default_ttl_seconds
        self._clock = clock

    def set(self, key: str, data: Any, ttl_seconds: float | None = None) -> None:
        self.namespace.set(
            key,
            {
                "key": key,
                "data": data,
                "stored_at": self._clock(),
                "ttl_seconds": self.default_ttl_seconds if ttl_seconds is None else ttl_seconds,
            },
        )
        logger.debug("cache_set", extra={"cache_key": key})

    def get(self, key: str) -> Any | None:
        item = self.namespace.get(key)
        if item is None:
            return None
        if self._clock() - item["stored_at"] > item["ttl_seconds"]:
            self.namespace.remove(key)
            logger.debug("cache_expired", extra={"cache_key": key})
            return None
        return item["data"]

    def remove(self, key: str) -> None:
        self.namespace.remove(key)

    def clear(self) -> None:
        self.namespace.clear()

    def count(self) -> int:
        return self.namespace.count()


class DurableStore:
    """Owns the queue and cache namespaces.

    ``initialize`` must run before use. If the data directory cannot be
    written the store degrades to in-memory namespaces: queue semantics keep
    working for the life of the process but nothing survives a restart.
    """

    def __init__(
        self,
        directory: Path,
        *,
        queue_namespace: str = "pending_operations",
        cache_namespace: str = "cached_data",
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.directory = directory
        self.queue: Namespace = FileNamespace(directory / queue_namespace)
        self.cache = CacheStore(FileNamespace(directory / cache_namespace), cache_ttl_seconds, clock)
        self.available = False
        self.last_error: str | None = None

    @classmethod
    def in_memory(cls, cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS) -> "DurableStore":
        """Build a store that never touches the filesystem."""
        store = cls(Path("."), cache_ttl_seconds=cache_ttl_seconds)
        store._use_memory()
        return store

    def initialize(self) -> bool:
        """Probe both namespaces with a write-then-delete round trip."""
        try:
            for namespace in (self.queue, self.cache.namespace):
                namespace.set(PROBE_KEY, PROBE_KEY)
                namespace.remove(PROBE_KEY)
        except OSError as exc:
            self.available = False
            self.last_error = str(exc)
            logger.error(
                "storage_unavailable",
                extra={"directory": str(self.directory), "error": str(exc)},
            )
            self._use_memory()
            return False

        self.available = True
        self.last_error = None
        logger.info("storage_initialized", extra={"directory": str(self.directory), "driver": self.driver})
        return True

    @property
    def driver(self) -> str:
        return self.queue.driver

    def storage_info(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "driver": self.queue.driver,
            "cache_driver": self.cache.namespace.driver,
            "directory": str(self.directory),
            "queue_size": self.queue.count(),
            "cache_size": self.cache.count(),
            "error": self.last_error,
        }

    def _use_memory(self) -> None:
        self.queue = MemoryNamespace()
        self.cache = CacheStore(MemoryNamespace(), self.cache.default_ttl_seconds, self.cache._clock)
