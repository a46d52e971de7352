"""Tests for the durable store, its namespaces and the TTL cache."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from shopsync.storage import CacheStore, DurableStore, FileNamespace, MemoryNamespace


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


# =============================================================================
# Namespaces
# =============================================================================

@pytest.mark.parametrize("make_namespace", [
    lambda tmp_path: FileNamespace(tmp_path / "ns"),
    lambda tmp_path: MemoryNamespace(),
])
def test_namespace_contract(tmp_path, make_namespace):
    """Both drivers store, overwrite, list and delete JSON values."""
    namespace = make_namespace(tmp_path)

    assert namespace.get("missing") is None
    assert namespace.count() == 0

    namespace.set("a", {"value": 1})
    namespace.set("b/with slash", [1, 2, 3])
    namespace.set("a", {"value": 2})

    assert namespace.get("a") == {"value": 2}
    assert namespace.get("b/with slash") == [1, 2, 3]
    assert sorted(namespace.keys()) == ["a", "b/with slash"]
    assert namespace.count() == 2

    namespace.remove("a")
    namespace.remove("a")  # absent keys are ignored
    assert namespace.keys() == ["b/with slash"]

    namespace.clear()
    assert namespace.count() == 0
    assert namespace.values() == []


def test_file_namespace_leaves_no_temp_files(tmp_path):
    namespace = FileNamespace(tmp_path / "ns")
    namespace.set("entry", {"x": 1})

    files = sorted(path.name for path in (tmp_path / "ns").iterdir())
    assert files == ["entry.json"]


def test_file_namespace_skips_unreadable_records(tmp_path):
    """A corrupt document is logged and skipped, not fatal."""
    namespace = FileNamespace(tmp_path / "ns")
    namespace.set("good", {"ok": True})
    (tmp_path / "ns" / "bad.json").write_text("{not json", encoding="utf-8")

    assert namespace.values() == [{"ok": True}]


def test_file_namespace_survives_new_instance(tmp_path):
    FileNamespace(tmp_path / "ns").set("k", {"persisted": True})

    assert FileNamespace(tmp_path / "ns").get("k") == {"persisted": True}


# =============================================================================
# Cache
# =============================================================================

def test_cache_returns_data_within_ttl():
    clock = FakeClock()
    cache = CacheStore(MemoryNamespace(), default_ttl_seconds=60, clock=clock)

    cache.set("products", [{"id": "p1"}])
    clock.now += 59

    assert cache.get("products") == [{"id": "p1"}]


def test_cache_expires_lazily_on_read():
    """Expired items read as absent and are deleted."""
    clock = FakeClock()
    cache = CacheStore(MemoryNamespace(), default_ttl_seconds=60, clock=clock)

    cache.set("products", [{"id": "p1"}])
    cache.set("short", "x", ttl_seconds=5)
    clock.now += 10

    assert cache.get("short") is None
    assert cache.count() == 1
    assert cache.get("products") == [{"id": "p1"}]

    clock.now += 60
    assert cache.get("products") is None
    assert cache.count() == 0


def test_cache_honours_zero_ttl():
    clock = FakeClock()
    cache = CacheStore(MemoryNamespace(), default_ttl_seconds=60, clock=clock)

    cache.set("stale", {"v": 1}, ttl_seconds=0)
    clock.now += 10

    assert cache.get("stale") is None
    assert cache.count() == 0


def test_cache_remove_and_clear():
    cache = CacheStore(MemoryNamespace())
    cache.set("a", 1)
    cache.set("b", 2)

    cache.remove("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert cache.count() == 0


# =============================================================================
# Durable store
# =============================================================================

def test_initialize_uses_file_driver(tmp_path):
    store = DurableStore(tmp_path / "offline")

    assert store.initialize() is True
    assert store.available is True
    assert store.driver == "file"
    # Probe key does not linger
    assert store.queue.count() == 0
    assert store.cache.count() == 0


def test_initialize_degrades_to_memory_when_directory_unusable(tmp_path):
    """A data_dir that is a regular file cannot hold namespaces."""
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied", encoding="utf-8")
    store = DurableStore(blocker)

    assert store.initialize() is False
    assert store.available is False
    assert store.driver == "memory"
    assert store.last_error

    # Still usable for the life of the process
    store.queue.set("k", {"v": 1})
    assert store.queue.get("k") == {"v": 1}
    info = store.storage_info()
    assert info["available"] is False
    assert info["queue_size"] == 1


def test_in_memory_store_never_touches_disk(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    store = DurableStore.in_memory()

    assert store.initialize() is True
    store.queue.set("k", {"v": 1})
    store.cache.set("c", "data")

    assert store.driver == "memory"
    assert list(Path(tmp_path).iterdir()) == []


def test_storage_info_reports_sizes(store):
    store.queue.set("op_1", {"id": "op_1"})
    store.cache.set("products", [])

    info = store.storage_info()

    assert info["available"] is True
    assert info["driver"] == "file"
    assert info["queue_size"] == 1
    assert info["cache_size"] == 1
    assert info["error"] is None


def test_queue_records_are_plain_json_on_disk(store):
    store.queue.set("op_1", {"id": "op_1", "status": "pending"})

    path = store.directory / "pending_operations" / "op_1.json"
    assert json.loads(path.read_text(encoding="utf-8")) == {"id": "op_1", "status": "pending"}
