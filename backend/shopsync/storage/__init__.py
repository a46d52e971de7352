"""Storage package init."""
from shopsync.storage.namespaces import FileNamespace, MemoryNamespace, Namespace
from shopsync.storage.store import CacheStore, DurableStore

__all__ = [
    "CacheStore",
    "DurableStore",
    "FileNamespace",
    "MemoryNamespace",
    "Namespace",
]
