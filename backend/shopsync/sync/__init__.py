"""Replay and synchronization package."""
from shopsync.sync.client import ReplayClient
from shopsync.sync.synchronizer import SyncResult, Synchronizer
from shopsync.sync.tokens import FileTokenSource, StaticTokenSource, token_source_from_settings

__all__ = [
    "FileTokenSource",
    "ReplayClient",
    "StaticTokenSource",
    "SyncResult",
    "Synchronizer",
    "token_source_from_settings",
]
