"""Observability package: logging, events and sync-pass context."""
from shopsync.observability.events import EventLog, SyncEvent
from shopsync.observability.sync_context import get_sync_pass_id, sync_pass_context

__all__ = ["EventLog", "SyncEvent", "get_sync_pass_id", "sync_pass_context"]
