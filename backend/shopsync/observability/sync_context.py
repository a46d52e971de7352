"""Sync-pass scoped context utilities."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator
from uuid import uuid4

_sync_pass_id: ContextVar[str | None] = ContextVar("sync_pass_id", default=None)


def get_sync_pass_id() -> str | None:
    """Return the id of the sync pass running in this context, if any."""
    return _sync_pass_id.get()


@contextmanager
def sync_pass_context(sync_pass_id: str | None = None) -> Iterator[str]:
    """Bind a sync pass id for the duration of the block."""
    pass_id = sync_pass_id or uuid4().hex[:12]
    token = _sync_pass_id.set(pass_id)
    try:
        yield pass_id
    finally:
        _sync_pass_id.reset(token)
