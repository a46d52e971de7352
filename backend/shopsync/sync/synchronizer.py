"""Replays queued operations and applies the retry policy.

Per entry:
1) mark ``syncing``
2) replay against its endpoint
3) accepted -> remove; rejected or unreachable -> ``retry_count + 1``,
   then ``failed`` at the cap (or when the error is non-retryable), else
   back to ``pending``

A pass replays eligible entries strictly one at a time in FIFO order, with
a fixed delay between operations, and absorbs every per-entry error into
its aggregate result.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from opentelemetry import trace
from pydantic import BaseModel

from shopsync.errors import ReplayError, StorageUnavailableError
from shopsync.observability import EventLog, sync_pass_context
from shopsync.queue.operations import OperationQueue
from shopsync.queue.schemas import EntryStatus, QueueEntry
from shopsync.sync.client import ReplayClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class SyncResult(BaseModel):
    synced: int = 0
    failed: int = 0
    total: int = 0


class Synchronizer:
    def __init__(
        self,
        queue: OperationQueue,
        client: ReplayClient,
        *,
        inter_operation_delay_seconds: float = 0.1,
        events: EventLog | None = None,
    ) -> None:
        self.queue = queue
        self.client = client
        self.inter_operation_delay_seconds = inter_operation_delay_seconds
        self.events = events or EventLog()

    async def sync_one(self, entry: QueueEntry) -> bool:
        """Replay one entry. Returns True when the server accepted it."""
        try:
            return await self._sync_one(entry)
        except StorageUnavailableError as exc:
            self.events.record(
                "operation_sync_storage_error",
                logging.ERROR,
                entry_id=entry.id,
                error=str(exc),
            )
            return False

    async def _sync_one(self, entry: QueueEntry) -> bool:
        current = self.queue.set_status(entry.id, EntryStatus.syncing)
        if current is None:
            self.events.record("operation_vanished", logging.WARNING, entry_id=entry.id)
            return False

        try:
            await self.client.replay(current)
        except ReplayError as exc:
            self._record_failure(current, str(exc), retryable=exc.retryable)
            return False
        except Exception as exc:  # noqa: BLE001
            self._record_failure(current, str(exc) or type(exc).__name__, retryable=True)
            return False

        self.queue.remove(current.id)
        self.events.record(
            "operation_synced",
            entry_id=current.id,
            kind=current.kind.value,
            attempt=current.retry_count + 1,
        )
        return True

    def _record_failure(self, entry: QueueEntry, error: str, *, retryable: bool) -> None:
        retry_count = entry.retry_count + 1
        if not retryable or retry_count >= self.queue.max_retries:
            self.queue.set_status(entry.id, EntryStatus.failed, retry_count, error)
            self.events.record(
                "operation_failed_permanently",
                logging.ERROR,
                entry_id=entry.id,
                kind=entry.kind.value,
                retry_count=retry_count,
                retryable=retryable,
                error=error,
            )
            return

        self.queue.set_status(entry.id, EntryStatus.pending, retry_count, error)
        self.events.record(
            "operation_retry_scheduled",
            logging.WARNING,
            entry_id=entry.id,
            kind=entry.kind.value,
            retry_count=retry_count,
            max_retries=self.queue.max_retries,
            error=error,
        )

    async def sync_all(self, entries: Iterable[QueueEntry] | None = None) -> SyncResult:
        """Run one sync pass over the eligible entries.

        When ``entries`` is omitted the queue is read first; storage errors
        from that read propagate to the caller.
        """
        if entries is None:
            entries = self.queue.list_all()
        eligible = sorted(
            (entry for entry in entries if self.queue.is_eligible(entry)),
            key=lambda entry: (entry.enqueued_at, entry.id),
        )

        result = SyncResult(total=len(eligible))
        with sync_pass_context(), tracer.start_as_current_span("offline.sync_pass") as span:
            span.set_attribute("shopsync.sync.eligible", len(eligible))
            self.events.record("sync_pass_started", eligible=len(eligible))

            for index, entry in enumerate(eligible):
                if index and self.inter_operation_delay_seconds > 0:
                    await asyncio.sleep(self.inter_operation_delay_seconds)
                if await self.sync_one(entry):
                    result.synced += 1
                else:
                    result.failed += 1

            span.set_attribute("shopsync.sync.synced", result.synced)
            span.set_attribute("shopsync.sync.failed", result.failed)
            self.events.record(
                "sync_pass_completed",
                logging.INFO if result.failed == 0 else logging.WARNING,
                synced=result.synced,
                failed=result.failed,
                total=result.total,
            )
        return result
