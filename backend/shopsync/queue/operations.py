"""Operation queue: CRUD over queue entries in the durable store."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from shopsync.config import MAX_RETRIES
from shopsync.errors import InvalidOperationError, StorageUnavailableError
from shopsync.queue.schemas import (
    AnyPayload,
    EntryStatus,
    HttpMethod,
    OperationKind,
    OperationPayload,
    QueueCounts,
    QueueEntry,
    QueueSummary,
)
from shopsync.storage import DurableStore

logger = logging.getLogger(__name__)

_payload_adapter: TypeAdapter[Any] = TypeAdapter(AnyPayload)

SALE_KINDS = (OperationKind.product_sale, OperationKind.withdrawal)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OperationQueue:
    """Persistent FIFO of pending writes.

    Every mutation rewrites the full record under its id, so repeated or
    racing writes for the same id are idempotent overwrites. Mutating an id
    that no longer exists is a no-op.
    """

    def __init__(
        self,
        store: DurableStore,
        *,
        max_retries: int = MAX_RETRIES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.max_retries = max_retries
        self._clock = clock
        self._last_enqueued_at: datetime | None = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def enqueue(
        self,
        kind: OperationKind | str,
        payload: OperationPayload | dict[str, Any],
        endpoint: str,
        method: HttpMethod = "POST",
    ) -> str:
        """Persist a new pending entry and return its id."""
        try:
            kind = OperationKind(kind)
        except ValueError as exc:
            raise InvalidOperationError(f"Unknown operation kind: {kind}") from exc

        if isinstance(payload, OperationPayload):
            typed = payload
        else:
            try:
                typed = _payload_adapter.validate_python({**payload, "kind": kind.value})
            except ValidationError as exc:
                raise InvalidOperationError(f"Invalid {kind.value} payload: {exc}") from exc

        if typed.kind != kind.value:
            raise InvalidOperationError(f"Payload kind {typed.kind} does not match {kind.value}")

        enqueued_at = self._next_timestamp()
        entry = QueueEntry(
            id=self._new_id(enqueued_at),
            payload=typed,
            endpoint=endpoint,
            method=method,
            enqueued_at=enqueued_at,
        )
        self._write(entry)
        logger.info(
            "operation_queued",
            extra={"entry_id": entry.id, "kind": kind.value, "endpoint": endpoint},
        )
        return entry.id

    def set_status(
        self,
        entry_id: str,
        status: EntryStatus | str,
        retry_count: int | None = None,
        last_error: str | None = None,
    ) -> QueueEntry | None:
        entry = self.get(entry_id)
        if entry is None:
            logger.debug("queue_entry_missing", extra={"entry_id": entry_id})
            return None

        entry.status = EntryStatus(status)
        if retry_count is not None:
            # Retry budget is never forgiven
            entry.retry_count = max(entry.retry_count, retry_count)
        if last_error is not None:
            entry.last_error = last_error
        self._write(entry)
        logger.debug(
            "operation_status_updated",
            extra={"entry_id": entry_id, "status": entry.status.value, "retry_count": entry.retry_count},
        )
        return entry

    def remove(self, entry_id: str) -> None:
        try:
            self.store.queue.remove(entry_id)
        except OSError as exc:
            raise StorageUnavailableError(str(exc)) from exc
        logger.debug("operation_removed", extra={"entry_id": entry_id})

    def recover_abandoned(self) -> int:
        """Return entries left ``syncing`` by a previous process to ``pending``."""
        recovered = 0
        for entry in self.list_all():
            if entry.status == EntryStatus.syncing:
                self.set_status(entry.id, EntryStatus.pending)
                recovered += 1
        if recovered:
            logger.warning("operations_recovered", extra={"count": recovered})
        return recovered

    def purge_failed(self) -> int:
        failed = [entry for entry in self.list_all() if entry.status == EntryStatus.failed]
        for entry in failed:
            self.remove(entry.id)
        if failed:
            logger.info("failed_operations_purged", extra={"count": len(failed)})
        return len(failed)

    def clear(self) -> None:
        try:
            self.store.queue.clear()
        except OSError as exc:
            raise StorageUnavailableError(str(exc)) from exc
        logger.warning("queue_cleared")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entry_id: str) -> QueueEntry | None:
        try:
            raw = self.store.queue.get(entry_id)
        except OSError as exc:
            raise StorageUnavailableError(str(exc)) from exc
        if raw is None:
            return None
        return QueueEntry.model_validate(raw)

    def list_all(self) -> list[QueueEntry]:
        """Return every entry, oldest first."""
        try:
            raw_entries = self.store.queue.values()
        except OSError as exc:
            raise StorageUnavailableError(str(exc)) from exc

        entries = []
        for raw in raw_entries:
            try:
                entries.append(QueueEntry.model_validate(raw))
            except ValidationError as exc:
                logger.warning("queue_entry_invalid", extra={"error": str(exc)})
        return sorted(entries, key=lambda entry: (entry.enqueued_at, entry.id))

    def list_by_kind(self, *kinds: OperationKind | str) -> list[QueueEntry]:
        wanted = {OperationKind(kind) for kind in kinds}
        return [entry for entry in self.list_all() if entry.kind in wanted]

    def count(self) -> int:
        try:
            return self.store.queue.count()
        except OSError as exc:
            raise StorageUnavailableError(str(exc)) from exc

    def counts(self) -> QueueCounts:
        entries = self.list_all()
        return QueueCounts(
            pending=sum(1 for entry in entries if entry.status == EntryStatus.pending),
            syncing=sum(1 for entry in entries if entry.status == EntryStatus.syncing),
            failed=sum(1 for entry in entries if entry.status == EntryStatus.failed),
            total=len(entries),
        )

    def summary(self) -> QueueSummary:
        entries = self.list_all()
        counts = self.counts()
        return QueueSummary(
            **counts.model_dump(),
            sales=sum(1 for entry in entries if entry.kind in SALE_KINDS),
            products=sum(1 for entry in entries if entry.kind == OperationKind.product_add),
            services=sum(1 for entry in entries if entry.kind == OperationKind.service_add),
        )

    def is_eligible(self, entry: QueueEntry) -> bool:
        """True when a sync pass should attempt ``entry``."""
        return entry.status == EntryStatus.pending and entry.retry_count < self.max_retries

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write(self, entry: QueueEntry) -> None:
        try:
            self.store.queue.set(entry.id, entry.model_dump(mode="json"))
        except OSError as exc:
            raise StorageUnavailableError(str(exc)) from exc

    def _next_timestamp(self) -> datetime:
        # Strictly increasing within a process so FIFO order is total
        now = self._clock()
        if self._last_enqueued_at is not None and now <= self._last_enqueued_at:
            now = self._last_enqueued_at + timedelta(microseconds=1)
        self._last_enqueued_at = now
        return now

    def _new_id(self, enqueued_at: datetime) -> str:
        while True:
            entry_id = f"op_{int(enqueued_at.timestamp() * 1000)}_{uuid4().hex[:9]}"
            if self.store.queue.get(entry_id) is None:
                return entry_id
