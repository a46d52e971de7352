"""Offline orchestrator - process-wide lifecycle of the offline engine.

Ties the connectivity monitor, the synchronizer and the operation queue
together:

- start: initialize storage, recover abandoned entries, first probe, and
  one sync pass when online and ``sync_on_start`` is set
- offline -> online: wait out the reconnect debounce, then sync if the
  queue still holds pending entries
- housekeeping: recompute queue-depth counters on a fixed interval and,
  while online with ``auto_sync``, start a pass for pending entries (new
  writes and entries waiting for their next retry)
- manual: force sync, purge failed entries, diagnostic snapshot

At most one sync pass runs at a time; overlapping requests are dropped.
Passes started in the background are tracked and cancelled by ``stop``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pydantic import BaseModel, Field

from shopsync.config import Settings, get_settings
from shopsync.connectivity import ConnectivityMonitor, ConnectivityState
from shopsync.errors import OfflineError, StorageUnavailableError
from shopsync.observability import EventLog, SyncEvent
from shopsync.queue import OfflineFacades, OperationQueue, QueueCounts, QueueEntry
from shopsync.storage import DurableStore
from shopsync.sync import ReplayClient, SyncResult, Synchronizer, token_source_from_settings

logger = logging.getLogger(__name__)

STATUS_REFRESH_JOB_ID = "offline_status_refresh"


class OfflineStatus(BaseModel):
    """Read-only aggregate for status indicators."""

    is_online: bool
    is_offline: bool
    is_checking: bool
    last_checked: datetime | None = None
    connection_error: str | None = None

    pending_count: int = 0
    syncing_count: int = 0
    failed_count: int = 0
    total_count: int = 0

    is_syncing: bool = False
    last_sync_time: datetime | None = None
    last_sync_result: SyncResult | None = None
    sync_error: str | None = None
    storage_available: bool = True

    has_unsynced_data: bool = False
    is_healthy: bool = False


class QueueDiagnostics(BaseModel):
    pending_count: int
    syncing_count: int
    failed_count: int
    total_count: int
    operations: list[QueueEntry] = Field(default_factory=list)
    storage_info: dict[str, Any] = Field(default_factory=dict)


class OfflineOrchestrator:
    def __init__(
        self,
        *,
        store: DurableStore,
        queue: OperationQueue,
        monitor: ConnectivityMonitor,
        synchronizer: Synchronizer,
        events: EventLog | None = None,
        auto_sync: bool = True,
        sync_on_start: bool = True,
        reconnect_debounce_seconds: float = 1.0,
        status_refresh_interval_seconds: float = 5.0,
    ) -> None:
        self.store = store
        self.queue = queue
        self.monitor = monitor
        self.synchronizer = synchronizer
        self.events = events or synchronizer.events
        self.facades = OfflineFacades.for_queue(queue)
        self.auto_sync = auto_sync
        self.sync_on_start = sync_on_start
        self.reconnect_debounce_seconds = reconnect_debounce_seconds
        self.status_refresh_interval_seconds = status_refresh_interval_seconds

        self.storage_available = True
        self._counts = QueueCounts()
        self._is_syncing = False
        self._last_sync_time: datetime | None = None
        self._last_sync_result: SyncResult | None = None
        self._sync_error: str | None = None
        self._debounce_task: asyncio.Task | None = None
        self._sync_task: asyncio.Task | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._unsubscribe = None
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return

        self.storage_available = self.store.initialize()
        if not self.storage_available:
            self.events.record(
                "storage_degraded",
                logging.ERROR,
                directory=str(self.store.directory),
                error=self.store.last_error,
            )

        recovered = self.queue.recover_abandoned()
        self.refresh_status()

        self._unsubscribe = self.monitor.subscribe(self._on_connectivity_change)
        await self.monitor.start()

        self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        self._scheduler.add_job(
            self._housekeeping,
            trigger=IntervalTrigger(seconds=self.status_refresh_interval_seconds),
            id=STATUS_REFRESH_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()
        self._started = True

        self.events.record(
            "orchestrator_started",
            is_online=self.monitor.is_online,
            storage_driver=self.store.driver,
            recovered=recovered,
            pending=self._counts.pending,
        )

        if self.sync_on_start and self.monitor.is_online:
            await self.perform_sync()

    async def stop(self) -> None:
        if not self._started:
            return
        self._cancel_debounce()
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self._cancel_background_sync()
        await self.monitor.stop()
        await self.synchronizer.client.close()
        self._started = False
        self.events.record("orchestrator_stopped")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def refresh_status(self) -> QueueCounts:
        """Recompute queue-depth counters; keeps the last counts on storage errors."""
        try:
            self._counts = self.queue.counts()
        except StorageUnavailableError as exc:
            logger.error("queue_status_refresh_failed", extra={"error": str(exc)})
        return self._counts

    async def _housekeeping(self) -> None:
        counts = self.refresh_status()
        if self.auto_sync and counts.pending > 0 and self.monitor.is_online:
            self._launch_sync("pending_operations")

    @property
    def is_syncing(self) -> bool:
        return self._is_syncing

    @property
    def status(self) -> OfflineStatus:
        connectivity: ConnectivityState = self.monitor.state
        counts = self._counts
        return OfflineStatus(
            is_online=connectivity.is_online,
            is_offline=connectivity.is_offline,
            is_checking=connectivity.is_checking,
            last_checked=connectivity.last_checked,
            connection_error=connectivity.last_error,
            pending_count=counts.pending,
            syncing_count=counts.syncing,
            failed_count=counts.failed,
            total_count=counts.total,
            is_syncing=self._is_syncing,
            last_sync_time=self._last_sync_time,
            last_sync_result=self._last_sync_result,
            sync_error=self._sync_error,
            storage_available=self.storage_available,
            has_unsynced_data=counts.pending > 0 or counts.failed > 0,
            is_healthy=connectivity.is_online and counts.failed == 0 and self._sync_error is None,
        )

    def get_queue_status(self) -> QueueDiagnostics:
        """Full diagnostic snapshot. Storage errors propagate."""
        entries = self.queue.list_all()
        counts = self.queue.counts()
        return QueueDiagnostics(
            pending_count=counts.pending,
            syncing_count=counts.syncing,
            failed_count=counts.failed,
            total_count=counts.total,
            operations=entries,
            storage_info=self.store.storage_info(),
        )

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def perform_sync(self) -> SyncResult | None:
        """Run one sync pass unless offline or one is already running."""
        if self._is_syncing or not self.monitor.is_online:
            self.events.record("sync_skipped", reason="busy" if self._is_syncing else "offline")
            return None

        self._is_syncing = True
        self._sync_error = None
        result: SyncResult | None = None
        try:
            result = await self.synchronizer.sync_all(self.queue.list_all())
            self._last_sync_time = datetime.now(timezone.utc)
            self._last_sync_result = result
            if result.total > 0 and result.synced == 0:
                self._sync_error = f"Failed to sync {result.failed} operations"
        except Exception as exc:  # noqa: BLE001
            self._sync_error = str(exc) or "Sync failed"
            self.events.record("sync_pass_error", logging.ERROR, error=self._sync_error)
        finally:
            self._is_syncing = False
            self.refresh_status()
        return result

    async def force_sync(self) -> SyncResult | None:
        """User-initiated sync. Re-probes first and raises OfflineError when unreachable."""
        if not await self.monitor.force_check():
            self.refresh_status()
            raise OfflineError("Cannot sync while offline")
        return await self.perform_sync()

    def clear_failed_operations(self) -> int:
        try:
            removed = self.queue.purge_failed()
        except StorageUnavailableError as exc:
            self.events.record("clear_failed_error", logging.ERROR, error=str(exc))
            return 0
        self.refresh_status()
        self.events.record("failed_operations_cleared", removed=removed)
        return removed

    def recent_events(self, limit: int | None = None) -> list[SyncEvent]:
        return self.events.recent(limit)

    # ------------------------------------------------------------------
    # Reconnect handling
    # ------------------------------------------------------------------

    def _on_connectivity_change(self, previous: ConnectivityState, current: ConnectivityState) -> None:
        if previous.is_online == current.is_online:
            return
        if not current.is_online:
            self._cancel_debounce()
            self.events.record("connection_lost", error=current.last_error)
            return

        self.events.record("connection_restored")
        if self.auto_sync:
            self._cancel_debounce()
            self._debounce_task = asyncio.get_running_loop().create_task(self._sync_after_debounce())

    async def _sync_after_debounce(self) -> None:
        await asyncio.sleep(self.reconnect_debounce_seconds)
        # Past the debounce window a new transition must not cancel the pass
        self._debounce_task = None
        counts = self.refresh_status()
        if counts.pending > 0 and self.monitor.is_online:
            self._launch_sync("connection_restored")

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    # ------------------------------------------------------------------
    # Background passes
    # ------------------------------------------------------------------

    def _launch_sync(self, reason: str) -> bool:
        """Start a tracked background pass unless one is already running."""
        if self._is_syncing or (self._sync_task is not None and not self._sync_task.done()):
            return False
        self.events.record("auto_sync_triggered", reason=reason, pending=self._counts.pending)
        task = asyncio.get_running_loop().create_task(self.perform_sync())
        task.add_done_callback(self._forget_sync_task)
        self._sync_task = task
        return True

    def _forget_sync_task(self, task: asyncio.Task) -> None:
        if self._sync_task is task:
            self._sync_task = None

    async def _cancel_background_sync(self) -> None:
        """Cancel a background pass; an interrupted entry stays ``syncing`` until the next start."""
        task = self._sync_task
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self._sync_task = None
        self.events.record("sync_pass_cancelled", logging.WARNING)


def build_orchestrator(
    settings: Settings | None = None,
    *,
    store: DurableStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OfflineOrchestrator:
    """Wire the offline engine from settings.

    ``transport`` replaces the network for both probes and replays.
    """
    settings = settings or get_settings()
    events = EventLog(settings.event_history_size)
    store = store or DurableStore(
        Path(settings.data_dir),
        queue_namespace=settings.queue_namespace,
        cache_namespace=settings.cache_namespace,
        cache_ttl_seconds=settings.cache_default_ttl_seconds,
    )
    queue = OperationQueue(store, max_retries=settings.max_retries)

    monitor = ConnectivityMonitor.from_settings(settings, transport=transport)

    client = ReplayClient(
        settings.api_base_url,
        token_source=token_source_from_settings(settings),
        timeout_seconds=settings.replay_timeout_seconds,
        fail_fast_on_client_errors=settings.fail_fast_on_client_errors,
        transport=transport,
    )
    synchronizer = Synchronizer(
        queue,
        client,
        inter_operation_delay_seconds=settings.inter_operation_delay_seconds,
        events=events,
    )
    return OfflineOrchestrator(
        store=store,
        queue=queue,
        monitor=monitor,
        synchronizer=synchronizer,
        events=events,
        auto_sync=settings.auto_sync,
        sync_on_start=settings.sync_on_start,
        reconnect_debounce_seconds=settings.reconnect_debounce_seconds,
        status_refresh_interval_seconds=settings.status_refresh_interval_seconds,
    )
