"""Connectivity heartbeat with cancellable, last-probe-wins checks.

The monitor flips between online and offline from three inputs:

1) A periodic GET against the liveness endpoint while the host view is
   visible. Probing pauses while hidden and fires immediately when the view
   becomes visible again.
2) Platform online/offline signals. Offline applies at once; online applies
   optimistically and schedules a confirming probe.
3) Manual ``force_check`` calls.

Every probe gets a sequence number. Starting a probe cancels the one in
flight, and a probe whose sequence is no longer current never writes state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from shopsync.config import Settings
from shopsync.connectivity.state import ConnectivityState

logger = logging.getLogger(__name__)

StateListener = Callable[[ConnectivityState, ConnectivityState], Any]

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}
PLATFORM_OFFLINE_ERROR = "Platform reported offline"


class ConnectivityMonitor:
    """Tracks whether the remote API is reachable."""

    def __init__(
        self,
        ping_url: str,
        *,
        check_interval_seconds: float = 2.0,
        probe_timeout_seconds: float = 1.5,
        online_confirm_delay_seconds: float = 0.1,
        enable_heartbeat: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.ping_url = ping_url
        self.check_interval_seconds = check_interval_seconds
        self.probe_timeout_seconds = probe_timeout_seconds
        self.online_confirm_delay_seconds = online_confirm_delay_seconds
        self.enable_heartbeat = enable_heartbeat

        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._state = ConnectivityState()
        self._listeners: list[StateListener] = []
        self._visible = True
        self._visible_event = asyncio.Event()
        self._visible_event.set()
        self._probe_seq = 0
        self._inflight: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._scheduled: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "ConnectivityMonitor":
        return cls(
            settings.ping_url,
            check_interval_seconds=settings.check_interval_seconds,
            probe_timeout_seconds=settings.probe_timeout_seconds,
            online_confirm_delay_seconds=settings.online_confirm_delay_seconds,
            enable_heartbeat=settings.enable_heartbeat,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # State and subscriptions
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state.is_online

    @property
    def is_visible(self) -> bool:
        return self._visible

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener(previous, current)`` on every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes: Any) -> None:
        previous = self._state
        current = replace(previous, **changes)
        if current == previous:
            return
        self._state = current
        for listener in list(self._listeners):
            try:
                listener(previous, current)
            except Exception:  # noqa: BLE001
                logger.exception("connectivity_listener_failed")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Run an initial probe and start the heartbeat loop."""
        if self._heartbeat_task is not None or not self.enable_heartbeat:
            return
        await self.check()
        self._heartbeat_task = asyncio.create_task(self._heartbeat())
        logger.info(
            "connectivity_monitor_started",
            extra={"ping_url": self.ping_url, "interval": self.check_interval_seconds},
        )

    async def stop(self) -> None:
        tasks = [task for task in (self._heartbeat_task, self._inflight, *self._scheduled) if task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._heartbeat_task = None
        self._inflight = None
        self._scheduled.clear()

        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
        logger.info("connectivity_monitor_stopped")

    async def _heartbeat(self) -> None:
        while True:
            await asyncio.sleep(self.check_interval_seconds)
            if not self._visible:
                await self._visible_event.wait()
                continue
            await self.check()

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.probe_timeout_seconds, transport=self._transport)
        return self._client

    async def _probe(self) -> tuple[bool, str | None]:
        client = self._get_client()
        response = await asyncio.wait_for(
            client.get(self.ping_url, headers=NO_CACHE_HEADERS),
            timeout=self.probe_timeout_seconds,
        )
        if response.is_success:
            return True, None
        return False, f"HTTP {response.status_code}"

    def _cancel_inflight(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None

    async def check(self) -> bool:
        """Probe the liveness endpoint once and return the resulting state."""
        if not self.enable_heartbeat or not self._visible:
            return self._state.is_online

        self._probe_seq += 1
        seq = self._probe_seq
        self._cancel_inflight()
        probe = asyncio.create_task(self._probe())
        self._inflight = probe
        self._update(is_checking=True, last_error=None)

        try:
            await asyncio.wait({probe})
        except asyncio.CancelledError:
            probe.cancel()
            raise

        if seq != self._probe_seq or probe.cancelled():
            logger.debug("connectivity_probe_superseded", extra={"probe_seq": seq})
            return self._state.is_online

        self._inflight = None
        exc = probe.exception()
        if exc is None:
            is_online, error = probe.result()
        elif isinstance(exc, asyncio.TimeoutError):
            is_online, error = False, "Connection check timed out"
        else:
            is_online, error = False, str(exc) or type(exc).__name__

        was_online = self._state.is_online
        self._update(
            is_online=is_online,
            is_checking=False,
            last_checked=datetime.now(timezone.utc),
            last_error=error,
        )
        if was_online != is_online:
            logger.info(
                "connectivity_changed",
                extra={"is_online": is_online, "error": error, "probe_seq": seq},
            )
        return is_online

    async def force_check(self) -> bool:
        return await self.check()

    def _schedule_check(self, delay: float) -> None:
        async def delayed() -> None:
            if delay > 0:
                await asyncio.sleep(delay)
            await self.check()

        task = asyncio.get_running_loop().create_task(delayed())
        self._scheduled.add(task)
        task.add_done_callback(self._scheduled.discard)

    # ------------------------------------------------------------------
    # Platform signals
    # ------------------------------------------------------------------

    def notify_platform_online(self) -> None:
        """Optimistically go online, then confirm with a probe."""
        logger.info("platform_online_signal")
        self._update(is_online=True, last_error=None)
        self._schedule_check(self.online_confirm_delay_seconds)

    def notify_platform_offline(self) -> None:
        logger.info("platform_offline_signal")
        # A probe started before the signal must not flip us back online
        self._probe_seq += 1
        self._cancel_inflight()
        self._update(
            is_online=False,
            is_checking=False,
            last_checked=datetime.now(timezone.utc),
            last_error=PLATFORM_OFFLINE_ERROR,
        )

    def set_visible(self, visible: bool) -> None:
        """Pause probing while hidden; probe immediately when shown again."""
        if visible == self._visible:
            return
        self._visible = visible
        if visible:
            self._visible_event.set()
            logger.info("connectivity_resumed")
            self._schedule_check(0)
        else:
            self._visible_event.clear()
            logger.info("connectivity_paused")
