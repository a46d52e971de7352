"""Bounded in-process record of offline engine events.

Each event is also written to the standard logger, so the same stream feeds
log sinks and the diagnostics endpoint.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from shopsync.observability.sync_context import get_sync_pass_id

logger = logging.getLogger("shopsync.events")


class SyncEvent(BaseModel):
    name: str
    level: str = "info"
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sync_pass_id: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class EventLog:
    def __init__(self, max_events: int = 200):
        self._events: deque[SyncEvent] = deque(maxlen=max_events)

    def record(self, name: str, level: int = logging.INFO, **fields: Any) -> SyncEvent:
        event = SyncEvent(
            name=name,
            level=logging.getLevelName(level).lower(),
            sync_pass_id=get_sync_pass_id(),
            fields=fields,
        )
        self._events.append(event)
        logger.log(level, name, extra=fields)
        return event

    def recent(self, limit: int | None = None) -> list[SyncEvent]:
        events = list(self._events)
        if limit is not None:
            events = events[-limit:]
        return events

    def clear(self) -> None:
        self._events.clear()
