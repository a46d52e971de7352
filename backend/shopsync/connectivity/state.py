"""Connectivity state snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True, slots=True)
class ConnectivityState:
    """Immutable view of the monitor's current belief about reachability."""

    is_online: bool = True
    is_checking: bool = False
    last_checked: datetime | None = None
    last_error: str | None = None

    @property
    def is_offline(self) -> bool:
        return not self.is_online

    @property
    def is_healthy(self) -> bool:
        return self.is_online and self.last_error is None

    def seconds_since_last_check(self, now: datetime | None = None) -> float | None:
        if self.last_checked is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (now - self.last_checked).total_seconds()

    def is_stale(self, check_interval_seconds: float, now: datetime | None = None) -> bool:
        """True when no probe completed within two check intervals."""
        elapsed = self.seconds_since_last_check(now)
        return elapsed is None or elapsed > check_interval_seconds * 2

    def as_dict(self) -> dict:
        return {
            "is_online": self.is_online,
            "is_offline": self.is_offline,
            "is_checking": self.is_checking,
            "last_checked": self.last_checked,
            "last_error": self.last_error,
        }
