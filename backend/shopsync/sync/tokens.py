"""Auth token sources read at replay time.

Tokens are issued and refreshed elsewhere; these only hand back whatever
is current when a request is about to be sent.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

from shopsync.config import Settings

TokenSource = Callable[[], str | None]


class StaticTokenSource:
    def __init__(self, token: str | None = None):
        self.token = token

    def set(self, token: str | None) -> None:
        self.token = token

    def __call__(self) -> str | None:
        return self.token or None


class FileTokenSource:
    """Re-reads the token file on every call."""

    def __init__(self, path: Path):
        self.path = path

    def __call__(self) -> str | None:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None


def token_source_from_settings(settings: Settings) -> TokenSource:
    if settings.auth_token_file:
        return FileTokenSource(Path(settings.auth_token_file))
    return StaticTokenSource(settings.auth_token)
