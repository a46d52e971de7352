"""HTTP client replaying queued operations against the remote API."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from shopsync.errors import ReplayError
from shopsync.queue.schemas import QueueEntry
from shopsync.sync.tokens import TokenSource

# Client errors that are still worth retrying when fail-fast is enabled
RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


class ReplayClient:
    """Sends one queue entry to its endpoint and interprets the answer.

    Uses a persistent httpx.AsyncClient so a sync pass reuses connections.
    Acceptance needs a 2xx status and a body that is not ``{"success": false}``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_source: TokenSource | None = None,
        timeout_seconds: float = 15.0,
        fail_fast_on_client_errors: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_source = token_source
        self.timeout_seconds = timeout_seconds
        self.fail_fast_on_client_errors = fail_fast_on_client_errors
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying connection pool."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_source() if self.token_source else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def replay(self, entry: QueueEntry) -> dict[str, Any]:
        """Replay ``entry``; return the response body or raise ``ReplayError``."""
        client = await self._get_client()
        try:
            response = await asyncio.wait_for(
                client.request(entry.method, entry.endpoint, json=entry.body(), headers=self._headers()),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ReplayError(f"Replay timed out after {self.timeout_seconds}s") from exc
        except (httpx.HTTPError, OSError) as exc:
            raise ReplayError(str(exc) or type(exc).__name__) from exc
        return self.interpret(response)

    def is_retryable_status(self, status_code: int) -> bool:
        if not self.fail_fast_on_client_errors:
            return True
        return not (400 <= status_code < 500) or status_code in RETRYABLE_CLIENT_STATUSES

    def interpret(self, response: httpx.Response) -> dict[str, Any]:
        body: Any = None
        if response.content:
            try:
                body = response.json()
            except ValueError:
                if response.is_success:
                    raise ReplayError("Invalid JSON response", status_code=response.status_code)

        if not response.is_success:
            detail = body.get("error") if isinstance(body, dict) else None
            raise ReplayError(
                f"HTTP {response.status_code}: {detail or response.reason_phrase}",
                retryable=self.is_retryable_status(response.status_code),
                status_code=response.status_code,
            )

        if isinstance(body, dict) and body.get("success") is False:
            raise ReplayError(
                str(body.get("error") or "Backend rejected operation"),
                status_code=response.status_code,
            )
        return body if isinstance(body, dict) else {}
