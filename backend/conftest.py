# conftest.py - Global pytest configuration
"""
Global pytest configuration.

Shared fixtures build the offline engine against a temporary data directory
and an in-process HTTP transport, so no test touches the network.
"""
import httpx
import pytest

from shopsync.config import Settings
from shopsync.observability import EventLog
from shopsync.queue import OperationQueue
from shopsync.storage import DurableStore


class FakeShopApi:
    """In-process stand-in for the shop API behind an httpx.MockTransport.

    ``responses`` maps a path to a list of responses served in order; the
    last one repeats. Paths without responses answer 200 ``{"success": true}``.
    Set ``online`` to False to make every request raise ConnectError.
    """

    def __init__(self):
        self.online = True
        self.requests: list[httpx.Request] = []
        self.responses: dict[str, list[httpx.Response]] = {}

    def respond(self, path: str, *responses: httpx.Response) -> None:
        self.responses[path] = list(responses)

    def calls_to(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        if not self.online:
            raise httpx.ConnectError("Connection refused", request=request)
        self.requests.append(request)
        queued = self.responses.get(request.url.path)
        if queued:
            template = queued.pop(0) if len(queued) > 1 else queued[0]
            return httpx.Response(template.status_code, headers=template.headers, content=template.content)
        if request.url.path == "/api/ping":
            return httpx.Response(200, json={"ok": True, "status": "online"})
        return httpx.Response(200, json={"success": True})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_api():
    return FakeShopApi()


@pytest.fixture
def settings(tmp_path):
    """Settings with timings shrunk for tests."""
    return Settings(
        api_base_url="http://shop.test",
        data_dir=str(tmp_path / "offline"),
        check_interval_seconds=60.0,
        probe_timeout_seconds=0.5,
        online_confirm_delay_seconds=0.01,
        reconnect_debounce_seconds=0.05,
        status_refresh_interval_seconds=60.0,
        inter_operation_delay_seconds=0.0,
        replay_timeout_seconds=1.0,
        sync_on_start=False,
    )


@pytest.fixture
def store(tmp_path):
    durable = DurableStore(tmp_path / "offline")
    assert durable.initialize()
    return durable


@pytest.fixture
def queue(store):
    return OperationQueue(store, max_retries=3)


@pytest.fixture
def events():
    return EventLog()
