"""Tests for the offline HTTP API."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from shopsync.api import offline_router, ping_router
from shopsync.queue import EntryStatus
from shopsync.orchestrator import build_orchestrator


@pytest.fixture
def orchestrator(settings, fake_api):
    orchestrator = build_orchestrator(settings, transport=fake_api.transport)
    orchestrator.store.initialize()
    return orchestrator


@pytest.fixture
def client(orchestrator):
    app = FastAPI()
    app.include_router(ping_router)
    app.include_router(offline_router)
    app.state.orchestrator = orchestrator
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(orchestrator.monitor.stop)
        test_client.portal.call(orchestrator.synchronizer.client.close)


def test_ping(client):
    response = client.get("/api/ping")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["status"] == "online"
    assert isinstance(body["timestamp"], int)
    assert "no-store" in response.headers["cache-control"]


def test_status_starts_empty(client):
    response = client.get("/api/offline/status")

    assert response.status_code == 200
    body = response.json()
    assert body["is_online"] is True
    assert body["pending_count"] == 0
    assert body["has_unsynced_data"] is False


# =============================================================================
# Enqueue
# =============================================================================

def test_queue_sale_with_camel_case_body(client, orchestrator):
    response = client.post(
        "/api/offline/queue/sales",
        json={"productSales": [{"productId": "p1", "soldQuantity": 2}], "by": "cashier-1"},
    )

    assert response.status_code == 202
    entry_id = response.json()["id"]
    assert entry_id.startswith("op_")
    assert orchestrator.queue.get(entry_id).body() == {
        "productSales": [{"productId": "p1", "soldQuantity": 2}],
        "by": "cashier-1",
    }
    assert client.get("/api/offline/status").json()["pending_count"] == 1
    assert client.get("/api/offline/queue/summary").json()["sales"] == 1


def test_queue_sale_rejects_non_positive_quantity(client, orchestrator):
    response = client.post(
        "/api/offline/queue/sales",
        json={"productSales": [{"productId": "p1", "soldQuantity": 0}]},
    )

    assert response.status_code == 422
    assert orchestrator.queue.count() == 0


def test_queue_withdrawal_rejected_by_queue_validation(client, orchestrator):
    """Payload rules enforced by the queue also map to 422."""
    response = client.post("/api/offline/queue/withdrawals", json={"amount": -5, "reason": "oops"})

    assert response.status_code == 422
    assert orchestrator.queue.count() == 0


def test_queue_product_and_services(client):
    product = client.post(
        "/api/offline/queue/products",
        json={"name": "Wax", "quantity": 4, "quantityType": "unit", "pricePerUnit": 9.5},
    )
    services = client.post(
        "/api/offline/queue/services",
        json={"serviceOperations": [
            {"name": "Cut", "price": 15, "workerName": "Ana", "workerRole": "barber", "workerId": "w1"},
        ]},
    )

    assert product.status_code == 202
    assert services.status_code == 202
    summary = client.get("/api/offline/queue/summary").json()
    assert summary["products"] == 1
    assert summary["services"] == 1
    assert summary["pending"] == 2


def test_queue_diagnostics(client):
    client.post("/api/offline/queue/withdrawals", json={"amount": 5, "reason": "float"})

    body = client.get("/api/offline/queue").json()

    assert body["total_count"] == 1
    assert body["operations"][0]["kind"] == "withdrawal"
    assert body["operations"][0]["status"] == "pending"
    assert body["storage_info"]["driver"] == "file"


# =============================================================================
# Sync and maintenance
# =============================================================================

def test_force_sync_replays_queue(client, fake_api):
    client.post("/api/offline/queue/withdrawals", json={"amount": 5, "reason": "float"})

    response = client.post("/api/offline/sync")

    assert response.status_code == 200
    assert response.json() == {"synced": 1, "failed": 0, "total": 1}
    assert len(fake_api.calls_to("/api/withdrawals")) == 1
    assert client.get("/api/offline/status").json()["pending_count"] == 0


def test_force_sync_offline_is_503(client, fake_api):
    fake_api.online = False

    response = client.post("/api/offline/sync")

    assert response.status_code == 503
    assert response.json()["detail"] == "Cannot sync while offline"


def test_clear_failed(client, orchestrator):
    entry_id = orchestrator.facades.sales.queue_sale("p1", 1)
    orchestrator.queue.set_status(entry_id, EntryStatus.failed, 3, "HTTP 500: boom")

    response = client.delete("/api/offline/failed")

    assert response.json() == {"removed": 1}
    assert orchestrator.queue.count() == 0


def test_events_endpoint_lists_recent_events(client):
    client.post("/api/offline/queue/withdrawals", json={"amount": 5, "reason": "float"})
    client.post("/api/offline/sync")

    names = [event["name"] for event in client.get("/api/offline/events", params={"limit": 10}).json()]

    assert "sync_pass_started" in names
    assert "operation_synced" in names


# =============================================================================
# Platform signals
# =============================================================================

def test_connectivity_signal(client):
    offline = client.post("/api/offline/connectivity", json={"online": False}).json()
    assert offline["is_offline"] is True
    assert offline["connection_error"] == "Platform reported offline"

    online = client.post("/api/offline/connectivity", json={"online": True}).json()
    assert online["is_online"] is True


def test_visibility_signal(client, orchestrator):
    client.post("/api/offline/visibility", json={"visible": False})
    assert orchestrator.monitor.is_visible is False

    client.post("/api/offline/visibility", json={"visible": True})
    assert orchestrator.monitor.is_visible is True


# =============================================================================
# Cache
# =============================================================================

def test_cache_round_trip(client):
    key = "products"

    assert client.get(f"/api/offline/cache/{key}").status_code == 404

    put = client.put(f"/api/offline/cache/{key}", json={"data": [{"id": "p1"}], "ttl_seconds": 60})
    assert put.status_code == 204
    assert client.get(f"/api/offline/cache/{key}").json() == {"key": key, "data": [{"id": "p1"}]}

    assert client.delete(f"/api/offline/cache/{key}").status_code == 204
    assert client.get(f"/api/offline/cache/{key}").status_code == 404
