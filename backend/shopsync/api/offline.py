"""Offline queue API - status, manual sync and enqueue-by-kind for UI clients."""

import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field

from shopsync.errors import InvalidOperationError, OfflineError, StorageUnavailableError
from shopsync.observability import SyncEvent
from shopsync.orchestrator import OfflineOrchestrator, OfflineStatus, QueueDiagnostics
from shopsync.queue import ProductSaleLine, QueueSummary, ServiceOperationLine
from shopsync.queue.schemas import RequestBody
from shopsync.sync import SyncResult

router = APIRouter(prefix="/api/offline", tags=["offline"])
ping_router = APIRouter(prefix="/api", tags=["health"])
logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def get_orchestrator(request: Request) -> OfflineOrchestrator:
    return request.app.state.orchestrator


# --- Request / Response Models ---

class ProductSaleRequest(RequestBody):
    product_sales: list[ProductSaleLine] = Field(min_length=1)
    by: str | None = None
    payment_image_url: str | None = None


class WithdrawalRequest(RequestBody):
    amount: float
    reason: str


class ProductRequest(RequestBody):
    name: str
    quantity: int
    quantity_type: str
    price_per_unit: float


class ServicesRequest(RequestBody):
    service_operations: list[ServiceOperationLine] = Field(min_length=1)


class QueuedResponse(BaseModel):
    id: str
    status: str = "pending"


class ConnectivitySignal(BaseModel):
    online: bool


class VisibilitySignal(BaseModel):
    visible: bool


class CachePutRequest(BaseModel):
    data: Any
    ttl_seconds: float | None = None


def _queued(orchestrator: OfflineOrchestrator, enqueue) -> QueuedResponse:
    try:
        entry_id = enqueue()
    except InvalidOperationError as exc:
        logger.warning("offline_enqueue_rejected", extra={"error": str(exc)})
        raise HTTPException(status_code=422, detail=str(exc))
    except StorageUnavailableError as exc:
        raise HTTPException(status_code=503, detail=f"Offline storage unavailable: {exc}")
    orchestrator.refresh_status()
    return QueuedResponse(id=entry_id)


# --- Liveness ---

@ping_router.get("/ping")
async def ping(response: Response):
    """Lightweight liveness answer for connectivity heartbeats."""
    response.headers.update(NO_CACHE_HEADERS)
    return {"ok": True, "timestamp": int(time.time() * 1000), "status": "online"}


# --- Status & diagnostics ---

@router.get("/status", response_model=OfflineStatus)
async def get_status(orchestrator: OfflineOrchestrator = Depends(get_orchestrator)):
    return orchestrator.status


@router.get("/queue", response_model=QueueDiagnostics)
async def get_queue(orchestrator: OfflineOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.get_queue_status()
    except StorageUnavailableError as exc:
        raise HTTPException(status_code=503, detail=f"Offline storage unavailable: {exc}")


@router.get("/queue/summary", response_model=QueueSummary)
async def get_queue_summary(orchestrator: OfflineOrchestrator = Depends(get_orchestrator)):
    try:
        return orchestrator.queue.summary()
    except StorageUnavailableError as exc:
        raise HTTPException(status_code=503, detail=f"Offline storage unavailable: {exc}")


@router.get("/events", response_model=list[SyncEvent])
async def get_events(
    limit: int = Query(50, ge=1, le=1000),
    orchestrator: OfflineOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.recent_events(limit)


# --- Manual actions ---

@router.post("/sync", response_model=SyncResult | None)
async def force_sync(orchestrator: OfflineOrchestrator = Depends(get_orchestrator)):
    """Sync now. Returns null when a pass is already running."""
    try:
        return await orchestrator.force_sync()
    except OfflineError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@router.delete("/failed")
async def clear_failed(orchestrator: OfflineOrchestrator = Depends(get_orchestrator)):
    return {"removed": orchestrator.clear_failed_operations()}


# --- Enqueue by kind ---

@router.post("/queue/sales", response_model=QueuedResponse, status_code=202)
async def queue_product_sale(
    request: ProductSaleRequest,
    orchestrator: OfflineOrchestrator = Depends(get_orchestrator),
):
    return _queued(
        orchestrator,
        lambda: orchestrator.facades.sales.queue_product_sale(
            request.product_sales, by=request.by, payment_image_url=request.payment_image_url
        ),
    )


@router.post("/queue/withdrawals", response_model=QueuedResponse, status_code=202)
async def queue_withdrawal(
    request: WithdrawalRequest,
    orchestrator: OfflineOrchestrator = Depends(get_orchestrator),
):
    return _queued(
        orchestrator,
        lambda: orchestrator.facades.sales.queue_withdrawal(request.amount, request.reason),
    )


@router.post("/queue/products", response_model=QueuedResponse, status_code=202)
async def queue_product(
    request: ProductRequest,
    orchestrator: OfflineOrchestrator = Depends(get_orchestrator),
):
    return _queued(
        orchestrator,
        lambda: orchestrator.facades.products.queue_product(
            request.name, request.quantity, request.quantity_type, request.price_per_unit
        ),
    )


@router.post("/queue/services", response_model=QueuedResponse, status_code=202)
async def queue_services(
    request: ServicesRequest,
    orchestrator: OfflineOrchestrator = Depends(get_orchestrator),
):
    return _queued(
        orchestrator,
        lambda: orchestrator.facades.services.queue_services(request.service_operations),
    )


# --- Platform signals ---

@router.post("/connectivity", response_model=OfflineStatus)
async def report_connectivity(
    signal: ConnectivitySignal,
    orchestrator: OfflineOrchestrator = Depends(get_orchestrator),
):
    if signal.online:
        orchestrator.monitor.notify_platform_online()
    else:
        orchestrator.monitor.notify_platform_offline()
    return orchestrator.status


@router.post("/visibility", response_model=OfflineStatus)
async def report_visibility(
    signal: VisibilitySignal,
    orchestrator: OfflineOrchestrator = Depends(get_orchestrator),
):
    orchestrator.monitor.set_visible(signal.visible)
    return orchestrator.status


# --- Cache ---

@router.get("/cache/{key}")
async def get_cached(key: str, orchestrator: OfflineOrchestrator = Depends(get_orchestrator)):
    data = orchestrator.store.cache.get(key)
    if data is None:
        raise HTTPException(status_code=404, detail=f"No cached data for {key}")
    return {"key": key, "data": data}


@router.put("/cache/{key}", status_code=204)
async def put_cached(
    key: str,
    request: CachePutRequest,
    orchestrator: OfflineOrchestrator = Depends(get_orchestrator),
):
    orchestrator.store.cache.set(key, request.data, request.ttl_seconds)
    return Response(status_code=204)


@router.delete("/cache/{key}", status_code=204)
async def delete_cached(key: str, orchestrator: OfflineOrchestrator = Depends(get_orchestrator)):
    orchestrator.store.cache.remove(key)
    return Response(status_code=204)
