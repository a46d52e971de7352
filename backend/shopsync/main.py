from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shopsync.config import get_settings
from shopsync.observability.logging import configure_logging
from shopsync.observability.otel import configure_otel
from shopsync.orchestrator import build_orchestrator
from shopsync.api.offline import ping_router, router as offline_router


configure_logging()
settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    orchestrator = build_orchestrator(settings)
    app.state.orchestrator = orchestrator
    await orchestrator.start()
    logger.info("shopsync_started", extra={"api_base_url": settings.api_base_url, "data_dir": settings.data_dir})

    yield

    await orchestrator.stop()
    logger.info("shopsync_stopped")


app = FastAPI(
    title=settings.app_name,
    description="Offline operation queue and sync engine for the shop API",
    version="0.1.0",
    lifespan=lifespan,
)
if settings.otel_endpoint:
    configure_otel(settings, app)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ping_router)
app.include_router(offline_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs",
    }
