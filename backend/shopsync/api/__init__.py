"""API routers."""
from shopsync.api.offline import ping_router, router as offline_router

__all__ = ["offline_router", "ping_router"]
