"""
Route aggregator — mounts pricing routers under /api/v1 prefix.

Health routes are exported separately for main.py to mount at root.
Version: 1.0.0
"""
from fastapi import APIRouter

from supplier_sync.routes.pricing import router as pricing_router
from supplier_sync.routes.health import router as health_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(pricing_router)

__all__ = ["v1_router", "health_router"]
