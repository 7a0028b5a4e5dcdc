"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
"""

from fastapi import APIRouter

from tether.api.routes.context import router as context_router
from tether.api.routes.direct_chats import router as direct_chats_router
from tether.api.routes.health import router as health_router
from tether.api.routes.hush import router as hush_router
from tether.api.routes.me import router as me_router
from tether.api.routes.ops import router as ops_router
from tether.api.routes.touch import router as touch_router


def create_api_router() -> APIRouter:
    """Create and configure the API router with all routes registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(me_router, tags=["user"])
    api_router.include_router(touch_router, tags=["touch"])
    api_router.include_router(hush_router, tags=["hush"])
    api_router.include_router(direct_chats_router, tags=["direct-chats"])
    api_router.include_router(context_router, tags=["context"])
    api_router.include_router(ops_router, tags=["ops"])
    return api_router


__all__ = ["create_api_router"]
