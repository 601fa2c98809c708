"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
"""

from fastapi import APIRouter

from marginalia.api.routes.documents import router as documents_router
from marginalia.api.routes.health import router as health_router
from marginalia.api.routes.highlights import router as highlights_router


def create_api_router() -> APIRouter:
    """Create the API router with all routes registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(documents_router)
    api_router.include_router(highlights_router)
    return api_router


__all__ = ["create_api_router"]
