"""
DocRender API routes package.
"""

from fastapi import APIRouter

from .documents import router as documents_router
from .health import router as health_router

# Main API router that includes all sub-routers
api_router = APIRouter()

api_router.include_router(documents_router, tags=["documents"])
api_router.include_router(health_router, tags=["health"])

__all__ = [
    "api_router",
    "documents_router",
    "health_router",
]
