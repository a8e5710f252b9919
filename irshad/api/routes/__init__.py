"""API Routes Package

Aggregates route handlers into a single router included by the
FastAPI application.
"""

from fastapi import APIRouter

from .push import router as push_router


# Create main API router
api_router = APIRouter(prefix="/api")

api_router.include_router(push_router, prefix="/push", tags=["push"])

__all__ = ["api_router"]
