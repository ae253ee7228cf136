"""API route registration."""

from fastapi import APIRouter

from mediasync.api.routes import health, sync, uploads

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(uploads.router, prefix="/uploads", tags=["uploads"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
