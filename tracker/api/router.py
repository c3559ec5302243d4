from fastapi import APIRouter

from tracker.api.routes import health, positions, webhooks

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(positions.router, prefix="/api/positions", tags=["positions"])
api_router.include_router(webhooks.router, prefix="/api/webhook", tags=["webhooks"])
