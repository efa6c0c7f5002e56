from fastapi import APIRouter

from pushrelay.api import health, notifications

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(
    notifications.router,
    prefix="/notifications",
    tags=["notifications"],
)
