"""Router registrations."""

from fastapi import APIRouter

from eventrelay.api.routers import events, health


def get_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(health.router, tags=["health"])
    router.include_router(events.router, prefix="/api/v1/integrations/marketing", tags=["events"])
    return router
