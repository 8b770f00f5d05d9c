"""Top-level API router."""

from fastapi import APIRouter

from resource_planner.api.routes.allocation import router as allocation_router
from resource_planner.api.routes.health import router as health_router
from resource_planner.api.routes.history import router as history_router
from resource_planner.api.routes.me import router as me_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(allocation_router)
api_router.include_router(history_router)
