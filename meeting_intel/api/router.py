"""API router aggregation."""

from fastapi import APIRouter

from meeting_intel.api.analytics import router as analytics_router
from meeting_intel.api.conflicts import router as conflicts_router
from meeting_intel.api.focus import router as focus_router
from meeting_intel.api.health import router as health_router
from meeting_intel.api.reschedule import router as reschedule_router

api_router = APIRouter()
api_router.include_router(health_router)
# Pattern learning and scoring
api_router.include_router(analytics_router)
api_router.include_router(conflicts_router)
api_router.include_router(reschedule_router)
# Focus-time protection and adaptive scheduling
api_router.include_router(focus_router)
