"""Health check endpoints for monitoring and orchestration."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from meeting_intel.config import settings

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    timestamp: datetime
    version: str
    environment: str


class LivenessResponse(BaseModel):
    """Response model for liveness probe."""

    status: str


class ReadinessResponse(BaseModel):
    """Response model for readiness probe."""

    status: str
    checks: dict[str, str]


@router.get("/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=settings.app_version,
        environment=settings.app_env,
    )


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe - app is running."""
    return LivenessResponse(status="alive")


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> ReadinessResponse:
    """Readiness probe - app can serve traffic.

    Checks:
    - Calendar client is wired
    - Engine timezone and working hours are valid
    - LLM phrasing is available (optional, never blocks readiness)
    """
    checks: dict[str, str] = {}

    client = getattr(request.app.state, "calendar_client", None)
    checks["calendar"] = "ok" if client is not None else "not_configured"

    config = getattr(request.app.state, "engine_config", None)
    if config is None:
        checks["config"] = "not_configured"
    else:
        try:
            config.zone()
            config.working_hours()
            checks["config"] = "ok"
        except Exception:
            checks["config"] = "failed"

    llm = getattr(request.app.state, "llm_client", None)
    llm_status = "ok" if llm is not None and llm.available else "not_configured"

    status = "ready" if all(v == "ok" for v in checks.values()) else "not_ready"
    checks["llm"] = llm_status
    return ReadinessResponse(status=status, checks=checks)
