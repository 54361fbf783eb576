"""Focus-time protection and adaptive scheduling endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.api.dependencies import (
    get_calendar_client,
    get_engine_config,
    run_engine,
)
from meeting_intel.config import EngineConfig, settings
from meeting_intel.focus.adaptive import AdaptiveScheduler
from meeting_intel.focus.optimizer import FocusOptimizer
from meeting_intel.focus.schemas import (
    AdaptiveTrigger,
    DurationOptimization,
    FocusTimeAnalysis,
    FocusTimeBlock,
    FocusTimeSettings,
    ProtectedBlock,
    ScheduleChange,
)

router = APIRouter(prefix="/focus-time", tags=["focus-time"])


def default_focus_settings() -> FocusTimeSettings:
    """Focus preferences from application settings."""
    return FocusTimeSettings(
        target_hours_per_week=settings.focus_target_hours_per_week,
        min_block_minutes=settings.focus_min_block_minutes,
        max_block_minutes=settings.focus_max_block_minutes,
    )


class FocusAnalyzeRequest(BaseModel):
    """Request to analyze focus time."""

    grant_id: str
    days: int = Field(default=settings.lookback_days, ge=1, le=365)
    focus_settings: FocusTimeSettings | None = None


class CreateBlocksRequest(BaseModel):
    """Request to protect recommended blocks on the calendar."""

    grant_id: str
    blocks: list[FocusTimeBlock] = Field(min_length=1)
    focus_settings: FocusTimeSettings | None = None


class CreateBlocksResponse(BaseModel):
    """Blocks that were created; failures are omitted."""

    requested: int
    created: list[ProtectedBlock] = Field(default_factory=list)


class AdaptRequest(BaseModel):
    """Request for an adaptive scheduling pass."""

    grant_id: str
    trigger: AdaptiveTrigger
    auto_apply: bool = Field(
        default=False, description="Apply reschedule modifications immediately"
    )


class AdaptResponse(BaseModel):
    """Proposal plus the number of modifications applied."""

    change: ScheduleChange
    applied: int = 0


class DurationRequest(BaseModel):
    """Request for a meeting length recommendation."""

    grant_id: str
    event_id: str


@router.post("/analyze", response_model=FocusTimeAnalysis)
async def analyze_focus_time(
    request: FocusAnalyzeRequest,
    client: CalendarClient = Depends(get_calendar_client),
    config: EngineConfig = Depends(get_engine_config),
) -> FocusTimeAnalysis:
    """Recommend weekly focus blocks from meeting history."""
    optimizer = FocusOptimizer(client, config)
    return await run_engine(
        optimizer.analyze_focus_time_patterns(
            request.grant_id,
            request.focus_settings or default_focus_settings(),
            days=request.days,
        ),
        settings.analysis_timeout_seconds,
    )


@router.post("/blocks", response_model=CreateBlocksResponse)
async def create_blocks(
    request: CreateBlocksRequest,
    client: CalendarClient = Depends(get_calendar_client),
    config: EngineConfig = Depends(get_engine_config),
) -> CreateBlocksResponse:
    """Create "Focus Time" events for the next occurrence of each block."""
    optimizer = FocusOptimizer(client, config)
    created = await run_engine(
        optimizer.create_protected_blocks(
            request.grant_id,
            request.blocks,
            request.focus_settings or default_focus_settings(),
        ),
        settings.request_timeout_seconds,
    )
    return CreateBlocksResponse(requested=len(request.blocks), created=created)


@router.post("/adapt", response_model=AdaptResponse)
async def adapt_schedule(
    request: AdaptRequest,
    client: CalendarClient = Depends(get_calendar_client),
    config: EngineConfig = Depends(get_engine_config),
) -> AdaptResponse:
    """Propose schedule changes for a trigger, optionally applying them."""
    scheduler = AdaptiveScheduler(client, config)
    change = await run_engine(
        scheduler.adapt_schedule(request.grant_id, request.trigger),
        settings.analysis_timeout_seconds,
    )
    if not request.auto_apply:
        return AdaptResponse(change=change)

    applied = await run_engine(
        scheduler.apply_schedule_change(request.grant_id, change),
        settings.request_timeout_seconds,
    )
    change = change.model_copy(update={"approval": "approved", "auto_applied": True})
    return AdaptResponse(change=change, applied=applied)


@router.post("/duration", response_model=DurationOptimization)
async def optimize_duration(
    request: DurationRequest,
    client: CalendarClient = Depends(get_calendar_client),
    config: EngineConfig = Depends(get_engine_config),
) -> DurationOptimization:
    """Recommend a meeting length from observed durations."""
    optimizer = FocusOptimizer(client, config)
    return await run_engine(
        optimizer.optimize_meeting_duration(request.grant_id, request.event_id),
        settings.analysis_timeout_seconds,
    )
