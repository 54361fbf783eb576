"""Reschedule search and apply endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.adapters.event_fetcher import fetch_event_by_id
from meeting_intel.api.dependencies import (
    get_calendar_client,
    get_engine_config,
    run_engine,
)
from meeting_intel.config import EngineConfig, settings
from meeting_intel.conflicts.reschedule import RescheduleSearch, apply_reschedule
from meeting_intel.conflicts.resolver import ConflictResolver
from meeting_intel.conflicts.schemas import (
    RescheduleOption,
    RescheduleRequest,
    RescheduleResult,
)
from meeting_intel.patterns.learner import PatternLearner

router = APIRouter(prefix="/reschedule", tags=["reschedule"])


class SuggestRequest(RescheduleRequest):
    """Reschedule request for a connected account."""

    grant_id: str
    max_delay_days: int = Field(
        default=settings.reschedule_max_delay_days, ge=1, le=60
    )


class SuggestResponse(BaseModel):
    """Ranked alternative times for one event."""

    event_id: str
    options: list[RescheduleOption] = Field(default_factory=list)


class ApplyRequest(BaseModel):
    """Move an event to a previously suggested option."""

    grant_id: str
    event_id: str
    option: RescheduleOption
    notify_participants: bool = False


@router.post("/suggest", response_model=SuggestResponse)
async def suggest_times(
    request: SuggestRequest,
    client: CalendarClient = Depends(get_calendar_client),
    config: EngineConfig = Depends(get_engine_config),
) -> SuggestResponse:
    """Search up to ``max_delay_days`` ahead for conflict-free times."""
    event = await run_engine(
        fetch_event_by_id(client, request.grant_id, request.event_id),
        settings.request_timeout_seconds,
    )
    analysis = await run_engine(
        PatternLearner(client, config).analyze_history(
            request.grant_id, settings.lookback_days
        ),
        settings.analysis_timeout_seconds,
    )
    search = RescheduleSearch(ConflictResolver(client, config), config)
    options = await run_engine(
        search.find_reschedule_suggestions(
            request.grant_id, event, request, analysis.patterns
        ),
        settings.analysis_timeout_seconds,
    )
    return SuggestResponse(event_id=event.id, options=options)


@router.post("/apply", response_model=RescheduleResult)
async def apply_option(
    request: ApplyRequest,
    client: CalendarClient = Depends(get_calendar_client),
) -> RescheduleResult:
    """Update the event to the selected option's time."""
    event = await run_engine(
        fetch_event_by_id(client, request.grant_id, request.event_id),
        settings.request_timeout_seconds,
    )
    return await run_engine(
        apply_reschedule(
            client,
            request.grant_id,
            event,
            request.option,
            notify=request.notify_participants,
        ),
        settings.request_timeout_seconds,
    )
