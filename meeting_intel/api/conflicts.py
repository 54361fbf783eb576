"""Conflict check endpoint."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.api.dependencies import (
    get_calendar_client,
    get_engine_config,
    get_llm_client,
    run_engine,
)
from meeting_intel.config import EngineConfig, settings
from meeting_intel.conflicts.resolver import ConflictResolver
from meeting_intel.conflicts.schemas import ConflictAnalysis
from meeting_intel.models.event import Event, EventWhen, Participant
from meeting_intel.patterns.learner import PatternLearner
from meeting_intel.patterns.schemas import MeetingPattern
from meeting_intel.services.llm_client import LLMClient
from meeting_intel.time_utils import to_unix

router = APIRouter(prefix="/conflicts", tags=["conflicts"])


class ConflictCheckRequest(BaseModel):
    """A proposed meeting to check against the calendar."""

    grant_id: str
    title: str = ""
    start_time: datetime = Field(description="Naive values are read as UTC")
    end_time: datetime = Field(description="Naive values are read as UTC")
    participants: list[str] = Field(default_factory=list)
    event_id: str = Field(default="", description="Set when moving an existing event")
    timezone: str | None = Field(default=None, description="IANA zone of the event")
    use_patterns: bool = Field(
        default=True, description="Learn patterns for focus and overload checks"
    )
    suggest_alternatives: bool = True


@router.post("/check", response_model=ConflictAnalysis)
async def check_conflicts(
    request: ConflictCheckRequest,
    client: CalendarClient = Depends(get_calendar_client),
    config: EngineConfig = Depends(get_engine_config),
    llm_client: LLMClient | None = Depends(get_llm_client),
) -> ConflictAnalysis:
    """Classify hard and soft conflicts for a proposed meeting.

    "No conflicts" is a successful body with ``can_proceed: true``.
    """
    patterns: MeetingPattern | None = None
    if request.use_patterns:
        learner = PatternLearner(client, config)
        analysis = await run_engine(
            learner.analyze_history(request.grant_id, settings.lookback_days),
            settings.analysis_timeout_seconds,
        )
        patterns = analysis.patterns

    event = Event(
        id=request.event_id,
        title=request.title,
        when=EventWhen(
            start_time=to_unix(request.start_time),
            end_time=to_unix(request.end_time),
            start_timezone=request.timezone,
        ),
        participants=[Participant(email=email) for email in request.participants],
    )
    resolver = ConflictResolver(client, config, llm_client=llm_client)
    timeout = (
        settings.analysis_timeout_seconds
        if request.suggest_alternatives or llm_client is not None
        else settings.request_timeout_seconds
    )
    return await run_engine(
        resolver.detect_conflicts(
            request.grant_id,
            event,
            patterns,
            suggest_alternatives=request.suggest_alternatives,
        ),
        timeout,
    )
