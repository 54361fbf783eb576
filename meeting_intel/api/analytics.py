"""Pattern analysis and meeting scoring endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.api.dependencies import (
    get_calendar_client,
    get_engine_config,
    run_engine,
)
from meeting_intel.config import EngineConfig, settings
from meeting_intel.patterns.learner import PatternLearner
from meeting_intel.patterns.schemas import MeetingAnalysis, MeetingScore
from meeting_intel.patterns.scorer import MeetingScorer

router = APIRouter(prefix="/analytics", tags=["analytics"])


class AnalyzeRequest(BaseModel):
    """Request to learn patterns from meeting history."""

    grant_id: str
    days: int = Field(default=settings.lookback_days, ge=1, le=365)


class ScoreRequest(BaseModel):
    """Request to score a proposed meeting time."""

    grant_id: str
    time: datetime = Field(description="Proposed start; naive means user zone")
    participants: list[str] = Field(default_factory=list)
    duration_minutes: int = Field(default=30, ge=1, le=1440)
    days: int = Field(default=settings.lookback_days, ge=1, le=365)


@router.post("/analyze", response_model=MeetingAnalysis)
async def analyze_meetings(
    request: AnalyzeRequest,
    client: CalendarClient = Depends(get_calendar_client),
    config: EngineConfig = Depends(get_engine_config),
) -> MeetingAnalysis:
    """Learn meeting patterns over the lookback window.

    Returns a successful body with ``patterns: null`` when there is too
    little history.
    """
    learner = PatternLearner(client, config)
    return await run_engine(
        learner.analyze_history(request.grant_id, request.days),
        settings.analysis_timeout_seconds,
    )


@router.post("/score", response_model=MeetingScore)
async def score_meeting(
    request: ScoreRequest,
    client: CalendarClient = Depends(get_calendar_client),
    config: EngineConfig = Depends(get_engine_config),
) -> MeetingScore:
    """Score a proposed time against freshly learned patterns."""
    learner = PatternLearner(client, config)
    analysis = await run_engine(
        learner.analyze_history(request.grant_id, request.days),
        settings.analysis_timeout_seconds,
    )
    # Zone was validated by the learner above
    scorer = MeetingScorer(analysis.patterns, config)
    return scorer.score_meeting_time(
        request.time,
        participants=request.participants,
        duration_minutes=request.duration_minutes,
    )
