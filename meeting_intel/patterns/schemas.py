"""Schemas for learned meeting patterns and meeting scores.

Defines the behavioral model built from calendar history
(MeetingPattern), the analysis envelope returned to callers
(MeetingAnalysis) and the single-time evaluation (MeetingScore).
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DateRange(BaseModel):
    """Analyzed period."""

    start: datetime
    end: datetime


class AcceptancePatterns(BaseModel):
    """Acceptance rates, accepted / (accepted + declined)."""

    model_config = ConfigDict(frozen=True)

    by_day_of_week: dict[str, float] = Field(
        default_factory=dict, description="Monday -> 0.92"
    )
    by_time_of_day: dict[str, float] = Field(
        default_factory=dict, description="'09:00' -> 0.85"
    )
    by_day_and_time: dict[str, float] = Field(
        default_factory=dict, description="'Monday-09:00' -> 0.95"
    )
    overall: float = Field(default=0.0, ge=0.0, le=1.0)
    samples_by_day: dict[str, int] = Field(
        default_factory=dict, description="Definite responses per weekday"
    )
    samples_by_hour: dict[str, int] = Field(
        default_factory=dict, description="Definite responses per hour"
    )


class DurationStats(BaseModel):
    """Scheduled vs. actual duration statistics (minutes)."""

    model_config = ConfigDict(frozen=True)

    average_scheduled: int = Field(default=0, description="Average planned minutes")
    average_actual: int = Field(default=0, description="Average observed minutes")
    variance: float = Field(default=0.0, description="Std deviation of actual minutes")
    overrun_rate: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Share of meetings that ran over"
    )
    sample_size: int = Field(default=0, description="Meetings with both durations")


class DurationPatterns(BaseModel):
    """Duration statistics overall and by grouping."""

    model_config = ConfigDict(frozen=True)

    overall: DurationStats = Field(default_factory=DurationStats)
    by_participant: dict[str, DurationStats] = Field(default_factory=dict)
    by_type: dict[str, DurationStats] = Field(
        default_factory=dict, description="'1-on-1', 'small-group', 'large-group'"
    )


class TimezonePatterns(BaseModel):
    """Timezone usage."""

    model_config = ConfigDict(frozen=True)

    distribution: dict[str, int] = Field(default_factory=dict)
    preferred_times: dict[str, list[str]] = Field(
        default_factory=dict, description="Zone -> most used local hours"
    )


class TimeBlock(BaseModel):
    """A recurring weekly window."""

    model_config = ConfigDict(frozen=True)

    day_of_week: str = Field(description="'Monday', 'Tuesday', ...")
    start_time: str = Field(description="'09:00'")
    end_time: str = Field(description="'11:00'")
    score: float = Field(ge=0.0, le=100.0, description="Productivity score 0-100")


class ProductivityPatterns(BaseModel):
    """Low-meeting-density windows and meeting load."""

    model_config = ConfigDict(frozen=True)

    blocks: list[TimeBlock] = Field(
        default_factory=list, description="Ranked by score, highest first"
    )
    meeting_density: dict[str, float] = Field(
        default_factory=dict, description="Weekday -> meetings per day"
    )


class ParticipantPattern(BaseModel):
    """Patterns for one participant."""

    model_config = ConfigDict(frozen=True)

    email: str
    meeting_count: int = 0
    acceptance_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    preferred_days: list[str] = Field(default_factory=list)
    preferred_times: list[str] = Field(default_factory=list)
    average_duration: int = 0
    timezone: str | None = None


class MeetingPattern(BaseModel):
    """Immutable behavioral model built from one history snapshot."""

    model_config = ConfigDict(frozen=True)

    user_email: str | None = None
    analyzed_period: DateRange
    acceptance: AcceptancePatterns = Field(default_factory=AcceptancePatterns)
    duration: DurationPatterns = Field(default_factory=DurationPatterns)
    timezone: TimezonePatterns = Field(default_factory=TimezonePatterns)
    productivity: ProductivityPatterns = Field(default_factory=ProductivityPatterns)
    participants: dict[str, ParticipantPattern] = Field(default_factory=dict)


class Recommendation(BaseModel):
    """Recommendation derived from patterns."""

    type: Literal["focus_time", "decline_pattern", "duration_adjustment"]
    priority: Literal["high", "medium", "low"]
    title: str
    description: str
    confidence: float = Field(ge=0.0, le=100.0)
    action: str
    impact: str


class MeetingAnalysis(BaseModel):
    """Result of analyzing meeting history.

    ``patterns`` is None when the window held too few meetings to learn
    from; callers must fall back to neutral behavior.
    """

    period: DateRange
    total_meetings: int = 0
    patterns: MeetingPattern | None = None
    recommendations: list[Recommendation] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)


class ScoreFactor(BaseModel):
    """One contributor to a meeting score."""

    name: str
    description: str
    impact: int = Field(ge=-100, le=100, description="Signed contribution")


class MeetingScore(BaseModel):
    """Evaluation of a single candidate time."""

    score: int = Field(ge=0, le=100)
    confidence: float = Field(ge=0.0, le=100.0, description="Percent")
    success_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    factors: list[ScoreFactor] = Field(default_factory=list)
    recommendation: str = ""
    alternative_times: list[datetime] = Field(default_factory=list)
