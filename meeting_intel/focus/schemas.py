"""Focus-time and adaptive scheduling schemas.

Defines user focus preferences, the focus analysis, protected calendar
blocks and the proposals produced by adaptive scheduling.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from meeting_intel.patterns.schemas import DateRange, DurationStats, TimeBlock

DECLINE_MESSAGE = (
    "This time is blocked for focus work. Alternative times are available."
)


class TimeRange(BaseModel):
    """Wall-clock range within a day."""

    start_time: str = Field(description="'12:00'")
    end_time: str = Field(description="'13:00'")


class FocusTimeSettings(BaseModel):
    """User preferences for focus-time protection."""

    target_hours_per_week: float = Field(default=14.0, ge=0, le=60)
    min_block_minutes: int = Field(default=60, ge=15)
    max_block_minutes: int = Field(default=240, ge=15)
    protected_days: list[str] = Field(
        default_factory=list, description="Only protect these weekdays (empty = all)"
    )
    excluded_time_ranges: list[TimeRange] = Field(
        default_factory=list, description="Never protect these ranges, e.g. lunch"
    )
    auto_decline: bool = Field(default=False, description="Decline invites in blocks")
    allow_urgent_override: bool = Field(default=True)
    require_approval: bool = Field(default=False)
    timezone: str | None = Field(
        default=None, description="IANA zone for created blocks (engine zone if unset)"
    )


class FocusTimeBlock(BaseModel):
    """A recommended weekly focus block."""

    day_of_week: str
    start_time: str = Field(description="'09:00'")
    end_time: str = Field(description="'11:00'")
    duration: int = Field(description="Minutes")
    score: float = Field(ge=0.0, le=100.0)
    reason: str
    conflicts: int = Field(default=0, description="Meetings currently in the block")


class FocusTimeAnalysis(BaseModel):
    """Focus-time analysis for one user."""

    user_email: str | None = None
    analyzed_period: DateRange
    generated_at: datetime
    peak_productivity: list[TimeBlock] = Field(default_factory=list)
    deep_work_sessions: DurationStats = Field(default_factory=DurationStats)
    most_productive_day: str | None = None
    least_productive_day: str | None = None
    recommended_blocks: list[FocusTimeBlock] = Field(default_factory=list)
    current_protection: float = Field(
        default=0.0, description="Hours of focus events in the coming week"
    )
    target_protection: float = Field(default=0.0, description="Target hours per week")
    insights: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)


class FocusProtectionRule(BaseModel):
    """How a protected block treats incoming meetings."""

    auto_decline: bool = False
    suggest_alternatives: bool = True
    allow_critical_meeting: bool = True
    require_approval: bool = False
    decline_message: str = DECLINE_MESSAGE


class ProtectedBlock(BaseModel):
    """A focus block materialized as a calendar event."""

    id: str
    calendar_event_id: str
    start_time: datetime
    end_time: datetime
    duration: int = Field(description="Minutes")
    is_recurring: bool = True
    recurrence_pattern: str = "weekly"
    reason: str
    allow_override: bool = True
    protection_rules: FocusProtectionRule = Field(default_factory=FocusProtectionRule)
    created_at: datetime


class AdaptiveTrigger(str, Enum):
    """Why an adaptive pass runs."""

    MEETING_OVERLOAD = "meeting_overload"
    DEADLINE_CHANGE = "deadline_change"
    FOCUS_TIME_AT_RISK = "focus_time_at_risk"
    CONFLICT_DETECTED = "conflict_detected"
    PATTERN_DETECTED = "pattern_detected"


class AdaptiveChangeType(str, Enum):
    """Dominant kind of change in a proposal."""

    INCREASE_FOCUS_TIME = "increase_focus_time"
    RESCHEDULE_MEETING = "reschedule_meeting"
    SHORTEN_MEETING = "shorten_meeting"
    DECLINE_MEETING = "decline_meeting"
    PROTECT_BLOCK = "protect_block"


class ScheduleModification(BaseModel):
    """One proposed change to the calendar."""

    event_id: str = Field(default="", description="Empty for protect actions")
    action: Literal["reschedule", "shorten", "decline", "protect"]
    old_start_time: datetime | None = None
    new_start_time: datetime | None = None
    old_duration: int = 0
    new_duration: int = 0
    description: str


class AdaptiveImpact(BaseModel):
    """Estimated effect of a set of modifications."""

    focus_time_gained: float = Field(default=0.0, description="Hours")
    meetings_rescheduled: int = 0
    meetings_declined: int = 0
    duration_saved: int = Field(default=0, description="Minutes")
    conflicts_resolved: int = 0
    participants_affected: int = 0
    predicted_benefit: str = ""
    risks: list[str] = Field(default_factory=list)


class ScheduleChange(BaseModel):
    """Adaptive scheduling proposal; nothing is applied until confirmed."""

    id: str
    timestamp: datetime
    trigger: AdaptiveTrigger
    change_type: AdaptiveChangeType
    affected_events: list[str] = Field(default_factory=list)
    changes: list[ScheduleModification] = Field(default_factory=list)
    reason: str
    impact: AdaptiveImpact = Field(default_factory=AdaptiveImpact)
    approval: Literal["pending", "approved", "denied"] = "pending"
    auto_applied: bool = False
    confidence: float = Field(ge=0.0, le=100.0)


class DurationOptimization(BaseModel):
    """Recommended length for a meeting from historical durations."""

    event_id: str
    current_duration: int = Field(description="Minutes")
    recommended_duration: int = Field(description="Minutes")
    historical_data: DurationStats
    time_savings: int = Field(default=0, description="Minutes saved")
    confidence: float = Field(ge=0.0, le=100.0)
    reason: str
    recommendation: str
