"""Conflict detection and rescheduling schemas.

Defines the conflict taxonomy, the per-check analysis and the
reschedule request/option/result models.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from meeting_intel.models.event import Event


class ConflictType(str, Enum):
    """Kind of scheduling conflict."""

    HARD = "hard"
    SOFT_BACK_TO_BACK = "soft_back_to_back"
    SOFT_FOCUS_TIME = "soft_focus_time"
    SOFT_OVERLOAD = "soft_overload"


class ConflictSeverity(str, Enum):
    """How urgently a conflict should be resolved."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Conflict(BaseModel):
    """A detected conflict for a proposed event."""

    id: str = Field(description="Stable identifier, e.g. 'hard_<event id>'")
    type: ConflictType
    severity: ConflictSeverity
    conflicting_event: Event | None = Field(
        default=None, description="Existing event involved, when there is one"
    )
    description: str
    impact: str
    suggestion: str
    can_auto_resolve: bool = False


class RescheduleOption(BaseModel):
    """One candidate time for a meeting."""

    proposed_time: datetime
    end_time: datetime
    score: int = Field(ge=0, le=100)
    conflicts: list[Conflict] = Field(
        default_factory=list, description="Soft conflicts remaining at this time"
    )
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    participant_match: float = Field(
        default=100.0, ge=0.0, le=100.0, description="Percent of participants free"
    )


class ConflictAnalysis(BaseModel):
    """Result of one conflict check.

    ``can_proceed`` is derived from ``hard_conflicts`` alone; soft
    conflicts never block scheduling.
    """

    proposed_event: Event
    hard_conflicts: list[Conflict] = Field(default_factory=list)
    soft_conflicts: list[Conflict] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    alternative_times: list[RescheduleOption] = Field(default_factory=list)
    ai_recommendation: str | None = Field(
        default=None, description="Advisory phrasing only"
    )

    @computed_field
    @property
    def can_proceed(self) -> bool:
        """True when nothing overlaps the proposed time."""
        return len(self.hard_conflicts) == 0

    @computed_field
    @property
    def total_conflicts(self) -> int:
        return len(self.hard_conflicts) + len(self.soft_conflicts)


class RescheduleRequest(BaseModel):
    """Constraints for finding a new time."""

    event_id: str = Field(description="Event to move")
    reason: str | None = Field(default=None, description="Why the meeting moves")
    preferred_times: list[datetime] = Field(
        default_factory=list, description="Explicit candidate start times"
    )
    must_include: list[str] = Field(
        default_factory=list, description="Participant emails that must attend"
    )
    avoid_days: list[str] = Field(
        default_factory=list, description="Weekday names to skip (any case)"
    )
    max_delay_days: int = Field(default=14, ge=1, le=60)
    notify_participants: bool = False


class RescheduleResult(BaseModel):
    """Outcome of applying a reschedule option."""

    success: bool
    original_event: Event
    new_event: Event | None = None
    selected_option: RescheduleOption | None = None
    notifications_sent: int = 0
    message: str = ""
