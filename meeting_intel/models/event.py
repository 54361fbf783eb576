"""Calendar entities consumed from the event store.

These mirror the fields the engines depend on: identity, title, the
unix-second time range, status, busy flag and participant responses.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

EventStatus = Literal["confirmed", "cancelled", "tentative"]
ResponseStatus = Literal["yes", "no", "maybe", "noreply"]


class Calendar(BaseModel):
    """A calendar owned by the connected account."""

    id: str = Field(description="Calendar ID")
    name: str = Field(default="", description="Display name")
    is_primary: bool = Field(default=False, description="Primary calendar flag")
    read_only: bool = Field(default=False, description="Whether events can be written")


class Participant(BaseModel):
    """Event participant with their response."""

    email: str = Field(default="", description="Participant email")
    name: str | None = Field(default=None, description="Display name")
    status: ResponseStatus = Field(default="noreply", description="RSVP response")


class EventWhen(BaseModel):
    """Event time range in unix seconds."""

    start_time: int = Field(description="Start, unix seconds")
    end_time: int = Field(description="End, unix seconds")
    start_timezone: str | None = Field(
        default=None, description="IANA zone the event was scheduled in"
    )

    @property
    def duration_minutes(self) -> int:
        return (self.end_time - self.start_time) // 60


class Event(BaseModel):
    """Calendar event."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default="", description="Event ID (empty for proposed events)")
    calendar_id: str = Field(default="", description="Owning calendar ID")
    title: str = Field(default="", description="Event title")
    description: str | None = Field(default=None, description="Event body")
    when: EventWhen = Field(description="Time range")
    status: EventStatus = Field(default="confirmed", description="Event status")
    busy: bool = Field(default=True, description="False for free/transparent events")
    read_only: bool = Field(default=False, description="Cannot be modified by user")
    organizer_email: str | None = Field(default=None, description="Organizer email")
    participants: list[Participant] = Field(default_factory=list)
    observed_duration_minutes: int | None = Field(
        default=None,
        ge=0,
        description="Actual length of the meeting when known",
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"

    @property
    def blocks_time(self) -> bool:
        """Whether this event occupies time (non-cancelled and busy)."""
        return not self.is_cancelled and self.busy


class EventQuery(BaseModel):
    """Query parameters for listing events."""

    start: int = Field(description="Range start, unix seconds (inclusive)")
    end: int = Field(description="Range end, unix seconds (exclusive)")
    show_cancelled: bool = Field(default=True)
    limit: int = Field(default=500, ge=1, le=2500)


class CreateEventRequest(BaseModel):
    """Fields for creating an event."""

    title: str
    description: str | None = None
    when: EventWhen
    busy: bool = True
    participants: list[Participant] = Field(default_factory=list)


class UpdateEventRequest(BaseModel):
    """Fields for updating an event; unset fields are left unchanged."""

    title: str | None = None
    description: str | None = None
    when: EventWhen | None = None
    busy: bool | None = None
    notify_participants: bool = False
