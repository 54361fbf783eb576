"""Calendar entities consumed from the event store."""

from meeting_intel.models.event import (
    Calendar,
    CreateEventRequest,
    Event,
    EventQuery,
    EventWhen,
    Participant,
    UpdateEventRequest,
)

__all__ = [
    "Calendar",
    "CreateEventRequest",
    "Event",
    "EventQuery",
    "EventWhen",
    "Participant",
    "UpdateEventRequest",
]
