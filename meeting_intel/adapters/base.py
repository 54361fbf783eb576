"""Base types for calendar adapters.

This module defines the CalendarClient protocol consumed by the
analytics engines. Any event store (Google Calendar, a test double, a
provider API) can back the engines by implementing these methods.
"""

from typing import Protocol, runtime_checkable

from meeting_intel.models.event import (
    Calendar,
    CreateEventRequest,
    Event,
    EventQuery,
    UpdateEventRequest,
)


@runtime_checkable
class CalendarClient(Protocol):
    """Protocol for the calendar/event store.

    Adapters implement this protocol for structural subtyping -
    they don't need to inherit, just implement the methods.
    Implementations raise on failure; they never return partial data.
    """

    async def get_calendars(self, grant_id: str) -> list[Calendar]:
        """List calendars for the connected account."""
        ...

    async def get_events(
        self, grant_id: str, calendar_id: str, query: EventQuery
    ) -> list[Event]:
        """List events in ``[query.start, query.end)``."""
        ...

    async def get_event(self, grant_id: str, calendar_id: str, event_id: str) -> Event:
        """Fetch one event."""
        ...

    async def create_event(
        self, grant_id: str, calendar_id: str, request: CreateEventRequest
    ) -> Event:
        """Create an event and return it with its assigned ID."""
        ...

    async def update_event(
        self,
        grant_id: str,
        calendar_id: str,
        event_id: str,
        request: UpdateEventRequest,
    ) -> Event:
        """Update an event and return the new version."""
        ...
