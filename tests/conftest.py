"""Pytest configuration and fixtures."""

from collections.abc import Callable
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from meeting_intel.config import EngineConfig
from meeting_intel.errors import EventNotFoundError
from meeting_intel.models.event import Calendar, Event, EventWhen, Participant

USER_EMAIL = "me@example.com"


@pytest.fixture
def config() -> EngineConfig:
    """Engine policy in UTC for the test user."""
    return EngineConfig(user_email=USER_EMAIL, timezone="UTC")


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """Factory for calendar events.

    ``participants`` accepts Participant objects or bare emails.
    """

    def _make(
        event_id: str,
        start: datetime,
        minutes: int = 30,
        title: str = "Meeting",
        participants: list[Participant | str] | None = None,
        timezone: str | None = None,
        **fields,
    ) -> Event:
        start_time = int(start.timestamp())
        return Event(
            id=event_id,
            calendar_id="primary",
            title=title,
            when=EventWhen(
                start_time=start_time,
                end_time=start_time + minutes * 60,
                start_timezone=timezone,
            ),
            participants=[
                p if isinstance(p, Participant) else Participant(email=p)
                for p in participants or []
            ],
            **fields,
        )

    return _make


@pytest.fixture
def make_client() -> Callable[..., MagicMock]:
    """Factory for an in-memory calendar client built from AsyncMocks.

    Events live in the first calendar. Created and updated events are
    written back to the store so later fetches see them.
    """

    def _make(
        events: list[Event] | None = None,
        calendars: list[Calendar] | None = None,
    ) -> MagicMock:
        store = {event.id: event for event in events or []}
        calendars = (
            calendars
            if calendars is not None
            else [Calendar(id="primary", name="Primary", is_primary=True)]
        )
        home = calendars[0].id if calendars else None

        async def get_events(grant_id, calendar_id, query):
            if calendar_id != home:
                return []
            return [
                event
                for event in store.values()
                if event.when.end_time > query.start
                and event.when.start_time < query.end
                and (query.show_cancelled or not event.is_cancelled)
            ]

        async def get_event(grant_id, calendar_id, event_id):
            if calendar_id == home and event_id in store:
                return store[event_id]
            raise EventNotFoundError(f"{event_id} not in {calendar_id}")

        async def create_event(grant_id, calendar_id, request):
            event = Event(
                id=f"created_{len(store) + 1}",
                calendar_id=calendar_id,
                title=request.title,
                description=request.description,
                when=request.when,
                busy=request.busy,
            )
            store[event.id] = event
            return event

        async def update_event(grant_id, calendar_id, event_id, request):
            event = store[event_id]
            updated = event.model_copy(
                update={
                    "title": request.title or event.title,
                    "when": request.when or event.when,
                }
            )
            store[event_id] = updated
            return updated

        client = MagicMock()
        client.store = store
        client.get_calendars = AsyncMock(return_value=calendars)
        client.get_events = AsyncMock(side_effect=get_events)
        client.get_event = AsyncMock(side_effect=get_event)
        client.create_event = AsyncMock(side_effect=create_event)
        client.update_event = AsyncMock(side_effect=update_event)
        return client

    return _make
