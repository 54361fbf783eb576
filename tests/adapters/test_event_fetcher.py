"""Tests for cross-calendar event fetching."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from meeting_intel.adapters.event_fetcher import (
    fetch_calendars,
    fetch_event_by_id,
    fetch_events_in_range,
)
from meeting_intel.errors import (
    ConfigurationError,
    EventNotFoundError,
    UpstreamFetchError,
)
from meeting_intel.models.event import Calendar

START = datetime(2025, 1, 13, tzinfo=UTC)
END = START + timedelta(days=7)


class TestFetchCalendars:
    """Tests for fetch_calendars."""

    @pytest.mark.asyncio
    async def test_wraps_failures(self, make_client):
        """Store errors become UpstreamFetchError."""
        client = make_client([])
        client.get_calendars = AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(UpstreamFetchError, match="Failed to list calendars"):
            await fetch_calendars(client, "grant")

    @pytest.mark.asyncio
    async def test_wraps_timeouts(self, make_client):
        """Timeouts are reported as upstream failures."""
        client = make_client([])
        client.get_calendars = AsyncMock(side_effect=TimeoutError())

        with pytest.raises(UpstreamFetchError, match="Timed out"):
            await fetch_calendars(client, "grant")


class TestFetchEventsInRange:
    """Tests for fetch_events_in_range."""

    @pytest.mark.asyncio
    async def test_sorted_by_start(self, make_client, make_event):
        """Events come back ordered by start, then id."""
        client = make_client(
            [
                make_event("late", START + timedelta(hours=5)),
                make_event("b", START + timedelta(hours=1)),
                make_event("a", START + timedelta(hours=1)),
            ]
        )

        events = await fetch_events_in_range(client, "grant", START, END)

        assert [e.id for e in events] == ["a", "b", "late"]

    @pytest.mark.asyncio
    async def test_deduplicates_across_calendars(self, make_client, make_event):
        """An event shared by two calendars is returned once."""
        event = make_event("shared", START + timedelta(hours=1))
        client = make_client(
            [event],
            calendars=[Calendar(id="primary"), Calendar(id="team")],
        )
        client.get_events = AsyncMock(return_value=[event])

        events = await fetch_events_in_range(client, "grant", START, END)

        assert [e.id for e in events] == ["shared"]
        assert client.get_events.await_count == 2

    @pytest.mark.asyncio
    async def test_fills_calendar_id(self, make_client, make_event):
        """Events without a calendar take the one they were listed from."""
        event = make_event("e1", START + timedelta(hours=1)).model_copy(
            update={"calendar_id": ""}
        )
        client = make_client([event])

        events = await fetch_events_in_range(client, "grant", START, END)

        assert events[0].calendar_id == "primary"

    @pytest.mark.asyncio
    async def test_hides_cancelled_on_request(self, make_client, make_event):
        """Cancelled events are dropped when asked."""
        client = make_client(
            [
                make_event("live", START + timedelta(hours=1)),
                make_event("gone", START + timedelta(hours=2), status="cancelled"),
            ]
        )

        events = await fetch_events_in_range(
            client, "grant", START, END, show_cancelled=False
        )

        assert [e.id for e in events] == ["live"]
        query = client.get_events.await_args.args[2]
        assert query.show_cancelled is False

    @pytest.mark.asyncio
    async def test_wraps_event_failures(self, make_client):
        """A failing calendar fails the whole fetch."""
        client = make_client([])
        client.get_events = AsyncMock(side_effect=RuntimeError("quota"))

        with pytest.raises(UpstreamFetchError, match="calendar primary"):
            await fetch_events_in_range(client, "grant", START, END)


class TestFetchEventById:
    """Tests for fetch_event_by_id."""

    @pytest.mark.asyncio
    async def test_searches_every_calendar(self, make_client, make_event):
        """The event is found in whichever calendar holds it."""
        event = make_event("e1", START)
        client = make_client([event], calendars=[Calendar(id="other")])
        client.get_event = AsyncMock(return_value=event)

        found = await fetch_event_by_id(client, "grant", "e1")

        assert found.id == "e1"

    @pytest.mark.asyncio
    async def test_not_found(self, make_client):
        """Missing events raise EventNotFoundError."""
        with pytest.raises(EventNotFoundError, match="missing"):
            await fetch_event_by_id(make_client([]), "grant", "missing")

    @pytest.mark.asyncio
    async def test_skips_calendars_without_the_event(self, make_client, make_event):
        """A not-found answer moves on to the next calendar."""
        event = make_event("e1", START)
        client = make_client(
            [event], calendars=[Calendar(id="team"), Calendar(id="primary")]
        )
        client.get_event = AsyncMock(
            side_effect=[EventNotFoundError("not in team"), event]
        )

        found = await fetch_event_by_id(client, "grant", "e1")

        assert found.id == "e1"
        assert client.get_event.await_count == 2

    @pytest.mark.asyncio
    async def test_upstream_failure_is_not_a_miss(self, make_client):
        """Store failures propagate instead of reading as not found."""
        client = make_client([])
        client.get_event = AsyncMock(
            side_effect=UpstreamFetchError("get event failed: timed out")
        )

        with pytest.raises(UpstreamFetchError, match="timed out"):
            await fetch_event_by_id(client, "grant", "e1")

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, make_client):
        """Missing credentials are reported as such."""
        client = make_client([])
        client.get_event = AsyncMock(side_effect=ConfigurationError("No credentials"))

        with pytest.raises(ConfigurationError, match="No credentials"):
            await fetch_event_by_id(client, "grant", "e1")

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_wrapped(self, make_client):
        """Other client errors become UpstreamFetchError."""
        client = make_client([])
        client.get_event = AsyncMock(side_effect=RuntimeError("socket closed"))

        with pytest.raises(UpstreamFetchError, match="socket closed"):
            await fetch_event_by_id(client, "grant", "e1")
