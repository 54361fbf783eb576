"""Tests for GoogleCalendarAdapter."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

from meeting_intel.adapters.calendar_adapter import (
    GoogleCalendarAdapter,
    event_from_google,
)
from meeting_intel.errors import (
    ConfigurationError,
    EventNotFoundError,
    UpstreamFetchError,
)
from meeting_intel.models.event import (
    CreateEventRequest,
    EventQuery,
    EventWhen,
    UpdateEventRequest,
)

START = int(datetime(2025, 1, 16, 10, tzinfo=UTC).timestamp())


@pytest.fixture
def mock_build():
    """Mock googleapiclient.discovery.build."""
    with patch("meeting_intel.adapters.calendar_adapter.build") as mock:
        yield mock


@pytest.fixture
def mock_credentials():
    """Mock google.oauth2.service_account.Credentials."""
    with patch("meeting_intel.adapters.calendar_adapter.Credentials") as mock:
        yield mock


def google_item(**overrides) -> dict:
    item = {
        "id": "evt1",
        "summary": "Design review",
        "status": "confirmed",
        "start": {"dateTime": "2025-01-16T10:00:00Z", "timeZone": "Europe/Paris"},
        "end": {"dateTime": "2025-01-16T11:00:00Z"},
        "organizer": {"email": "lead@example.com"},
        "attendees": [
            {"email": "alice@example.com", "responseStatus": "accepted"},
            {"email": "bob@example.com", "responseStatus": "declined"},
            {"email": "carol@example.com", "responseStatus": "tentative"},
            {"email": "dan@example.com"},
        ],
    }
    item.update(overrides)
    return item


class TestEventFromGoogle:
    """Tests for event resource normalization."""

    def test_maps_fields(self):
        """Times, organizer and title are normalized."""
        event = event_from_google(google_item(), "primary")

        assert event.id == "evt1"
        assert event.calendar_id == "primary"
        assert event.title == "Design review"
        assert event.when.start_time == START
        assert event.when.duration_minutes == 60
        assert event.when.start_timezone == "Europe/Paris"
        assert event.organizer_email == "lead@example.com"
        assert event.busy is True

    def test_maps_response_statuses(self):
        """Google responses map to yes/no/maybe/noreply."""
        event = event_from_google(google_item(), "primary")

        assert [p.status for p in event.participants] == [
            "yes",
            "no",
            "maybe",
            "noreply",
        ]

    def test_transparent_is_free(self):
        """Transparent events do not block time."""
        event = event_from_google(google_item(transparency="transparent"), "primary")

        assert event.busy is False
        assert event.blocks_time is False

    def test_unknown_status_is_confirmed(self):
        """Unrecognized statuses fall back to confirmed."""
        event = event_from_google(google_item(status="weird"), "primary")

        assert event.status == "confirmed"

    def test_all_day_event(self):
        """All-day events are anchored at UTC midnight."""
        event = event_from_google(
            google_item(start={"date": "2025-01-16"}, end={"date": "2025-01-17"}),
            "primary",
        )

        assert event.when.duration_minutes == 24 * 60

    def test_missing_times_raise(self):
        """Events without times cannot be normalized."""
        with pytest.raises(ValueError):
            event_from_google(google_item(start={}), "primary")


class TestGoogleCalendarAdapterInit:
    """Tests for credential handling."""

    def test_uses_provided_credentials(self, mock_build, mock_credentials):
        """Should use credentials path passed to constructor."""
        adapter = GoogleCalendarAdapter(credentials_path="/path/to/creds.json")
        adapter._get_service("service")

        call_args = mock_credentials.from_service_account_file.call_args
        assert call_args[0][0] == "/path/to/creds.json"

    def test_falls_back_to_env_var(self, mock_build, mock_credentials, monkeypatch):
        """Should fall back to GOOGLE_CALENDAR_CREDENTIALS env var."""
        monkeypatch.setenv("GOOGLE_CALENDAR_CREDENTIALS", "/env/creds.json")
        adapter = GoogleCalendarAdapter()
        adapter._get_service("service")

        call_args = mock_credentials.from_service_account_file.call_args
        assert call_args[0][0] == "/env/creds.json"

    def test_delegates_for_email_grants(self, mock_build, mock_credentials):
        """Email grant IDs use domain-wide delegation."""
        adapter = GoogleCalendarAdapter(credentials_path="/creds.json")
        adapter._get_service("me@example.com")

        creds = mock_credentials.from_service_account_file.return_value
        creds.with_subject.assert_called_once_with("me@example.com")

    def test_caches_service_per_grant(self, mock_build, mock_credentials):
        """The API client is built once per grant."""
        adapter = GoogleCalendarAdapter(credentials_path="/creds.json")
        adapter._get_service("service")
        adapter._get_service("service")

        mock_build.assert_called_once()

    def test_no_credentials_raises(self, mock_build, monkeypatch):
        """Should raise ConfigurationError when no credentials are available."""
        monkeypatch.delenv("GOOGLE_CALENDAR_CREDENTIALS", raising=False)
        adapter = GoogleCalendarAdapter()

        with pytest.raises(ConfigurationError, match="No credentials"):
            adapter._get_service("service")


class TestGoogleCalendarAdapterCalls:
    """Tests for API calls."""

    @pytest.fixture
    def service(self, mock_build, mock_credentials):
        service = MagicMock()
        mock_build.return_value = service
        return service

    @pytest.fixture
    def adapter(self, service):
        return GoogleCalendarAdapter(credentials_path="/creds.json")

    @pytest.mark.asyncio
    async def test_get_calendars(self, adapter, service):
        """Calendars carry primary and read-only flags."""
        service.calendarList().list().execute.return_value = {
            "items": [
                {"id": "me", "summary": "Me", "primary": True, "accessRole": "owner"},
                {"id": "hol", "summary": "Holidays", "accessRole": "reader"},
            ]
        }

        calendars = await adapter.get_calendars("service")

        assert [(c.id, c.is_primary, c.read_only) for c in calendars] == [
            ("me", True, False),
            ("hol", False, True),
        ]

    @pytest.mark.asyncio
    async def test_get_events_skips_malformed(self, adapter, service):
        """Events without times are skipped."""
        service.events().list().execute.return_value = {
            "items": [google_item(), google_item(id="bad", start={})]
        }

        events = await adapter.get_events(
            "service", "primary", EventQuery(start=START, end=START + 3600)
        )

        assert [e.id for e in events] == ["evt1"]

    @pytest.mark.asyncio
    async def test_get_events_passes_range(self, adapter, service):
        """The query range and cancelled flag are sent to the API."""
        service.events().list().execute.return_value = {"items": []}

        await adapter.get_events(
            "service",
            "primary",
            EventQuery(start=START, end=START + 3600, show_cancelled=False),
        )

        kwargs = service.events().list.call_args.kwargs
        assert kwargs["calendarId"] == "primary"
        assert kwargs["timeMin"] == "2025-01-16T10:00:00+00:00"
        assert kwargs["showDeleted"] is False
        assert kwargs["singleEvents"] is True

    @pytest.mark.asyncio
    async def test_failure_raises_upstream_error(self, adapter, service):
        """API failures are wrapped in UpstreamFetchError."""
        service.events().get().execute.side_effect = RuntimeError("500")

        with pytest.raises(UpstreamFetchError, match="get event failed"):
            await adapter.get_event("service", "primary", "evt1")

    @pytest.mark.asyncio
    async def test_get_events_follows_page_tokens(self, adapter, service):
        """Every page of a long listing is collected."""
        service.events().list().execute.side_effect = [
            {
                "items": [google_item(id=f"p1_{i}") for i in range(3)],
                "nextPageToken": "page2",
            },
            {"items": [google_item(id=f"p2_{i}") for i in range(2)]},
        ]

        events = await adapter.get_events(
            "service", "primary", EventQuery(start=START, end=START + 3600)
        )

        assert len(events) == 5
        assert events[-1].id == "p2_1"
        assert service.events().list.call_args.kwargs["pageToken"] == "page2"

    @pytest.mark.asyncio
    async def test_missing_event_raises_not_found(self, adapter, service):
        """A 404 from the API means the calendar lacks the event."""
        service.events().get().execute.side_effect = HttpError(
            httplib2.Response({"status": 404}), b"Not Found"
        )

        with pytest.raises(EventNotFoundError, match="evt1"):
            await adapter.get_event("service", "primary", "evt1")

    @pytest.mark.asyncio
    async def test_server_error_stays_upstream_error(self, adapter, service):
        """Non-404 HTTP errors are not mistaken for a missing event."""
        service.events().get().execute.side_effect = HttpError(
            httplib2.Response({"status": 503}), b"Backend Error"
        )

        with pytest.raises(UpstreamFetchError, match="get event failed"):
            await adapter.get_event("service", "primary", "evt1")

    @pytest.mark.asyncio
    async def test_create_event_body(self, adapter, service):
        """Busy events are created opaque with their zone."""
        service.events().insert().execute.return_value = google_item(id="new")

        event = await adapter.create_event(
            "service",
            "primary",
            CreateEventRequest(
                title="Focus Time",
                when=EventWhen(
                    start_time=START, end_time=START + 3600, start_timezone="UTC"
                ),
            ),
        )

        body = service.events().insert.call_args.kwargs["body"]
        assert body["summary"] == "Focus Time"
        assert body["transparency"] == "opaque"
        assert body["start"]["timeZone"] == "UTC"
        assert event.id == "new"

    @pytest.mark.asyncio
    async def test_update_event_sends_only_set_fields(self, adapter, service):
        """Patches carry only set fields and the notification choice."""
        service.events().patch().execute.return_value = google_item()

        await adapter.update_event(
            "service",
            "primary",
            "evt1",
            UpdateEventRequest(
                when=EventWhen(start_time=START, end_time=START + 1800),
                notify_participants=True,
            ),
        )

        kwargs = service.events().patch.call_args.kwargs
        assert set(kwargs["body"]) == {"start", "end"}
        assert kwargs["sendUpdates"] == "all"
