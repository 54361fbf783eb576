"""Google Calendar adapter implementing the CalendarClient protocol.

Uses the Google Calendar v3 API with service account credentials. When
the grant ID is an email address the credentials are delegated to that
user (domain-wide delegation); otherwise the service account's own
calendars are used.
"""

import asyncio
import os
from datetime import datetime

import structlog
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from meeting_intel.errors import (
    ConfigurationError,
    EventNotFoundError,
    UpstreamFetchError,
)
from meeting_intel.models.event import (
    Calendar,
    CreateEventRequest,
    Event,
    EventQuery,
    EventWhen,
    Participant,
    UpdateEventRequest,
)
from meeting_intel.time_utils import from_unix

logger = structlog.get_logger()

# Read/write access is needed to create focus blocks and move meetings
CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]

# Google answers 410 for events deleted from the calendar
NOT_FOUND_STATUSES = (404, 410)

RESPONSE_STATUS_MAP = {
    "accepted": "yes",
    "declined": "no",
    "tentative": "maybe",
    "needsAction": "noreply",
}


def _parse_google_time(value: dict) -> int:
    """Convert a Google ``start``/``end`` object to unix seconds.

    All-day events carry ``date`` instead of ``dateTime``; they are
    anchored at UTC midnight.
    """
    if value.get("dateTime"):
        return int(
            datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00")).timestamp()
        )
    if value.get("date"):
        day = datetime.fromisoformat(value["date"] + "T00:00:00+00:00")
        return int(day.timestamp())
    raise ValueError("Event time has neither dateTime nor date")


def event_from_google(item: dict, calendar_id: str) -> Event:
    """Normalize a Google Calendar event resource."""
    start = item.get("start", {})
    end = item.get("end", {})
    participants = [
        Participant(
            email=attendee.get("email", ""),
            name=attendee.get("displayName"),
            status=RESPONSE_STATUS_MAP.get(
                attendee.get("responseStatus", "needsAction"), "noreply"
            ),
        )
        for attendee in item.get("attendees", [])
    ]
    status = item.get("status", "confirmed")
    if status not in ("confirmed", "cancelled", "tentative"):
        status = "confirmed"

    return Event(
        id=item.get("id", ""),
        calendar_id=calendar_id,
        title=item.get("summary", ""),
        description=item.get("description"),
        when=EventWhen(
            start_time=_parse_google_time(start),
            end_time=_parse_google_time(end),
            start_timezone=start.get("timeZone"),
        ),
        status=status,
        busy=item.get("transparency", "opaque") != "transparent",
        read_only=bool(item.get("locked") or item.get("privateCopy")),
        organizer_email=item.get("organizer", {}).get("email"),
        participants=participants,
    )


def _when_to_google(when: EventWhen) -> dict:
    start = {"dateTime": from_unix(when.start_time).isoformat()}
    end = {"dateTime": from_unix(when.end_time).isoformat()}
    if when.start_timezone:
        start["timeZone"] = when.start_timezone
        end["timeZone"] = when.start_timezone
    return {"start": start, "end": end}


class GoogleCalendarAdapter:
    """Adapter for Google Calendar operations.

    Blocking client calls run in a worker thread via ``asyncio.to_thread``.
    Failures are raised as UpstreamFetchError.
    """

    def __init__(self, credentials_path: str | None = None):
        """Initialize with service account credentials.

        Args:
            credentials_path: Path to service account JSON.
                             Falls back to GOOGLE_CALENDAR_CREDENTIALS env var.
        """
        self._credentials_path = credentials_path or os.environ.get(
            "GOOGLE_CALENDAR_CREDENTIALS"
        )
        self._services: dict[str, object] = {}

    def _get_service(self, grant_id: str):
        """Get or create a Calendar API service for a grant."""
        if grant_id not in self._services:
            if not self._credentials_path:
                raise ConfigurationError(
                    "No credentials. Set GOOGLE_CALENDAR_CREDENTIALS env var "
                    "or pass credentials_path to constructor."
                )
            creds = Credentials.from_service_account_file(
                self._credentials_path,
                scopes=CALENDAR_SCOPES,
            )
            if "@" in grant_id:
                creds = creds.with_subject(grant_id)
            self._services[grant_id] = build(
                "calendar", "v3", credentials=creds, cache_discovery=False
            )
        return self._services[grant_id]

    async def _execute(self, operation: str, request_fn):
        """Run a blocking API call off the event loop."""
        try:
            return await asyncio.to_thread(request_fn)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning(
                "Google Calendar call failed", operation=operation, error=str(e)
            )
            raise UpstreamFetchError(f"{operation} failed: {e}") from e

    async def get_calendars(self, grant_id: str) -> list[Calendar]:
        """List calendars visible to the grant.

        Args:
            grant_id: Account email (delegated) or any label for the
                      service account itself

        Returns:
            Calendars with primary flag and access role
        """
        service = self._get_service(grant_id)
        result = await self._execute(
            "list calendars",
            lambda: service.calendarList().list().execute(),
        )
        return [
            Calendar(
                id=item.get("id", ""),
                name=item.get("summary", ""),
                is_primary=bool(item.get("primary")),
                read_only=item.get("accessRole") not in ("owner", "writer"),
            )
            for item in result.get("items", [])
        ]

    async def get_events(
        self, grant_id: str, calendar_id: str, query: EventQuery
    ) -> list[Event]:
        """List events in a time window.

        Args:
            grant_id: Account identifier
            calendar_id: Calendar ID
            query: Range and options

        Returns:
            Normalized events, recurring series expanded
        """
        service = self._get_service(grant_id)

        def _fetch_events():
            items, page_token = [], None
            while True:
                result = (
                    service.events()
                    .list(
                        calendarId=calendar_id,
                        timeMin=from_unix(query.start).isoformat(),
                        timeMax=from_unix(query.end).isoformat(),
                        maxResults=query.limit,
                        showDeleted=query.show_cancelled,
                        singleEvents=True,
                        orderBy="startTime",
                        pageToken=page_token,
                    )
                    .execute()
                )
                items.extend(result.get("items", []))
                page_token = result.get("nextPageToken")
                if not page_token:
                    return items

        items = await self._execute("list events", _fetch_events)
        events = []
        for item in items:
            try:
                events.append(event_from_google(item, calendar_id))
            except ValueError as e:
                logger.debug(
                    "skipping event without times",
                    event_id=item.get("id"),
                    error=str(e),
                )
        return events

    async def get_event(self, grant_id: str, calendar_id: str, event_id: str) -> Event:
        """Fetch one event by ID.

        Raises:
            EventNotFoundError: If the calendar does not hold the event
            UpstreamFetchError: For any other API failure
        """
        service = self._get_service(grant_id)
        try:
            item = await self._execute(
                "get event",
                lambda: service.events()
                .get(calendarId=calendar_id, eventId=event_id)
                .execute(),
            )
        except UpstreamFetchError as e:
            cause = e.__cause__
            if isinstance(cause, HttpError) and cause.resp.status in NOT_FOUND_STATUSES:
                raise EventNotFoundError(
                    f"Event {event_id} not found in calendar {calendar_id}"
                ) from cause
            raise
        return event_from_google(item, calendar_id)

    async def create_event(
        self, grant_id: str, calendar_id: str, request: CreateEventRequest
    ) -> Event:
        """Insert a new event."""
        service = self._get_service(grant_id)
        body = {
            "summary": request.title,
            "description": request.description,
            "transparency": "opaque" if request.busy else "transparent",
            **_when_to_google(request.when),
        }
        if request.participants:
            body["attendees"] = [{"email": p.email} for p in request.participants]

        item = await self._execute(
            "create event",
            lambda: service.events()
            .insert(calendarId=calendar_id, body=body)
            .execute(),
        )
        return event_from_google(item, calendar_id)

    async def update_event(
        self,
        grant_id: str,
        calendar_id: str,
        event_id: str,
        request: UpdateEventRequest,
    ) -> Event:
        """Patch an existing event; only set fields are sent."""
        service = self._get_service(grant_id)
        body: dict = {}
        if request.title is not None:
            body["summary"] = request.title
        if request.description is not None:
            body["description"] = request.description
        if request.busy is not None:
            body["transparency"] = "opaque" if request.busy else "transparent"
        if request.when is not None:
            body.update(_when_to_google(request.when))

        item = await self._execute(
            "update event",
            lambda: service.events()
            .patch(
                calendarId=calendar_id,
                eventId=event_id,
                body=body,
                sendUpdates="all" if request.notify_participants else "none",
            )
            .execute(),
        )
        return event_from_google(item, calendar_id)
