"""Time-range event fetching across all calendars of an account."""

from datetime import datetime

import structlog

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.errors import (
    ConfigurationError,
    EventNotFoundError,
    UpstreamFetchError,
)
from meeting_intel.models.event import Calendar, Event, EventQuery
from meeting_intel.time_utils import to_unix

logger = structlog.get_logger()


async def fetch_calendars(client: CalendarClient, grant_id: str) -> list[Calendar]:
    """List calendars, wrapping store failures.

    Raises:
        UpstreamFetchError: If the store call fails or times out
    """
    try:
        return await client.get_calendars(grant_id)
    except (UpstreamFetchError, ConfigurationError):
        raise
    except TimeoutError as e:
        raise UpstreamFetchError("Timed out listing calendars") from e
    except Exception as e:
        raise UpstreamFetchError(f"Failed to list calendars: {e}") from e


async def fetch_events_in_range(
    client: CalendarClient,
    grant_id: str,
    start: datetime,
    end: datetime,
    show_cancelled: bool = True,
) -> list[Event]:
    """Fetch every event in ``[start, end)`` from all calendars.

    Events that appear in more than one calendar are returned once.

    Args:
        client: Calendar store
        grant_id: Connected account identifier
        start: Range start (aware)
        end: Range end (aware)
        show_cancelled: Include cancelled events

    Returns:
        Events ordered by start time

    Raises:
        UpstreamFetchError: If any store call fails or times out
    """
    calendars = await fetch_calendars(client, grant_id)
    query = EventQuery(
        start=to_unix(start),
        end=to_unix(end),
        show_cancelled=show_cancelled,
    )

    seen: set[str] = set()
    events: list[Event] = []
    for calendar in calendars:
        try:
            batch = await client.get_events(grant_id, calendar.id, query)
        except (UpstreamFetchError, ConfigurationError):
            raise
        except TimeoutError as e:
            raise UpstreamFetchError(
                f"Timed out fetching events for calendar {calendar.id}"
            ) from e
        except Exception as e:
            raise UpstreamFetchError(
                f"Failed to fetch events for calendar {calendar.id}: {e}"
            ) from e

        for event in batch:
            if event.id and event.id in seen:
                continue
            if event.id:
                seen.add(event.id)
            if not event.calendar_id:
                event = event.model_copy(update={"calendar_id": calendar.id})
            events.append(event)

    logger.debug(
        "fetched events",
        grant_id=grant_id,
        calendars=len(calendars),
        events=len(events),
    )
    return sorted(events, key=lambda e: (e.when.start_time, e.id))


async def fetch_event_by_id(
    client: CalendarClient, grant_id: str, event_id: str
) -> Event:
    """Find an event in any calendar of the account.

    Only a not-found answer moves on to the next calendar; any other
    failure means the event may exist and is raised.

    Raises:
        EventNotFoundError: If no calendar holds the event
        UpstreamFetchError: If a store call fails or times out
        ConfigurationError: If the store is not configured
    """
    calendars = await fetch_calendars(client, grant_id)
    for calendar in calendars:
        try:
            event = await client.get_event(grant_id, calendar.id, event_id)
        except EventNotFoundError:
            logger.debug(
                "event not in calendar",
                calendar_id=calendar.id,
                event_id=event_id,
            )
            continue
        except (UpstreamFetchError, ConfigurationError):
            raise
        except TimeoutError as e:
            raise UpstreamFetchError(
                f"Timed out fetching event {event_id} from calendar {calendar.id}"
            ) from e
        except Exception as e:
            raise UpstreamFetchError(
                f"Failed to fetch event {event_id} from calendar {calendar.id}: {e}"
            ) from e
        if not event.calendar_id:
            event = event.model_copy(update={"calendar_id": calendar.id})
        return event

    raise EventNotFoundError(f"Event {event_id} not found in any calendar")
