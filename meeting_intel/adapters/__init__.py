"""Adapters for the external calendar store.

This module provides:
- CalendarClient: Protocol the analytics engines consume
- GoogleCalendarAdapter: Google Calendar v3 implementation
- fetch_events_in_range / fetch_event_by_id: Account-wide fetch helpers
"""

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.adapters.calendar_adapter import GoogleCalendarAdapter
from meeting_intel.adapters.event_fetcher import (
    fetch_calendars,
    fetch_event_by_id,
    fetch_events_in_range,
)

__all__ = [
    "CalendarClient",
    "GoogleCalendarAdapter",
    "fetch_calendars",
    "fetch_event_by_id",
    "fetch_events_in_range",
]
