"""Error types raised by the meeting intelligence engine."""


class MeetingIntelError(Exception):
    """Base class for engine errors."""

    pass


class UpstreamFetchError(MeetingIntelError):
    """Raised when the calendar store call fails or times out.

    Aborts the current operation; no partial pattern or analysis is
    returned.
    """

    pass


class ConfigurationError(MeetingIntelError):
    """Raised for malformed working hours, timezones or focus settings."""

    pass


class EventNotFoundError(MeetingIntelError):
    """Raised when an event id is not present in any calendar."""

    pass


class InvalidEventError(MeetingIntelError):
    """Raised when an event cannot be used (e.g. non-positive duration)."""

    pass
