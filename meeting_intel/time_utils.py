"""Time helpers shared by the analytics engines.

All day-of-week and hour-of-day bucketing happens in the user's
configured zone so that "Wednesday 14:00" means the same thing to the
learner, the resolver and the scorer.
"""

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from meeting_intel.errors import ConfigurationError

WEEKDAYS = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]
WORKDAYS = WEEKDAYS[:5]

# Index by name, lower-cased, for case-insensitive matching
_WEEKDAY_INDEX = {name.lower(): i for i, name in enumerate(WEEKDAYS)}


def load_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name.

    Raises:
        ConfigurationError: If the zone is unknown or malformed
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone: {name!r}") from e


def parse_clock(value: str) -> time:
    """Parse an ``HH:MM`` wall-clock string.

    Raises:
        ConfigurationError: If the string is not a valid 24h clock time
    """
    try:
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    except (AttributeError, ValueError) as e:
        raise ConfigurationError(f"Invalid HH:MM time: {value!r}") from e


def clock_minutes(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""
    parsed = parse_clock(value)
    return parsed.hour * 60 + parsed.minute


def format_clock(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def from_unix(seconds: int, tz: ZoneInfo | None = None) -> datetime:
    """Convert unix seconds to an aware datetime in ``tz`` (UTC default)."""
    return datetime.fromtimestamp(seconds, tz=tz or UTC)


def to_unix(value: datetime) -> int:
    """Convert a datetime to unix seconds. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def weekday_name(value: datetime) -> str:
    """English weekday name, e.g. ``"Wednesday"``."""
    return WEEKDAYS[value.weekday()]


def weekday_index(name: str) -> int:
    """Monday-based index of a weekday name (case-insensitive).

    Raises:
        ConfigurationError: If the name is not a weekday
    """
    try:
        return _WEEKDAY_INDEX[name.strip().lower()]
    except KeyError as e:
        raise ConfigurationError(f"Unknown day of week: {name!r}") from e


def hour_key(value: datetime) -> str:
    """Hour bucket key, e.g. ``"14:00"``."""
    return f"{value.hour:02d}:00"


def parse_hour(value: str) -> int:
    """Hour component of an ``HH:MM`` string; 0 when unparseable."""
    try:
        return int(value.split(":")[0])
    except (AttributeError, ValueError):
        return 0


def start_of_day(value: datetime) -> datetime:
    """Local midnight of the day containing ``value``."""
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def at_clock(day: datetime, clock: str) -> datetime:
    """Same local day as ``day`` at wall-clock ``clock``."""
    parsed = parse_clock(clock)
    return day.replace(
        hour=parsed.hour, minute=parsed.minute, second=0, microsecond=0
    )


def next_occurrence(day_name: str, clock: str, now: datetime) -> datetime:
    """Next occurrence of ``day_name`` at ``clock`` on or after ``now``.

    ``now`` must be aware; the result is in the same zone. A matching
    day whose clock time has already passed rolls to the next week.
    """
    target = weekday_index(day_name)
    days_until = (target - now.weekday()) % 7
    candidate = at_clock(now + timedelta(days=days_until), clock)
    if candidate < now:
        candidate = candidate + timedelta(days=7)
    return candidate


def ranges_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Half-open interval overlap test."""
    return start1 < end2 and start2 < end1
