"""RescheduleSearch explores a bounded window for new meeting times.

Search pipeline:
1. Preferred-time pass over explicit candidate starts
2. Day-offset pass: same local time on each following day, skipping
   avoided weekdays, until the delay limit or the candidate cap
3. Score, rank (score descending, earliest first on ties), keep top 5

Every candidate is checked by the ConflictResolver; candidates with
hard conflicts are never returned.
"""

import math
from collections import Counter
from datetime import datetime, timedelta

import structlog

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.adapters.event_fetcher import fetch_event_by_id
from meeting_intel.config import EngineConfig
from meeting_intel.conflicts.resolver import ConflictResolver
from meeting_intel.conflicts.schemas import (
    Conflict,
    ConflictAnalysis,
    RescheduleOption,
    RescheduleRequest,
    RescheduleResult,
)
from meeting_intel.errors import (
    InvalidEventError,
    MeetingIntelError,
    UpstreamFetchError,
)
from meeting_intel.models.event import Event, EventWhen, Participant, UpdateEventRequest
from meeting_intel.patterns.schemas import MeetingPattern
from meeting_intel.time_utils import (
    from_unix,
    hour_key,
    parse_hour,
    to_unix,
    weekday_name,
)

logger = structlog.get_logger()

MAX_CANDIDATES = 10
MAX_SUGGESTIONS = 5
SOFT_CONFLICT_PENALTY = 10
HIGH_ACCEPTANCE_RATE = 0.8


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _localize(value: datetime, config: EngineConfig) -> datetime:
    zone = config.zone()
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def calculate_reschedule_score(
    analysis: ConflictAnalysis,
    patterns: MeetingPattern | None,
    proposed_time: datetime,
    config: EngineConfig | None = None,
) -> int:
    """Score a candidate time.

    100, minus 10 per remaining soft conflict, plus up to
    ``day_bonus_weight`` and ``hour_bonus_weight`` from learned
    acceptance when patterns exist; clamped to [0, 100].
    """
    config = config or EngineConfig()
    score = 100 - SOFT_CONFLICT_PENALTY * len(analysis.soft_conflicts)

    if patterns is not None:
        local = _localize(proposed_time, config)
        acceptance = patterns.acceptance
        day_rate = acceptance.by_day_of_week.get(weekday_name(local))
        if day_rate is not None:
            score += _round_half_up(config.day_bonus_weight * day_rate)
        hour_rate = acceptance.by_time_of_day.get(hour_key(local))
        if hour_rate is not None:
            score += _round_half_up(config.hour_bonus_weight * hour_rate)

    return max(0, min(100, score))


def should_avoid_day(value: datetime, avoid_days: list[str]) -> bool:
    """Whether the weekday of ``value`` is listed (case-insensitive)."""
    day = weekday_name(value).lower()
    return any(avoid.strip().lower() == day for avoid in avoid_days)


def build_pros_from_patterns(
    value: datetime, patterns: MeetingPattern | None
) -> list[str]:
    """Positive notes for a candidate from learned patterns."""
    if patterns is None:
        return []

    pros = []
    day = weekday_name(value)
    hour = hour_key(value)

    day_rate = patterns.acceptance.by_day_of_week.get(day)
    if day_rate is not None and day_rate > HIGH_ACCEPTANCE_RATE:
        pros.append(f"High acceptance on {day} ({day_rate * 100:.0f}%)")

    hour_rate = patterns.acceptance.by_time_of_day.get(hour)
    if hour_rate is not None and hour_rate > HIGH_ACCEPTANCE_RATE:
        pros.append(f"Preferred time slot ({hour_rate * 100:.0f}% acceptance)")

    for block in patterns.productivity.blocks:
        if block.day_of_week != day:
            continue
        if parse_hour(block.start_time) <= value.hour < parse_hour(block.end_time):
            pros.append("During typical focus time")
            break

    return pros


def build_cons_from_conflicts(conflicts: list[Conflict]) -> list[str]:
    """Negative notes: the impact of each remaining soft conflict."""
    return [conflict.impact for conflict in conflicts]


class RescheduleSearch:
    """Finds ranked alternative times for an existing meeting.

    Candidates are evaluated one at a time; a failed check for one
    candidate is logged and skipped.
    """

    def __init__(self, resolver: ConflictResolver, config: EngineConfig | None = None):
        """Initialize search.

        Args:
            resolver: Conflict resolver used for every candidate
            config: Engine policy (zone and score weights)
        """
        self._resolver = resolver
        self._config = config or EngineConfig()

    async def find_reschedule_suggestions(
        self,
        grant_id: str,
        event: Event,
        request: RescheduleRequest,
        patterns: MeetingPattern | None,
    ) -> list[RescheduleOption]:
        """Find up to five alternative times for ``event``.

        Args:
            grant_id: Connected account identifier
            event: Event being moved; its length is kept
            request: Preferred times, avoided days and delay limit
            patterns: Learned patterns, or None for neutral scoring

        Returns:
            Options ranked by score, earliest first on ties

        Raises:
            InvalidEventError: If the event has no positive duration
            ConfigurationError: If the configured timezone is invalid
        """
        duration = event.when.end_time - event.when.start_time
        if duration <= 0:
            raise InvalidEventError(
                f"Event {event.id or '<proposed>'} has no positive duration"
            )

        zone = self._config.zone()
        original_start = from_unix(event.when.start_time, zone)
        participants = self._participants(event, request.must_include)

        options: list[RescheduleOption] = []
        outcomes: Counter[str] = Counter()

        for preferred in request.preferred_times:
            if len(options) >= MAX_CANDIDATES:
                break
            candidate_start = _localize(preferred, self._config)
            option = await self._evaluate(
                grant_id,
                event,
                participants,
                candidate_start,
                duration,
                patterns,
                outcomes,
            )
            if option is None:
                continue
            options.append(option.model_copy(update={"pros": ["Preferred time"]}))

        search_end = original_start + timedelta(days=request.max_delay_days)
        for offset in range(1, request.max_delay_days + 1):
            if len(options) >= MAX_CANDIDATES:
                break
            candidate_start = original_start + timedelta(days=offset)
            if candidate_start > search_end:
                break
            if should_avoid_day(candidate_start, request.avoid_days):
                continue
            option = await self._evaluate(
                grant_id,
                event,
                participants,
                candidate_start,
                duration,
                patterns,
                outcomes,
            )
            if option is None:
                continue
            options.append(option)

        options.sort(key=lambda o: (-o.score, o.proposed_time))
        logger.info(
            "reschedule search complete",
            grant_id=grant_id,
            event_id=event.id,
            accepted=len(options),
            rejected=outcomes["rejected"],
            failed=outcomes["failed"],
        )
        return options[:MAX_SUGGESTIONS]

    @staticmethod
    def _participants(event: Event, must_include: list[str]) -> list[Participant]:
        participants = list(event.participants)
        present = {p.email.lower() for p in participants}
        for email in must_include:
            if email.lower() not in present:
                participants.append(Participant(email=email))
                present.add(email.lower())
        return participants

    async def _evaluate(
        self,
        grant_id: str,
        event: Event,
        participants: list[Participant],
        start: datetime,
        duration: int,
        patterns: MeetingPattern | None,
        outcomes: Counter[str],
    ) -> RescheduleOption | None:
        """Check one candidate; None when it has hard conflicts or failed."""
        candidate = Event(
            id=event.id,
            calendar_id=event.calendar_id,
            title=event.title,
            participants=participants,
            when=EventWhen(
                start_time=to_unix(start),
                end_time=to_unix(start) + duration,
                start_timezone=event.when.start_timezone,
            ),
        )
        try:
            analysis = await self._resolver.detect_conflicts(
                grant_id, candidate, patterns, suggest_alternatives=False
            )
        except MeetingIntelError as e:
            logger.warning(
                "skipping reschedule candidate",
                grant_id=grant_id,
                candidate=start.isoformat(),
                error=str(e),
            )
            outcomes["failed"] += 1
            return None

        if not analysis.can_proceed:
            outcomes["rejected"] += 1
            return None

        return RescheduleOption(
            proposed_time=start,
            end_time=start + timedelta(seconds=duration),
            score=calculate_reschedule_score(analysis, patterns, start, self._config),
            conflicts=analysis.soft_conflicts,
            pros=build_pros_from_patterns(start, patterns),
            cons=build_cons_from_conflicts(analysis.soft_conflicts),
            participant_match=100.0,
        )


async def apply_reschedule(
    client: CalendarClient,
    grant_id: str,
    event: Event,
    option: RescheduleOption,
    notify: bool = False,
) -> RescheduleResult:
    """Move ``event`` to the selected option.

    Args:
        client: Calendar store
        grant_id: Connected account identifier
        event: Event to move
        option: Selected alternative
        notify: Ask the store to notify participants

    Returns:
        RescheduleResult with the updated event

    Raises:
        EventNotFoundError: If no calendar holds the event
        UpstreamFetchError: If the update fails
    """
    stored = await fetch_event_by_id(client, grant_id, event.id)
    request = UpdateEventRequest(
        when=EventWhen(
            start_time=to_unix(option.proposed_time),
            end_time=to_unix(option.end_time),
            start_timezone=event.when.start_timezone,
        ),
        notify_participants=notify,
    )
    try:
        updated = await client.update_event(
            grant_id, stored.calendar_id, event.id, request
        )
    except UpstreamFetchError:
        raise
    except Exception as e:
        raise UpstreamFetchError(f"Failed to update event {event.id}: {e}") from e

    logger.info(
        "event rescheduled",
        grant_id=grant_id,
        event_id=event.id,
        new_start=option.proposed_time.isoformat(),
    )
    return RescheduleResult(
        success=True,
        original_event=event,
        new_event=updated,
        selected_option=option,
        notifications_sent=len(event.participants) if notify else 0,
        message=(
            "Successfully rescheduled to "
            f"{option.proposed_time.strftime('%a, %b %d at %I:%M %p %Z')}"
        ),
    )
