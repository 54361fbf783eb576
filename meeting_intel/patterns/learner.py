"""PatternLearner turns calendar history into a MeetingPattern.

Learning pipeline (in order):
1. Fetch every event in the lookback window
2. Acceptance rates per weekday, hour and weekday-hour
3. Scheduled vs. observed durations (overall, per participant, per size)
4. Timezone distribution
5. Productivity windows and meeting density inside working hours
6. Per-participant patterns, recommendations and insights

The resulting model is rebuilt on every call and never persisted.
"""

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from statistics import mean, pstdev
from zoneinfo import ZoneInfo

import structlog

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.adapters.event_fetcher import fetch_events_in_range
from meeting_intel.config import EngineConfig
from meeting_intel.errors import ConfigurationError
from meeting_intel.models.event import Event, ResponseStatus
from meeting_intel.patterns.schemas import (
    AcceptancePatterns,
    DateRange,
    DurationPatterns,
    DurationStats,
    MeetingAnalysis,
    MeetingPattern,
    ParticipantPattern,
    ProductivityPatterns,
    Recommendation,
    TimeBlock,
    TimezonePatterns,
)
from meeting_intel.time_utils import (
    WEEKDAYS,
    WORKDAYS,
    format_clock,
    from_unix,
    hour_key,
    load_timezone,
    weekday_index,
    weekday_name,
)

logger = structlog.get_logger()

# Event status standing in for the user's own response
STATUS_RESPONSES: dict[str, ResponseStatus] = {
    "confirmed": "yes",
    "cancelled": "no",
    "tentative": "maybe",
}

MAX_WINDOW_HOURS = 4
FOCUS_RECOMMENDATION_MIN_SCORE = 70.0
FOCUS_HIGH_PRIORITY_SCORE = 85.0
DECLINE_RATE_THRESHOLD = 0.5
DURATION_OVERRUN_MINUTES = 5


def meeting_type(participant_count: int) -> str:
    """Classify a meeting by attendee count."""
    if participant_count <= 2:
        return "1-on-1"
    if participant_count <= 5:
        return "small-group"
    return "large-group"


def duration_stats(samples: list[tuple[int, int | None]]) -> DurationStats:
    """Aggregate ``(scheduled, observed)`` minute pairs.

    Only pairs with an observed duration contribute when any exist.
    Without observations the actual average mirrors the scheduled one
    and nothing counts as an overrun.
    """
    if not samples:
        return DurationStats()

    observed = [(s, a) for s, a in samples if a is not None]
    if not observed:
        average = round(mean(s for s, _ in samples))
        return DurationStats(average_scheduled=average, average_actual=average)

    actual = [a for _, a in observed]
    overruns = sum(1 for s, a in observed if a > s)
    return DurationStats(
        average_scheduled=round(mean(s for s, _ in observed)),
        average_actual=round(mean(actual)),
        variance=round(pstdev(actual), 2),
        overrun_rate=overruns / len(observed),
        sample_size=len(observed),
    )


class PatternLearner:
    """Builds a behavioral meeting model from calendar history.

    Takes the event store and policy explicitly; holds no state between
    calls.
    """

    def __init__(self, client: CalendarClient, config: EngineConfig | None = None):
        """Initialize learner.

        Args:
            client: Calendar store used to read history
            config: Engine policy (timezone, working hours, sample size)
        """
        self._client = client
        self._config = config or EngineConfig()

    async def analyze_history(
        self,
        grant_id: str,
        days: int = 90,
        now: datetime | None = None,
    ) -> MeetingAnalysis:
        """Analyze ``days`` of history ending at ``now``.

        Args:
            grant_id: Connected account identifier
            days: Lookback window in days
            now: End of the window (defaults to the current time)

        Returns:
            MeetingAnalysis; ``patterns`` is None when there is too
            little history

        Raises:
            ConfigurationError: If timezone, working hours or days are invalid
            UpstreamFetchError: If the event store fails
        """
        if days < 1:
            raise ConfigurationError(f"Lookback must be at least 1 day, got {days}")
        zone = self._config.zone()
        self._config.working_hours()

        end = now.astimezone(zone) if now else datetime.now(zone)
        start = end - timedelta(days=days)
        period = DateRange(start=start, end=end)

        events = await fetch_events_in_range(self._client, grant_id, start, end)
        logger.info(
            "analyzing meeting history",
            grant_id=grant_id,
            days=days,
            events=len(events),
        )

        if len(events) < self._config.min_sample_size:
            return MeetingAnalysis(
                period=period,
                total_meetings=len(events),
                patterns=None,
                insights=[
                    f"Not enough meeting history in the last {days} days "
                    "to learn patterns"
                ],
            )

        patterns = self.build_patterns(events, period)
        return MeetingAnalysis(
            period=period,
            total_meetings=len(events),
            patterns=patterns,
            recommendations=self._recommendations(patterns),
            insights=self._insights(patterns, len(events), days),
        )

    def build_patterns(self, events: list[Event], period: DateRange) -> MeetingPattern:
        """Build the pattern model from an event snapshot.

        Pure with respect to its inputs; no store access.
        """
        zone = self._config.zone()
        acceptance = self._acceptance(events, zone)
        return MeetingPattern(
            user_email=self._config.user_email,
            analyzed_period=period,
            acceptance=acceptance,
            duration=self._durations(events),
            timezone=self._timezones(events, zone),
            productivity=self._productivity(events, zone, period, acceptance),
            participants=self._participants(events, zone),
        )

    def _user_response(self, event: Event) -> ResponseStatus:
        user = (self._config.user_email or "").lower()
        if user:
            for participant in event.participants:
                if participant.email.lower() == user:
                    return participant.status
        return STATUS_RESPONSES.get(event.status, "noreply")

    def _is_user(self, email: str) -> bool:
        user = self._config.user_email
        return bool(user) and email.lower() == user.lower()

    def _acceptance(self, events: list[Event], zone: ZoneInfo) -> AcceptancePatterns:
        accepted: Counter[str] = Counter()
        answered: Counter[str] = Counter()

        for event in events:
            response = self._user_response(event)
            # Pending responses carry no signal
            if response not in ("yes", "no"):
                continue
            local = from_unix(event.when.start_time, zone)
            day = weekday_name(local)
            hour = hour_key(local)
            keys = (f"day:{day}", f"hour:{hour}", f"slot:{day}-{hour}", "all")
            for key in keys:
                answered[key] += 1
                if response == "yes":
                    accepted[key] += 1

        def rates(prefix: str) -> dict[str, float]:
            return {
                key[len(prefix) :]: accepted[key] / total
                for key, total in answered.items()
                if key.startswith(prefix)
            }

        def samples(prefix: str) -> dict[str, int]:
            return {
                key[len(prefix) :]: total
                for key, total in answered.items()
                if key.startswith(prefix)
            }

        overall = accepted["all"] / answered["all"] if answered["all"] else 0.0
        return AcceptancePatterns(
            by_day_of_week=rates("day:"),
            by_time_of_day=rates("hour:"),
            by_day_and_time=rates("slot:"),
            overall=overall,
            samples_by_day=samples("day:"),
            samples_by_hour=samples("hour:"),
        )

    def _durations(self, events: list[Event]) -> DurationPatterns:
        overall: list[tuple[int, int | None]] = []
        by_participant: dict[str, list[tuple[int, int | None]]] = defaultdict(list)
        by_type: dict[str, list[tuple[int, int | None]]] = defaultdict(list)

        for event in events:
            scheduled = event.when.duration_minutes
            if event.is_cancelled or scheduled <= 0:
                continue
            sample = (scheduled, event.observed_duration_minutes)
            overall.append(sample)
            by_type[meeting_type(len(event.participants))].append(sample)
            for participant in event.participants:
                if participant.email and not self._is_user(participant.email):
                    by_participant[participant.email.lower()].append(sample)

        return DurationPatterns(
            overall=duration_stats(overall),
            by_participant={k: duration_stats(v) for k, v in by_participant.items()},
            by_type={k: duration_stats(v) for k, v in by_type.items()},
        )

    def _timezones(self, events: list[Event], zone: ZoneInfo) -> TimezonePatterns:
        distribution: Counter[str] = Counter()
        hours: dict[str, Counter[str]] = defaultdict(Counter)
        zones: dict[str, ZoneInfo] = {}

        for event in events:
            if event.is_cancelled:
                continue
            name = event.when.start_timezone or self._config.timezone
            if name not in zones:
                try:
                    zones[name] = load_timezone(name)
                except ConfigurationError:
                    logger.debug("unknown event timezone", timezone=name)
                    zones[name] = zone
            distribution[name] += 1
            hours[name][hour_key(from_unix(event.when.start_time, zones[name]))] += 1

        return TimezonePatterns(
            distribution=dict(distribution),
            preferred_times={
                name: [hour for hour, _ in counts.most_common(3)]
                for name, counts in hours.items()
            },
        )

    def _productivity(
        self,
        events: list[Event],
        zone: ZoneInfo,
        period: DateRange,
        acceptance: AcceptancePatterns,
    ) -> ProductivityPatterns:
        start_hour, end_hour = self._config.working_hours()
        slots: Counter[tuple[str, int]] = Counter()
        per_day: Counter[str] = Counter()

        for event in events:
            if not event.blocks_time:
                continue
            start = from_unix(event.when.start_time, zone)
            end = from_unix(event.when.end_time, zone)
            day = weekday_name(start)
            per_day[day] += 1
            # Every hour the meeting touches on its start day
            hour = start.hour
            last = end.hour if end.date() == start.date() else 24
            if end.minute == 0 and end.second == 0 and last > hour:
                last -= 1
            for h in range(hour, min(last, 23) + 1):
                slots[(day, h)] += 1

        working = [(d, h) for d in WORKDAYS for h in range(start_hour, end_hour)]
        average = sum(slots[slot] for slot in working) / len(working)

        def hour_score(slot: tuple[str, int]) -> float:
            if average == 0:
                return 100.0
            return min(max(100.0 - 50.0 * slots[slot] / average, 0.0), 100.0)

        blocks: list[TimeBlock] = []
        for day in WORKDAYS:
            run: list[tuple[int, float]] = []
            for h in range(start_hour, end_hour + 1):
                score = hour_score((day, h)) if h < end_hour else -1.0
                if score >= 50.0 and len(run) < MAX_WINDOW_HOURS:
                    run.append((h, score))
                    continue
                if run:
                    day_rate = acceptance.by_day_of_week.get(day, 1.0)
                    blocks.append(self._window(day, run, day_rate))
                run = [(h, score)] if score >= 50.0 else []

        blocks.sort(
            key=lambda b: (-b.score, weekday_index(b.day_of_week), b.start_time)
        )

        span_days = (period.end - period.start).total_seconds() / 86400
        weeks = max(span_days / 7, 1.0)
        density = {day: round(per_day[day] / weeks, 2) for day in WEEKDAYS}
        return ProductivityPatterns(blocks=blocks, meeting_density=density)

    @staticmethod
    def _window(day: str, run: list[tuple[int, float]], day_rate: float) -> TimeBlock:
        base = mean(score for _, score in run)
        score = min(max(base * (0.8 + 0.2 * day_rate), 0.0), 100.0)
        return TimeBlock(
            day_of_week=day,
            start_time=format_clock(run[0][0] * 60),
            end_time=format_clock((run[-1][0] + 1) * 60),
            score=round(score, 1),
        )

    def _participants(
        self, events: list[Event], zone: ZoneInfo
    ) -> dict[str, ParticipantPattern]:
        counts: Counter[str] = Counter()
        accepted: Counter[str] = Counter()
        answered: Counter[str] = Counter()
        days: dict[str, Counter[str]] = defaultdict(Counter)
        hours: dict[str, Counter[str]] = defaultdict(Counter)
        durations: dict[str, list[int]] = defaultdict(list)
        zones: dict[str, str] = {}

        for event in events:
            if event.is_cancelled:
                continue
            local = from_unix(event.when.start_time, zone)
            for participant in event.participants:
                email = participant.email.lower()
                if not email or self._is_user(email):
                    continue
                counts[email] += 1
                if participant.status in ("yes", "no"):
                    answered[email] += 1
                    if participant.status == "yes":
                        accepted[email] += 1
                days[email][weekday_name(local)] += 1
                hours[email][hour_key(local)] += 1
                durations[email].append(event.when.duration_minutes)
                if event.when.start_timezone:
                    zones[email] = event.when.start_timezone

        return {
            email: ParticipantPattern(
                email=email,
                meeting_count=count,
                acceptance_rate=(
                    accepted[email] / answered[email] if answered[email] else 0.0
                ),
                preferred_days=[d for d, _ in days[email].most_common(2)],
                preferred_times=[h for h, _ in hours[email].most_common(2)],
                average_duration=round(mean(durations[email])),
                timezone=zones.get(email),
            )
            for email, count in counts.items()
        }

    def _recommendations(self, patterns: MeetingPattern) -> list[Recommendation]:
        recommendations = []

        for block in patterns.productivity.blocks:
            if block.score < FOCUS_RECOMMENDATION_MIN_SCORE:
                continue
            recommendations.append(
                Recommendation(
                    type="focus_time",
                    priority=(
                        "high" if block.score >= FOCUS_HIGH_PRIORITY_SCORE else "medium"
                    ),
                    title=(
                        f"Block {block.day_of_week} {block.start_time}-"
                        f"{block.end_time} for focus time"
                    ),
                    description=(
                        "Historical data shows you have few meetings during this "
                        f"time (score: {block.score:.0f}/100), making it ideal "
                        "for deep work."
                    ),
                    confidence=block.score,
                    action="Create recurring focus time block",
                    impact="Increase productivity by 20-30%",
                )
            )

        for day in WEEKDAYS:
            rate = patterns.acceptance.by_day_of_week.get(day)
            if rate is None or rate >= DECLINE_RATE_THRESHOLD:
                continue
            recommendations.append(
                Recommendation(
                    type="decline_pattern",
                    priority="medium",
                    title=f"Consider avoiding {day} meetings",
                    description=(
                        f"You accept only {rate * 100:.0f}% of meetings on {day}s. "
                        "Consider blocking this time or being more selective."
                    ),
                    confidence=(1 - rate) * 100,
                    action=f"Auto-suggest alternatives to {day} meetings",
                    impact="Reduce low-productivity meetings",
                )
            )

        for email, stats in sorted(patterns.duration.by_participant.items()):
            if stats.sample_size == 0:
                continue
            diff = stats.average_actual - stats.average_scheduled
            if diff <= DURATION_OVERRUN_MINUTES:
                continue
            recommendations.append(
                Recommendation(
                    type="duration_adjustment",
                    priority="low",
                    title=f"Adjust meeting length with {email}",
                    description=(
                        f"Meetings with {email} typically run {diff} minutes over. "
                        f"Consider scheduling {stats.average_actual} minutes "
                        f"instead of {stats.average_scheduled}."
                    ),
                    confidence=70.0,
                    action=(
                        f"Suggest {stats.average_actual}-minute meetings with {email}"
                    ),
                    impact="Better time estimates and reduced overruns",
                )
            )

        return recommendations

    @staticmethod
    def _insights(patterns: MeetingPattern, total: int, days: int) -> list[str]:
        insights = []

        by_day = patterns.acceptance.by_day_of_week
        if by_day:
            best_day = max(by_day, key=lambda d: (by_day[d], -weekday_index(d)))
            insights.append(
                f"You accept {by_day[best_day] * 100:.0f}% of meetings on "
                f"{best_day}s (your best day)"
            )

        if patterns.productivity.blocks:
            block = patterns.productivity.blocks[0]
            insights.append(
                f"Peak focus time: {block.day_of_week} {block.start_time}-"
                f"{block.end_time} (fewest meetings)"
            )

        distribution = patterns.timezone.distribution
        if distribution:
            zone, count = max(distribution.items(), key=lambda item: item[1])
            insights.append(f"Most meetings in {zone} timezone ({count} meetings)")

        insights.append(f"Analyzed {total} meetings over {days} days")
        return insights
