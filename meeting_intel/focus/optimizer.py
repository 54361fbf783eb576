"""FocusOptimizer recommends and protects deep-work blocks.

Recommendations come from the productivity windows of a freshly
learned MeetingPattern. Protected blocks are created one calendar
event at a time; a failed creation never undoes earlier ones.
"""

from datetime import datetime, timedelta
from statistics import mean, pstdev
from uuid import uuid4

import structlog

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.adapters.event_fetcher import (
    fetch_calendars,
    fetch_event_by_id,
    fetch_events_in_range,
)
from meeting_intel.config import EngineConfig
from meeting_intel.errors import ConfigurationError
from meeting_intel.focus.schemas import (
    DECLINE_MESSAGE,
    DurationOptimization,
    FocusProtectionRule,
    FocusTimeAnalysis,
    FocusTimeBlock,
    FocusTimeSettings,
    ProtectedBlock,
)
from meeting_intel.models.event import CreateEventRequest, EventWhen
from meeting_intel.patterns.learner import PatternLearner, meeting_type
from meeting_intel.patterns.schemas import DurationStats, MeetingPattern, TimeBlock
from meeting_intel.time_utils import (
    WORKDAYS,
    clock_minutes,
    format_clock,
    load_timezone,
    next_occurrence,
    parse_clock,
    ranges_overlap,
    to_unix,
    weekday_index,
)

logger = structlog.get_logger()

FOCUS_EVENT_TITLE = "Focus Time"
PEAK_BLOCK_COUNT = 3
HIGH_DENSITY_MEETINGS_PER_DAY = 5.0


def block_minutes(block: TimeBlock | FocusTimeBlock) -> int:
    """Length of a weekly window in minutes."""
    return clock_minutes(block.end_time) - clock_minutes(block.start_time)


def validate_focus_settings(settings: FocusTimeSettings) -> None:
    """Check focus settings before any store access.

    Raises:
        ConfigurationError: If days, ranges, zone or block bounds are invalid
    """
    if settings.min_block_minutes > settings.max_block_minutes:
        raise ConfigurationError(
            f"min_block_minutes ({settings.min_block_minutes}) exceeds "
            f"max_block_minutes ({settings.max_block_minutes})"
        )
    for day in settings.protected_days:
        weekday_index(day)
    for excluded in settings.excluded_time_ranges:
        if parse_clock(excluded.start_time) >= parse_clock(excluded.end_time):
            raise ConfigurationError(
                f"Excluded range {excluded.start_time}-{excluded.end_time} is empty"
            )
    if settings.timezone:
        load_timezone(settings.timezone)


def should_protect_block(block: TimeBlock, settings: FocusTimeSettings) -> bool:
    """Whether a window is allowed by protected days and excluded ranges."""
    if settings.protected_days:
        allowed = {day.strip().lower() for day in settings.protected_days}
        if block.day_of_week.lower() not in allowed:
            return False

    start = clock_minutes(block.start_time)
    end = clock_minutes(block.end_time)
    for excluded in settings.excluded_time_ranges:
        if ranges_overlap(
            start,
            end,
            clock_minutes(excluded.start_time),
            clock_minutes(excluded.end_time),
        ):
            return False
    return True


def generate_recommended_blocks(
    patterns: MeetingPattern, settings: FocusTimeSettings
) -> list[FocusTimeBlock]:
    """Pick top-scoring windows until the weekly target is met.

    Windows shorter than the minimum block are dropped; longer than the
    maximum are shortened by moving the end in.
    """
    candidates = []
    for window in patterns.productivity.blocks:
        if not should_protect_block(window, settings):
            continue
        duration = block_minutes(window)
        if duration < settings.min_block_minutes:
            continue
        end_time = window.end_time
        if duration > settings.max_block_minutes:
            duration = settings.max_block_minutes
            end_time = format_clock(clock_minutes(window.start_time) + duration)
        candidates.append(
            FocusTimeBlock(
                day_of_week=window.day_of_week,
                start_time=window.start_time,
                end_time=end_time,
                duration=duration,
                score=window.score,
                reason=f"Peak productivity time ({window.score:.0f}% score)",
            )
        )

    # Stable: equal scores keep the pattern's day/start order
    candidates.sort(key=lambda b: -b.score)

    target_minutes = int(settings.target_hours_per_week * 60)
    selected: list[FocusTimeBlock] = []
    total = 0
    for block in candidates:
        if total >= target_minutes:
            break
        selected.append(block)
        total += block.duration
    return selected


class FocusOptimizer:
    """Focus-time analysis, protection and meeting-length advice."""

    def __init__(
        self,
        client: CalendarClient,
        config: EngineConfig | None = None,
        learner: PatternLearner | None = None,
    ):
        """Initialize optimizer.

        Args:
            client: Calendar store
            config: Engine policy
            learner: Pattern learner (built from client/config if omitted)
        """
        self._client = client
        self._config = config or EngineConfig()
        self._learner = learner or PatternLearner(client, self._config)

    async def analyze_focus_time_patterns(
        self,
        grant_id: str,
        settings: FocusTimeSettings | None = None,
        days: int = 90,
        now: datetime | None = None,
    ) -> FocusTimeAnalysis:
        """Analyze history and recommend focus blocks.

        Args:
            grant_id: Connected account identifier
            settings: Focus preferences (defaults if omitted)
            days: Lookback window in days
            now: Reference time (defaults to the current time)

        Returns:
            FocusTimeAnalysis; empty with zero confidence when history
            is insufficient

        Raises:
            ConfigurationError: If settings or engine config are invalid
            UpstreamFetchError: If the event store fails
        """
        settings = settings or FocusTimeSettings()
        validate_focus_settings(settings)
        zone = self._config.zone()
        now = now.astimezone(zone) if now else datetime.now(zone)

        analysis = await self._learner.analyze_history(grant_id, days, now=now)
        if analysis.patterns is None:
            return FocusTimeAnalysis(
                user_email=self._config.user_email,
                analyzed_period=analysis.period,
                generated_at=now,
                target_protection=settings.target_hours_per_week,
                insights=["Not enough calendar history to analyze patterns"],
                confidence=0.0,
            )

        patterns = analysis.patterns
        blocks = generate_recommended_blocks(patterns, settings)
        density = patterns.productivity.meeting_density
        workday_density = {day: density.get(day, 0.0) for day in WORKDAYS}

        return FocusTimeAnalysis(
            user_email=self._config.user_email,
            analyzed_period=analysis.period,
            generated_at=now,
            peak_productivity=patterns.productivity.blocks[:PEAK_BLOCK_COUNT],
            deep_work_sessions=self._deep_work_stats(patterns),
            most_productive_day=min(workday_density, key=workday_density.get),
            least_productive_day=max(workday_density, key=workday_density.get),
            recommended_blocks=blocks,
            current_protection=await self._current_protection(grant_id, now),
            target_protection=settings.target_hours_per_week,
            insights=self._insights(patterns, blocks, settings),
            confidence=self._confidence(patterns),
        )

    async def create_protected_blocks(
        self,
        grant_id: str,
        blocks: list[FocusTimeBlock],
        settings: FocusTimeSettings | None = None,
        now: datetime | None = None,
    ) -> list[ProtectedBlock]:
        """Create a "Focus Time" event for the next occurrence of each block.

        Creations are independent: a failure is logged and the remaining
        blocks are still attempted. Nothing is rolled back.

        Args:
            grant_id: Connected account identifier
            blocks: Blocks to materialize
            settings: Protection preferences copied onto each block
            now: Reference time for "next occurrence"

        Returns:
            The blocks that were created

        Raises:
            ConfigurationError: If settings are invalid or there is no calendar
            UpstreamFetchError: If listing calendars fails
        """
        settings = settings or FocusTimeSettings()
        validate_focus_settings(settings)
        zone_name = settings.timezone or self._config.timezone
        zone = load_timezone(zone_name)
        now = now.astimezone(zone) if now else datetime.now(zone)

        calendars = await fetch_calendars(self._client, grant_id)
        if not calendars:
            raise ConfigurationError(f"No calendars found for {grant_id}")
        calendar = next((c for c in calendars if c.is_primary), calendars[0])

        rules = FocusProtectionRule(
            auto_decline=settings.auto_decline,
            allow_critical_meeting=settings.allow_urgent_override,
            require_approval=settings.require_approval,
            decline_message=DECLINE_MESSAGE,
        )

        created: list[ProtectedBlock] = []
        for block in blocks:
            start = next_occurrence(block.day_of_week, block.start_time, now)
            end = start + timedelta(minutes=block.duration)
            request = CreateEventRequest(
                title=FOCUS_EVENT_TITLE,
                description=block.reason,
                when=EventWhen(
                    start_time=to_unix(start),
                    end_time=to_unix(end),
                    start_timezone=zone_name,
                ),
                busy=True,
            )
            try:
                event = await self._client.create_event(grant_id, calendar.id, request)
            except Exception as e:
                logger.warning(
                    "focus block creation failed",
                    grant_id=grant_id,
                    day=block.day_of_week,
                    start=block.start_time,
                    error=str(e),
                )
                continue

            created.append(
                ProtectedBlock(
                    id=f"focus_{uuid4().hex[:12]}",
                    calendar_event_id=event.id,
                    start_time=start,
                    end_time=end,
                    duration=block.duration,
                    reason=block.reason,
                    allow_override=settings.allow_urgent_override,
                    protection_rules=rules,
                    created_at=datetime.now(zone),
                )
            )

        logger.info(
            "focus blocks created",
            grant_id=grant_id,
            requested=len(blocks),
            created=len(created),
        )
        return created

    async def optimize_meeting_duration(
        self,
        grant_id: str,
        event_id: str,
        now: datetime | None = None,
    ) -> DurationOptimization:
        """Recommend a meeting length from observed durations.

        Meetings of the same size are compared first; the overall
        statistics are used when that group has no observations.

        Raises:
            EventNotFoundError: If the event is not in any calendar
            UpstreamFetchError: If the event store fails
        """
        event = await fetch_event_by_id(self._client, grant_id, event_id)
        current = event.when.duration_minutes
        analysis = await self._learner.analyze_history(grant_id, now=now)

        if analysis.patterns is None:
            return DurationOptimization(
                event_id=event_id,
                current_duration=current,
                recommended_duration=current,
                historical_data=DurationStats(),
                confidence=0.0,
                reason="Not enough historical data for duration optimization",
                recommendation=f"Keep the current {current} minutes",
            )

        durations = analysis.patterns.duration
        stats = durations.by_type.get(meeting_type(len(event.participants)))
        if stats is None or stats.sample_size == 0:
            stats = durations.overall

        if stats.sample_size == 0:
            return DurationOptimization(
                event_id=event_id,
                current_duration=current,
                recommended_duration=current,
                historical_data=stats,
                confidence=0.0,
                reason="No observed meeting lengths to compare against",
                recommendation=f"Keep the current {current} minutes",
            )

        recommended = stats.average_actual
        # Snap common lengths to calendar-friendly values
        if current == 60 and stats.average_actual < 50:
            recommended = 45
        elif current == 30 and stats.average_actual < 25:
            recommended = 25
        savings = max(current - recommended, 0)

        return DurationOptimization(
            event_id=event_id,
            current_duration=current,
            recommended_duration=recommended,
            historical_data=stats,
            time_savings=savings,
            confidence=self._duration_confidence(stats),
            reason=(
                f"Historical data shows meetings average {stats.average_actual} "
                "minutes"
            ),
            recommendation=(
                f"Reduce from {current} to {recommended} minutes to save "
                f"{savings} minutes"
                if savings
                else f"Keep the current {current} minutes"
            ),
        )

    async def _current_protection(self, grant_id: str, now: datetime) -> float:
        """Hours of existing focus events in the coming week."""
        events = await fetch_events_in_range(
            self._client, grant_id, now, now + timedelta(days=7), show_cancelled=False
        )
        minutes = sum(
            event.when.duration_minutes
            for event in events
            if event.blocks_time
            and event.title.strip().lower() == FOCUS_EVENT_TITLE.lower()
        )
        return round(minutes / 60, 2)

    @staticmethod
    def _deep_work_stats(patterns: MeetingPattern) -> DurationStats:
        lengths = [block_minutes(b) for b in patterns.productivity.blocks]
        if not lengths:
            return DurationStats()
        average = round(mean(lengths))
        return DurationStats(
            average_scheduled=average,
            average_actual=average,
            variance=round(pstdev(lengths), 2),
            sample_size=len(lengths),
        )

    @staticmethod
    def _insights(
        patterns: MeetingPattern,
        blocks: list[FocusTimeBlock],
        settings: FocusTimeSettings,
    ) -> list[str]:
        insights = []

        if patterns.productivity.blocks:
            top = patterns.productivity.blocks[0]
            insights.append(
                f"Your peak productivity is {top.day_of_week} at {top.start_time}-"
                f"{top.end_time} ({top.score:.0f}% focus score)"
            )

        busy_days = [
            day
            for day, density in patterns.productivity.meeting_density.items()
            if density > HIGH_DENSITY_MEETINGS_PER_DAY
        ]
        if busy_days:
            busy_days.sort(key=weekday_index)
            insights.append(
                f"High meeting density on {', '.join(busy_days)} - consider "
                "protecting more focus time on these days"
            )

        total_hours = sum(block.duration for block in blocks) / 60
        if total_hours > 0:
            insights.append(
                f"Recommended {total_hours:.1f} hours/week of protected focus time "
                f"across {len(blocks)} blocks"
            )
        if total_hours < settings.target_hours_per_week:
            gap = settings.target_hours_per_week - total_hours
            insights.append(
                f"Need {gap:.1f} more hours/week to reach your target of "
                f"{settings.target_hours_per_week:.1f} hours"
            )
        return insights

    @staticmethod
    def _confidence(patterns: MeetingPattern) -> float:
        confidence = 50.0
        if patterns.productivity.blocks:
            confidence += 20.0
        if any(patterns.productivity.meeting_density.values()):
            confidence += 15.0
        if len(patterns.participants) > 10:
            confidence += 15.0
        return min(confidence, 100.0)

    @staticmethod
    def _duration_confidence(stats: DurationStats) -> float:
        # Consistent meeting lengths give more reliable advice
        if stats.variance < 10.0:
            return 90.0
        if stats.variance < 20.0:
            return 75.0
        if stats.variance < 30.0:
            return 60.0
        return 50.0
