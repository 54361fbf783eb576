"""ConflictResolver classifies a proposed time against the live calendar.

Detection pipeline:
1. Fetch existing events around the proposed day (live, never cached)
2. Hard conflicts: overlap with a non-cancelled busy event
3. Soft conflicts: back-to-back, focus-window interruption, overload
4. Static recommendations, optional alternative search, advisory text
"""

from datetime import timedelta

import structlog

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.adapters.event_fetcher import fetch_events_in_range
from meeting_intel.config import EngineConfig
from meeting_intel.conflicts.schemas import (
    Conflict,
    ConflictAnalysis,
    ConflictSeverity,
    ConflictType,
    RescheduleOption,
    RescheduleRequest,
)
from meeting_intel.errors import InvalidEventError
from meeting_intel.models.event import Event
from meeting_intel.patterns.schemas import MeetingPattern
from meeting_intel.services.llm_client import LLMClient, LLMClientError
from meeting_intel.time_utils import (
    clock_minutes,
    from_unix,
    ranges_overlap,
    start_of_day,
    weekday_name,
)

logger = structlog.get_logger()

SEARCH_PADDING = timedelta(hours=2)
# Alternative search performed for a failed or crowded check
ALTERNATIVE_HORIZON_DAYS = 3
MAX_ALTERNATIVES = 3
SOFT_CONFLICT_ALTERNATIVE_THRESHOLD = 2

RECOMMENDATION_BY_TYPE = {
    ConflictType.SOFT_BACK_TO_BACK: "Add buffer time between meetings",
    ConflictType.SOFT_FOCUS_TIME: "Consider protecting your focus time",
    ConflictType.SOFT_OVERLOAD: "Consider spreading meetings across more days",
}


class ConflictResolver:
    """Detects hard and soft conflicts for a proposed event.

    Hard-conflict and back-to-back detection depend only on existing
    events. Focus-time and overload checks need learned patterns and are
    skipped when patterns is None.
    """

    def __init__(
        self,
        client: CalendarClient,
        config: EngineConfig | None = None,
        llm_client: LLMClient | None = None,
    ):
        """Initialize resolver.

        Args:
            client: Calendar store for live event fetches
            config: Engine policy (zone, gap threshold, overload rule)
            llm_client: Optional client used only to rephrase advice
        """
        self._client = client
        self._config = config or EngineConfig()
        self._llm = llm_client

    async def detect_conflicts(
        self,
        grant_id: str,
        event: Event,
        patterns: MeetingPattern | None,
        suggest_alternatives: bool = True,
    ) -> ConflictAnalysis:
        """Analyze a proposed event for conflicts.

        Args:
            grant_id: Connected account identifier
            event: Proposed event; when it has an ID, the stored copy of
                   the same event is ignored
            patterns: Learned patterns, or None
            suggest_alternatives: Search for better times when the check
                                  fails or is crowded

        Returns:
            ConflictAnalysis; ``can_proceed`` is True iff no hard conflicts

        Raises:
            InvalidEventError: If the event ends before it starts
            ConfigurationError: If the configured timezone is invalid
            UpstreamFetchError: If the live fetch fails
        """
        if event.when.end_time < event.when.start_time:
            raise InvalidEventError("Proposed event ends before it starts")

        zone = self._config.zone()
        start = from_unix(event.when.start_time, zone)
        end = from_unix(event.when.end_time, zone)
        day_start = start_of_day(start)
        window_start = min(day_start, start - SEARCH_PADDING)
        window_end = max(day_start + timedelta(days=1), end + SEARCH_PADDING)

        existing = await fetch_events_in_range(
            self._client, grant_id, window_start, window_end
        )
        if event.id:
            existing = [e for e in existing if e.id != event.id]

        hard = self._hard_conflicts(event, existing)
        soft = self._back_to_back_conflicts(event, existing)
        if patterns is not None:
            soft += self._focus_conflicts(event, patterns)
            soft += self._overload_conflicts(event, existing, patterns)

        alternatives: list[RescheduleOption] = []
        crowded = len(soft) > SOFT_CONFLICT_ALTERNATIVE_THRESHOLD
        if suggest_alternatives and (hard or crowded):
            alternatives = await self._suggest_alternatives(grant_id, event, patterns)

        logger.debug(
            "conflict check complete",
            grant_id=grant_id,
            hard=len(hard),
            soft=len(soft),
            alternatives=len(alternatives),
        )

        advisory = self._advisory(hard, soft, alternatives)
        if self._llm is not None:
            advisory = await self._rephrase(advisory, event, hard, soft)

        return ConflictAnalysis(
            proposed_event=event,
            hard_conflicts=hard,
            soft_conflicts=soft,
            recommendations=self._recommendations(hard, soft),
            alternative_times=alternatives,
            ai_recommendation=advisory,
        )

    def _hard_conflicts(self, proposed: Event, existing: list[Event]) -> list[Conflict]:
        conflicts = []
        for event in existing:
            if not event.blocks_time:
                continue
            if not ranges_overlap(
                proposed.when.start_time,
                proposed.when.end_time,
                event.when.start_time,
                event.when.end_time,
            ):
                continue
            severity = (
                ConflictSeverity.HIGH
                if event.status == "tentative"
                else ConflictSeverity.CRITICAL
            )
            conflicts.append(
                Conflict(
                    id=f"hard_{event.id}",
                    type=ConflictType.HARD,
                    severity=severity,
                    conflicting_event=event,
                    description=f"Overlaps with '{event.title}'",
                    impact="Cannot attend both meetings simultaneously",
                    suggestion="Reschedule one of the meetings",
                    can_auto_resolve=False,
                )
            )
        return conflicts

    def _back_to_back_conflicts(
        self, proposed: Event, existing: list[Event]
    ) -> list[Conflict]:
        gap_limit = self._config.back_to_back_gap_minutes * 60
        start = proposed.when.start_time
        end = proposed.when.end_time
        conflicts = []

        for event in existing:
            if not event.blocks_time:
                continue
            if ranges_overlap(start, end, event.when.start_time, event.when.end_time):
                continue

            if event.when.end_time == start or event.when.start_time == end:
                conflicts.append(
                    Conflict(
                        id=f"soft_b2b_{event.id}",
                        type=ConflictType.SOFT_BACK_TO_BACK,
                        severity=ConflictSeverity.MEDIUM,
                        conflicting_event=event,
                        description=f"Back-to-back with '{event.title}'",
                        impact="No buffer time for breaks or overruns",
                        suggestion=(
                            f"Add {self._config.back_to_back_gap_minutes}-minute "
                            "buffer between meetings"
                        ),
                        can_auto_resolve=True,
                    )
                )
                continue

            gap_after = event.when.start_time - end
            gap_before = start - event.when.end_time
            if 0 < gap_after < gap_limit:
                description = (
                    f"Only {gap_after // 60} min gap before '{event.title}'"
                )
            elif 0 < gap_before < gap_limit:
                description = (
                    f"Only {gap_before // 60} min gap after '{event.title}'"
                )
            else:
                continue
            conflicts.append(
                Conflict(
                    id=f"soft_close_{event.id}",
                    type=ConflictType.SOFT_BACK_TO_BACK,
                    severity=ConflictSeverity.LOW,
                    conflicting_event=event,
                    description=description,
                    impact="Minimal buffer time",
                    suggestion="Consider adding more buffer time",
                    can_auto_resolve=True,
                )
            )
        return conflicts

    def _focus_conflicts(
        self, proposed: Event, patterns: MeetingPattern
    ) -> list[Conflict]:
        start = from_unix(proposed.when.start_time, self._config.zone())
        day = weekday_name(start)
        start_minute = start.hour * 60 + start.minute
        end_minute = start_minute + max(proposed.when.duration_minutes, 1)
        conflicts = []

        for block in patterns.productivity.blocks:
            if block.day_of_week != day:
                continue
            block_start = clock_minutes(block.start_time)
            block_end = clock_minutes(block.end_time)
            if not ranges_overlap(start_minute, end_minute, block_start, block_end):
                continue
            conflicts.append(
                Conflict(
                    id=f"soft_focus_{block.day_of_week}_{block.start_time}",
                    type=ConflictType.SOFT_FOCUS_TIME,
                    severity=ConflictSeverity.HIGH,
                    description=(
                        f"Interrupts focus time ({block.day_of_week} "
                        f"{block.start_time}-{block.end_time})"
                    ),
                    impact="Reduces productivity during peak focus hours",
                    suggestion="Schedule outside of focus time blocks",
                    can_auto_resolve=True,
                )
            )
        return conflicts

    def _overload_conflicts(
        self, proposed: Event, existing: list[Event], patterns: MeetingPattern
    ) -> list[Conflict]:
        zone = self._config.zone()
        start = from_unix(proposed.when.start_time, zone)
        day = start.date()
        on_day = sum(
            1
            for event in existing
            if event.blocks_time
            and from_unix(event.when.start_time, zone).date() == day
        )
        total = on_day + 1

        density = patterns.productivity.meeting_density.get(weekday_name(start), 0.0)
        threshold = max(
            density * self._config.overload_multiplier,
            self._config.overload_min_meetings,
        )
        if total <= threshold:
            return []

        return [
            Conflict(
                id=f"soft_overload_{day.isoformat()}",
                type=ConflictType.SOFT_OVERLOAD,
                severity=ConflictSeverity.MEDIUM,
                description=(
                    f"Would be meeting {total} of the day "
                    f"(typical {weekday_name(start)}: {density:.1f})"
                ),
                impact="Meeting fatigue and reduced productivity",
                suggestion="Consider spreading meetings across more days",
                can_auto_resolve=True,
            )
        ]

    @staticmethod
    def _recommendations(hard: list[Conflict], soft: list[Conflict]) -> list[str]:
        if not hard and not soft:
            return ["No conflicts detected - good time for this meeting"]

        recommendations = []
        if hard:
            recommendations.append("Hard conflicts detected - must reschedule")
            for conflict in hard:
                if conflict.suggestion not in recommendations:
                    recommendations.append(conflict.suggestion)

        for conflict_type, text in RECOMMENDATION_BY_TYPE.items():
            if any(c.type == conflict_type for c in soft):
                recommendations.append(text)
        return recommendations

    async def _suggest_alternatives(
        self,
        grant_id: str,
        event: Event,
        patterns: MeetingPattern | None,
    ) -> list[RescheduleOption]:
        # Imported here: the search module depends on this one
        from meeting_intel.conflicts.reschedule import RescheduleSearch

        if event.when.duration_minutes <= 0:
            return []
        search = RescheduleSearch(self, self._config)
        request = RescheduleRequest(
            event_id=event.id or "proposed",
            max_delay_days=ALTERNATIVE_HORIZON_DAYS,
        )
        options = await search.find_reschedule_suggestions(
            grant_id, event, request, patterns
        )
        return options[:MAX_ALTERNATIVES]

    @staticmethod
    def _advisory(
        hard: list[Conflict],
        soft: list[Conflict],
        alternatives: list[RescheduleOption],
    ) -> str:
        if hard:
            if alternatives:
                return (
                    f"Cannot proceed due to {len(hard)} hard conflict(s). "
                    "Recommend rescheduling to alternative time slot "
                    f"(Score: {alternatives[0].score}/100)"
                )
            return (
                f"Cannot proceed due to {len(hard)} hard conflict(s). "
                "Manual rescheduling required"
            )

        if len(soft) > SOFT_CONFLICT_ALTERNATIVE_THRESHOLD:
            if alternatives:
                return (
                    f"Proceeding not recommended due to {len(soft)} soft conflicts. "
                    f"Consider alternative time (Score: {alternatives[0].score}/100)"
                )
            return f"Proceeding possible but not ideal ({len(soft)} soft conflicts)"

        if soft:
            return f"Can proceed with {len(soft)} minor soft conflict(s)"
        return "Excellent time - no conflicts detected"

    async def _rephrase(
        self,
        advisory: str,
        event: Event,
        hard: list[Conflict],
        soft: list[Conflict],
    ) -> str:
        context = "\n".join(
            [f"Meeting: {event.title or 'untitled'}"]
            + [f"- {c.description}" for c in hard + soft]
        )
        try:
            return await self._llm.rephrase(advisory, context)
        except LLMClientError as e:
            logger.warning("advisory rephrasing failed", error=str(e))
            return advisory
