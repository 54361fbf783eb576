"""AdaptiveScheduler proposes schedule changes in response to a trigger.

Each trigger looks at the next two weeks of meetings and proposes a
bounded list of modifications. Proposals are never applied here;
``apply_schedule_change`` is a separate, explicitly confirmed step.
"""

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

import structlog

from meeting_intel.adapters.base import CalendarClient
from meeting_intel.adapters.event_fetcher import (
    fetch_event_by_id,
    fetch_events_in_range,
)
from meeting_intel.config import EngineConfig
from meeting_intel.focus.optimizer import block_minutes
from meeting_intel.focus.schemas import (
    AdaptiveChangeType,
    AdaptiveImpact,
    AdaptiveTrigger,
    ScheduleChange,
    ScheduleModification,
)
from meeting_intel.models.event import Event, EventWhen, UpdateEventRequest
from meeting_intel.patterns.learner import PatternLearner
from meeting_intel.patterns.schemas import MeetingPattern
from meeting_intel.time_utils import (
    at_clock,
    clock_minutes,
    format_clock,
    from_unix,
    hour_key,
    next_occurrence,
    ranges_overlap,
    to_unix,
    weekday_name,
)

logger = structlog.get_logger()

LOOKAHEAD_DAYS = 14
MAX_CHANGES = 10
SMALL_MEETING_PARTICIPANTS = 2
PROTECTED_WINDOW_COUNT = 3
LOW_ACCEPTANCE_RATE = 0.5
RELOCATION_SEARCH_DAYS = 7

ACTION_CHANGE_TYPES = {
    "reschedule": AdaptiveChangeType.RESCHEDULE_MEETING,
    "shorten": AdaptiveChangeType.SHORTEN_MEETING,
    "decline": AdaptiveChangeType.DECLINE_MEETING,
    "protect": AdaptiveChangeType.INCREASE_FOCUS_TIME,
}

PREDICTED_BENEFITS = {
    AdaptiveTrigger.MEETING_OVERLOAD: "Lighter days with fewer meetings",
    AdaptiveTrigger.DEADLINE_CHANGE: "More uninterrupted time before the deadline",
    AdaptiveTrigger.FOCUS_TIME_AT_RISK: "Improved focus time availability",
    AdaptiveTrigger.CONFLICT_DETECTED: "No double-booked meetings",
    AdaptiveTrigger.PATTERN_DETECTED: "Meetings at times you usually accept",
}


def adaptive_confidence(change_count: int) -> float:
    """50 with nothing to change, else 60 + 3 per change (capped at 95)."""
    if change_count == 0:
        return 50.0
    return min(60.0 + 3.0 * min(change_count, MAX_CHANGES), 95.0)


class AdaptiveScheduler:
    """Trigger-driven re-optimization of upcoming meetings.

    Trigger handling:
    - MEETING_OVERLOAD: move small meetings off overloaded days
    - FOCUS_TIME_AT_RISK: move meetings out of top productivity windows
    - DEADLINE_CHANGE: protect the top productivity windows
    - CONFLICT_DETECTED: move the smaller of two overlapping meetings
    - PATTERN_DETECTED: move meetings out of low-acceptance hours
    """

    def __init__(
        self,
        client: CalendarClient,
        config: EngineConfig | None = None,
        learner: PatternLearner | None = None,
    ):
        """Initialize scheduler.

        Args:
            client: Calendar store
            config: Engine policy
            learner: Pattern learner (built from client/config if omitted)
        """
        self._client = client
        self._config = config or EngineConfig()
        self._learner = learner or PatternLearner(client, self._config)

    async def adapt_schedule(
        self,
        grant_id: str,
        trigger: AdaptiveTrigger,
        now: datetime | None = None,
    ) -> ScheduleChange:
        """Propose modifications for the next two weeks.

        Args:
            grant_id: Connected account identifier
            trigger: Why the pass runs
            now: Reference time (defaults to the current time)

        Returns:
            ScheduleChange with at most ten modifications, pending approval

        Raises:
            ConfigurationError: If engine config is invalid
            UpstreamFetchError: If the event store fails
        """
        zone = self._config.zone()
        now = now.astimezone(zone) if now else datetime.now(zone)

        upcoming = await fetch_events_in_range(
            self._client,
            grant_id,
            now,
            now + timedelta(days=LOOKAHEAD_DAYS),
            show_cancelled=False,
        )
        upcoming = [e for e in upcoming if e.blocks_time]

        patterns: MeetingPattern | None = None
        if trigger != AdaptiveTrigger.CONFLICT_DETECTED:
            analysis = await self._learner.analyze_history(grant_id, now=now)
            patterns = analysis.patterns

        if trigger == AdaptiveTrigger.MEETING_OVERLOAD:
            changes = self._relieve_overload(upcoming, patterns, zone)
        elif trigger == AdaptiveTrigger.FOCUS_TIME_AT_RISK:
            changes = self._clear_focus_windows(upcoming, patterns, zone)
        elif trigger == AdaptiveTrigger.DEADLINE_CHANGE:
            changes = self._protect_for_deadline(patterns, now)
        elif trigger == AdaptiveTrigger.CONFLICT_DETECTED:
            changes = self._resolve_overlaps(upcoming, zone)
        else:
            changes = self._follow_acceptance(upcoming, patterns, zone)
        changes = changes[:MAX_CHANGES]

        impact = self._impact(trigger, changes, upcoming)
        logger.info(
            "adaptive schedule proposed",
            grant_id=grant_id,
            trigger=trigger.value,
            changes=len(changes),
        )
        return ScheduleChange(
            id=f"adapt_{uuid4().hex[:12]}",
            timestamp=now,
            trigger=trigger,
            change_type=self._change_type(changes),
            affected_events=[c.event_id for c in changes if c.event_id],
            changes=changes,
            reason=self._reason(trigger, impact),
            impact=impact,
            confidence=adaptive_confidence(len(changes)),
        )

    async def apply_schedule_change(self, grant_id: str, change: ScheduleChange) -> int:
        """Apply the reschedule modifications of a confirmed proposal.

        Failures are logged and skipped.

        Returns:
            Number of events updated
        """
        applied = 0
        for modification in change.changes:
            if (
                modification.action != "reschedule"
                or not modification.event_id
                or modification.new_start_time is None
            ):
                continue
            try:
                event = await fetch_event_by_id(
                    self._client, grant_id, modification.event_id
                )
                start = to_unix(modification.new_start_time)
                length = event.when.end_time - event.when.start_time
                await self._client.update_event(
                    grant_id,
                    event.calendar_id,
                    event.id,
                    UpdateEventRequest(
                        when=EventWhen(
                            start_time=start,
                            end_time=start + length,
                            start_timezone=event.when.start_timezone,
                        )
                    ),
                )
            except Exception as e:
                logger.warning(
                    "schedule modification failed",
                    grant_id=grant_id,
                    event_id=modification.event_id,
                    error=str(e),
                )
                continue
            applied += 1

        logger.info(
            "schedule change applied",
            grant_id=grant_id,
            change_id=change.id,
            applied=applied,
        )
        return applied

    def _relieve_overload(
        self,
        events: list[Event],
        patterns: MeetingPattern | None,
        zone: ZoneInfo,
    ) -> list[ScheduleModification]:
        by_day: dict[date, list[Event]] = defaultdict(list)
        for event in events:
            by_day[from_unix(event.when.start_time, zone).date()].append(event)
        load = Counter({day: len(items) for day, items in by_day.items()})

        changes = []
        for day in sorted(by_day):
            threshold = self._overload_threshold(patterns, weekday_name(day))
            excess = load[day] - int(threshold)
            if excess <= 0:
                continue
            movable = [
                e
                for e in by_day[day]
                if not e.read_only and len(e.participants) <= SMALL_MEETING_PARTICIPANTS
            ]
            for event in movable[:excess]:
                start = from_unix(event.when.start_time, zone)
                target = self._lightest_weekday_after(day, load)
                new_start = start + timedelta(days=(target - day).days)
                load[day] -= 1
                load[target] += 1
                changes.append(
                    ScheduleModification(
                        event_id=event.id,
                        action="reschedule",
                        old_start_time=start,
                        new_start_time=new_start,
                        old_duration=event.when.duration_minutes,
                        new_duration=event.when.duration_minutes,
                        description=(
                            f"Move '{event.title}' to {weekday_name(new_start)} "
                            "to reduce meeting overload"
                        ),
                    )
                )
        return changes

    def _overload_threshold(self, patterns: MeetingPattern | None, day: str) -> float:
        density = 0.0
        if patterns is not None:
            density = patterns.productivity.meeting_density.get(day, 0.0)
        return max(
            density * self._config.overload_multiplier,
            self._config.overload_min_meetings,
        )

    @staticmethod
    def _lightest_weekday_after(day: date, load: Counter) -> date:
        candidates = []
        for offset in range(1, RELOCATION_SEARCH_DAYS + 1):
            candidate = day + timedelta(days=offset)
            if candidate.weekday() < 5:
                candidates.append(candidate)
        # Lightest first, earliest on ties
        return min(candidates, key=lambda d: (load[d], d))

    @staticmethod
    def _clear_focus_windows(
        events: list[Event],
        patterns: MeetingPattern | None,
        zone: ZoneInfo,
    ) -> list[ScheduleModification]:
        if patterns is None:
            return []
        windows = patterns.productivity.blocks[:PROTECTED_WINDOW_COUNT]

        changes = []
        for event in events:
            if event.read_only:
                continue
            start = from_unix(event.when.start_time, zone)
            start_minute = start.hour * 60 + start.minute
            end_minute = start_minute + event.when.duration_minutes
            for window in windows:
                if window.day_of_week != weekday_name(start):
                    continue
                window_start = clock_minutes(window.start_time)
                window_end = clock_minutes(window.end_time)
                if not ranges_overlap(
                    start_minute, end_minute, window_start, window_end
                ):
                    continue
                changes.append(
                    ScheduleModification(
                        event_id=event.id,
                        action="reschedule",
                        old_start_time=start,
                        new_start_time=at_clock(start, window.end_time),
                        old_duration=event.when.duration_minutes,
                        new_duration=event.when.duration_minutes,
                        description=(
                            f"Move '{event.title}' to protect focus time "
                            f"({window.day_of_week} {window.start_time}-"
                            f"{window.end_time})"
                        ),
                    )
                )
                break
        return changes

    @staticmethod
    def _protect_for_deadline(
        patterns: MeetingPattern | None, now: datetime
    ) -> list[ScheduleModification]:
        if patterns is None or not patterns.productivity.blocks:
            return [
                ScheduleModification(
                    action="protect",
                    description="Add additional focus blocks due to deadline pressure",
                )
            ]

        changes = []
        for window in patterns.productivity.blocks[:PROTECTED_WINDOW_COUNT]:
            length = block_minutes(window)
            changes.append(
                ScheduleModification(
                    action="protect",
                    new_start_time=next_occurrence(
                        window.day_of_week, window.start_time, now
                    ),
                    new_duration=length,
                    description=(
                        f"Protect {window.day_of_week} {window.start_time}-"
                        f"{window.end_time} for deadline work"
                    ),
                )
            )
        return changes

    @staticmethod
    def _resolve_overlaps(
        events: list[Event], zone: ZoneInfo
    ) -> list[ScheduleModification]:
        ordered = sorted(events, key=lambda e: (e.when.start_time, e.id))
        moved: set[str] = set()
        changes = []

        for i, first in enumerate(ordered):
            for second in ordered[i + 1 :]:
                if second.when.start_time >= first.when.end_time:
                    break
                if first.id in moved or second.id in moved:
                    continue
                # Smaller meeting moves: fewer participants, then shorter
                smaller, other = sorted(
                    (first, second),
                    key=lambda e: (
                        len(e.participants),
                        e.when.duration_minutes,
                        -e.when.start_time,
                    ),
                )
                if smaller.read_only:
                    smaller, other = other, smaller
                    if smaller.read_only:
                        continue
                moved.add(smaller.id)
                changes.append(
                    ScheduleModification(
                        event_id=smaller.id,
                        action="reschedule",
                        old_start_time=from_unix(smaller.when.start_time, zone),
                        new_start_time=from_unix(other.when.end_time, zone),
                        old_duration=smaller.when.duration_minutes,
                        new_duration=smaller.when.duration_minutes,
                        description=(
                            f"Move '{smaller.title}' after '{other.title}' "
                            "to resolve overlap"
                        ),
                    )
                )
        return changes

    def _follow_acceptance(
        self,
        events: list[Event],
        patterns: MeetingPattern | None,
        zone: ZoneInfo,
    ) -> list[ScheduleModification]:
        if patterns is None:
            return []
        rates = patterns.acceptance.by_time_of_day
        start_hour, end_hour = self._config.working_hours()
        working = [
            (h, rates[format_clock(h * 60)])
            for h in range(start_hour, end_hour)
            if format_clock(h * 60) in rates
        ]
        if not working:
            return []
        # Highest rate, earliest hour on ties
        best_hour, best_rate = max(working, key=lambda item: (item[1], -item[0]))

        changes = []
        for event in events:
            if event.read_only:
                continue
            start = from_unix(event.when.start_time, zone)
            rate = rates.get(hour_key(start))
            if rate is None or rate >= LOW_ACCEPTANCE_RATE or best_rate <= rate:
                continue
            new_start = at_clock(start, format_clock(best_hour * 60))
            changes.append(
                ScheduleModification(
                    event_id=event.id,
                    action="reschedule",
                    old_start_time=start,
                    new_start_time=new_start,
                    old_duration=event.when.duration_minutes,
                    new_duration=event.when.duration_minutes,
                    description=(
                        f"Move '{event.title}' from {hour_key(start)} "
                        f"({rate * 100:.0f}% acceptance) to {hour_key(new_start)} "
                        f"({best_rate * 100:.0f}% acceptance)"
                    ),
                )
            )
        return changes

    @staticmethod
    def _impact(
        trigger: AdaptiveTrigger,
        changes: list[ScheduleModification],
        events: list[Event],
    ) -> AdaptiveImpact:
        participants = {e.id: len(e.participants) for e in events}
        rescheduled = [c for c in changes if c.action == "reschedule"]
        protected_minutes = sum(
            c.new_duration for c in changes if c.action == "protect"
        )

        focus_gained = 0.0
        if trigger == AdaptiveTrigger.FOCUS_TIME_AT_RISK:
            focus_gained = sum(c.old_duration for c in rescheduled) / 60
        elif trigger == AdaptiveTrigger.DEADLINE_CHANGE:
            focus_gained = protected_minutes / 60

        risks = []
        if rescheduled:
            risks.append("Participants must accept the new times")
        if len(rescheduled) > 5:
            risks.append("Many simultaneous moves may disrupt collaborators")

        return AdaptiveImpact(
            focus_time_gained=round(focus_gained, 2),
            meetings_rescheduled=len(rescheduled),
            meetings_declined=sum(1 for c in changes if c.action == "decline"),
            duration_saved=sum(
                c.old_duration - c.new_duration
                for c in changes
                if c.action == "shorten"
            ),
            conflicts_resolved=(
                len(rescheduled)
                if trigger == AdaptiveTrigger.CONFLICT_DETECTED
                else 0
            ),
            participants_affected=sum(
                participants.get(c.event_id, 0) for c in rescheduled
            ),
            predicted_benefit=PREDICTED_BENEFITS[trigger],
            risks=risks,
        )

    @staticmethod
    def _change_type(changes: list[ScheduleModification]) -> AdaptiveChangeType:
        if not changes:
            return AdaptiveChangeType.PROTECT_BLOCK
        counts = Counter(c.action for c in changes)
        action = max(counts, key=counts.get)
        return ACTION_CHANGE_TYPES[action]

    @staticmethod
    def _reason(trigger: AdaptiveTrigger, impact: AdaptiveImpact) -> str:
        if trigger == AdaptiveTrigger.MEETING_OVERLOAD:
            return (
                "Meeting load increased: reducing by rescheduling "
                f"{impact.meetings_rescheduled} meetings"
            )
        if trigger == AdaptiveTrigger.FOCUS_TIME_AT_RISK:
            return (
                "Focus time at risk: protecting "
                f"{impact.focus_time_gained:.1f} additional hours"
            )
        if trigger == AdaptiveTrigger.DEADLINE_CHANGE:
            return "Urgent deadline detected: increasing focus time priority"
        if trigger == AdaptiveTrigger.CONFLICT_DETECTED:
            return (
                f"Overlapping meetings detected: resolving "
                f"{impact.conflicts_resolved} conflicts"
            )
        return "Meetings scheduled at low-acceptance times: moving to better hours"
