"""Tests for AdaptiveScheduler."""

from datetime import UTC, datetime, timedelta

import pytest

from meeting_intel.focus.adaptive import AdaptiveScheduler, adaptive_confidence
from meeting_intel.focus.schemas import (
    AdaptiveChangeType,
    AdaptiveTrigger,
    ScheduleChange,
    ScheduleModification,
)
from meeting_intel.models.event import Participant

# Wednesday
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=UTC)


def utc(month: int, day: int, hour: int) -> datetime:
    return datetime(2025, month, day, hour, tzinfo=UTC)


def me(status: str) -> Participant:
    return Participant(email="me@example.com", status=status)


def mondays_at_nine(make_event):
    return [
        make_event(f"mon{i}", utc(1, 13, 9) - timedelta(weeks=i), minutes=60)
        for i in range(4)
    ]


class TestAdaptiveConfidence:
    """Tests for adaptive_confidence."""

    def test_no_changes(self):
        """An empty proposal has neutral confidence."""
        assert adaptive_confidence(0) == 50.0

    def test_grows_per_change(self):
        """Each change adds three points."""
        assert adaptive_confidence(1) == 63.0
        assert adaptive_confidence(5) == 75.0

    def test_capped(self):
        """Confidence never exceeds 90 at the change cap."""
        assert adaptive_confidence(10) == 90.0
        assert adaptive_confidence(50) == 90.0


class TestConflictTrigger:
    """Tests for overlapping-meeting resolution."""

    def overlapping(self, make_event, read_only: bool = False):
        return [
            make_event(
                "a",
                utc(1, 16, 10),
                minutes=60,
                title="Planning",
                participants=["x@example.com", "y@example.com", "z@example.com"],
            ),
            make_event(
                "b",
                datetime(2025, 1, 16, 10, 30, tzinfo=UTC),
                title="Catch-up",
                participants=["x@example.com"],
                read_only=read_only,
            ),
        ]

    @pytest.mark.asyncio
    async def test_smaller_meeting_moves(self, make_client, make_event, config):
        """The meeting with fewer participants moves after the other."""
        client = make_client(self.overlapping(make_event))
        scheduler = AdaptiveScheduler(client, config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.CONFLICT_DETECTED, now=NOW
        )

        assert change.id.startswith("adapt_")
        assert change.approval == "pending"
        assert change.change_type == AdaptiveChangeType.RESCHEDULE_MEETING
        assert change.affected_events == ["b"]
        assert change.changes[0].new_start_time == utc(1, 16, 11)
        assert change.impact.conflicts_resolved == 1
        assert change.impact.participants_affected == 1
        assert change.impact.risks == ["Participants must accept the new times"]
        assert change.reason == "Overlapping meetings detected: resolving 1 conflicts"
        assert change.confidence == 63.0

    @pytest.mark.asyncio
    async def test_skips_history(self, make_client, make_event, config):
        """Overlap resolution reads only upcoming events."""
        client = make_client(self.overlapping(make_event))
        scheduler = AdaptiveScheduler(client, config)

        await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.CONFLICT_DETECTED, now=NOW
        )

        assert client.get_events.await_count == 1

    @pytest.mark.asyncio
    async def test_read_only_stays(self, make_client, make_event, config):
        """A read-only meeting is never the one moved."""
        client = make_client(self.overlapping(make_event, read_only=True))
        scheduler = AdaptiveScheduler(client, config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.CONFLICT_DETECTED, now=NOW
        )

        assert change.affected_events == ["a"]
        assert change.changes[0].new_start_time == utc(1, 16, 11)

    @pytest.mark.asyncio
    async def test_nothing_to_change(self, make_client, config):
        """An empty calendar gives an empty proposal."""
        scheduler = AdaptiveScheduler(make_client([]), config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.CONFLICT_DETECTED, now=NOW
        )

        assert change.changes == []
        assert change.change_type == AdaptiveChangeType.PROTECT_BLOCK
        assert change.confidence == 50.0


class TestOverloadTrigger:
    """Tests for meeting-overload relief."""

    @pytest.mark.asyncio
    async def test_moves_excess_to_lightest_days(
        self, make_client, make_event, config
    ):
        """Small meetings beyond the threshold move to the lightest weekdays."""
        events = [
            make_event(
                "big",
                utc(1, 16, 9),
                participants=[f"p{i}@example.com" for i in range(5)],
            )
        ] + [
            make_event(f"m{hour}", utc(1, 16, hour), participants=["x@example.com"])
            for hour in range(10, 15)
        ]
        scheduler = AdaptiveScheduler(make_client(events), config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.MEETING_OVERLOAD, now=NOW
        )

        assert change.affected_events == ["m10", "m11"]
        # Friday first, then Monday once Friday carries one meeting
        assert [c.new_start_time for c in change.changes] == [
            utc(1, 17, 10),
            utc(1, 20, 11),
        ]
        assert change.impact.meetings_rescheduled == 2
        assert change.reason == (
            "Meeting load increased: reducing by rescheduling 2 meetings"
        )
        assert change.confidence == 66.0

    @pytest.mark.asyncio
    async def test_below_threshold(self, make_client, make_event, config):
        """Days at or under the threshold are left alone."""
        events = [make_event(f"m{h}", utc(1, 16, h)) for h in range(10, 14)]
        scheduler = AdaptiveScheduler(make_client(events), config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.MEETING_OVERLOAD, now=NOW
        )

        assert change.changes == []


class TestFocusTriggers:
    """Tests for focus-at-risk and deadline triggers."""

    @pytest.mark.asyncio
    async def test_moves_meetings_out_of_top_windows(
        self, make_client, make_event, config
    ):
        """Meetings inside the top windows move to the window end."""
        events = mondays_at_nine(make_event) + [
            make_event("standup", utc(1, 20, 11), title="Standup"),
            make_event("late", utc(1, 21, 16)),
            make_event("wed", utc(1, 22, 10)),
        ]
        scheduler = AdaptiveScheduler(make_client(events), config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.FOCUS_TIME_AT_RISK, now=NOW
        )

        assert change.affected_events == ["standup"]
        assert change.changes[0].new_start_time == utc(1, 20, 14)
        assert change.impact.focus_time_gained == 0.5
        assert change.reason == "Focus time at risk: protecting 0.5 additional hours"

    @pytest.mark.asyncio
    async def test_deadline_without_history(self, make_client, config):
        """Without patterns a single generic protect action is proposed."""
        scheduler = AdaptiveScheduler(make_client([]), config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.DEADLINE_CHANGE, now=NOW
        )

        assert len(change.changes) == 1
        assert change.changes[0].action == "protect"
        assert change.affected_events == []
        assert change.change_type == AdaptiveChangeType.INCREASE_FOCUS_TIME
        assert change.reason == (
            "Urgent deadline detected: increasing focus time priority"
        )

    @pytest.mark.asyncio
    async def test_deadline_protects_top_windows(
        self, make_client, make_event, config
    ):
        """The three best windows are protected at their next occurrence."""
        scheduler = AdaptiveScheduler(
            make_client(mondays_at_nine(make_event)), config
        )

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.DEADLINE_CHANGE, now=NOW
        )

        assert [c.new_start_time for c in change.changes] == [
            utc(1, 20, 10),
            utc(1, 20, 14),
            utc(1, 21, 9),
        ]
        assert [c.new_duration for c in change.changes] == [240, 180, 240]
        assert change.impact.focus_time_gained == 11.0


class TestPatternTrigger:
    """Tests for moving meetings out of low-acceptance hours."""

    @pytest.mark.asyncio
    async def test_moves_to_best_hour(self, make_client, make_event, config):
        """Meetings at declined hours move to the best accepted hour."""
        history = [
            make_event("h1", utc(1, 13, 16), participants=[me("no")]),
            make_event("h2", utc(1, 14, 16), participants=[me("no")]),
            make_event("h3", utc(1, 6, 10), participants=[me("yes")]),
        ]
        upcoming = [
            make_event("sync", utc(1, 16, 16), title="Sync"),
            make_event("fine", utc(1, 16, 10)),
            make_event("locked", utc(1, 17, 16), read_only=True),
        ]
        scheduler = AdaptiveScheduler(make_client(history + upcoming), config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.PATTERN_DETECTED, now=NOW
        )

        assert change.affected_events == ["sync"]
        assert change.changes[0].new_start_time == utc(1, 16, 10)
        assert change.changes[0].description == (
            "Move 'Sync' from 16:00 (0% acceptance) to 10:00 (100% acceptance)"
        )

    @pytest.mark.asyncio
    async def test_no_history(self, make_client, make_event, config):
        """Without patterns nothing is proposed."""
        client = make_client([make_event("sync", utc(1, 16, 16))])
        scheduler = AdaptiveScheduler(client, config)

        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.PATTERN_DETECTED, now=NOW
        )

        assert change.changes == []


class TestApplyScheduleChange:
    """Tests for apply_schedule_change."""

    @pytest.mark.asyncio
    async def test_applies_reschedules(self, make_client, make_event, config):
        """Confirmed reschedules update the store and keep meeting length."""
        client = make_client(
            [
                make_event("a", utc(1, 16, 10), minutes=60, participants=["x", "y"]),
                make_event("b", datetime(2025, 1, 16, 10, 30, tzinfo=UTC)),
            ]
        )
        scheduler = AdaptiveScheduler(client, config)
        change = await scheduler.adapt_schedule(
            "grant", AdaptiveTrigger.CONFLICT_DETECTED, now=NOW
        )

        applied = await scheduler.apply_schedule_change("grant", change)

        assert applied == 1
        moved = client.store["b"].when
        assert moved.start_time == int(utc(1, 16, 11).timestamp())
        assert moved.end_time - moved.start_time == 30 * 60

    @pytest.mark.asyncio
    async def test_failures_are_skipped(self, make_client, config):
        """Modifications that cannot be applied are skipped."""
        client = make_client([])
        scheduler = AdaptiveScheduler(client, config)
        change = ScheduleChange(
            id="adapt_test",
            timestamp=NOW,
            trigger=AdaptiveTrigger.CONFLICT_DETECTED,
            change_type=AdaptiveChangeType.RESCHEDULE_MEETING,
            changes=[
                ScheduleModification(
                    event_id="ghost",
                    action="reschedule",
                    new_start_time=utc(1, 16, 11),
                    description="Move 'Ghost'",
                ),
                ScheduleModification(action="protect", description="Protect"),
            ],
            reason="test",
            confidence=60.0,
        )

        applied = await scheduler.apply_schedule_change("grant", change)

        assert applied == 0
        client.update_event.assert_not_awaited()
