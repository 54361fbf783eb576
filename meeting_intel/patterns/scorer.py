"""MeetingScorer rates a candidate time against a pattern snapshot.

Scoring never touches the calendar store, so it is safe to call
repeatedly (for example while ranking many candidates).
"""

from datetime import datetime, timedelta

from meeting_intel.config import EngineConfig
from meeting_intel.patterns.schemas import (
    MeetingPattern,
    MeetingScore,
    ScoreFactor,
    TimeBlock,
)
from meeting_intel.time_utils import clock_minutes, hour_key, weekday_name

BASE_SCORE = 50
ACCEPTANCE_WEIGHT = 40
OVERRUN_WEIGHT = 15
SUCCESS_WEIGHT = 20
PARTICIPANT_WEIGHT = 20
FOCUS_WINDOW_WEIGHT = 10
# Bucket samples needed for full confidence
CONFIDENT_SAMPLES = 10
ALTERNATIVE_DAYS = 7
MAX_ALTERNATIVES = 3


def _clamp(value: int, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, value))


class MeetingScorer:
    """Scores meeting times from learned acceptance and duration patterns.

    Factors (each a signed impact around a neutral base of 50):
    - Day Preference: acceptance rate on the weekday
    - Time Preference: acceptance rate at the hour
    - Overrun Risk: share of meetings that ran over
    - Historical Success: weekday (or overall) acceptance
    - Participant Match: participants' preferred days and hours
    - Productivity: penalty inside a learned focus window
    """

    def __init__(
        self,
        patterns: MeetingPattern | None,
        config: EngineConfig | None = None,
    ):
        """Initialize scorer.

        Args:
            patterns: Pattern snapshot, or None when history was insufficient
            config: Engine policy (timezone used for day/hour buckets)
        """
        self._patterns = patterns
        self._config = config or EngineConfig()

    def score_meeting_time(
        self,
        time: datetime,
        participants: list[str] | None = None,
        duration_minutes: int = 30,
    ) -> MeetingScore:
        """Score a proposed meeting time.

        Args:
            time: Proposed start; naive values are read in the user's zone
            participants: Attendee emails (context only)
            duration_minutes: Proposed length

        Returns:
            MeetingScore with factors and up to three better alternatives
        """
        if self._patterns is None:
            return MeetingScore(
                score=BASE_SCORE,
                confidence=0.0,
                recommendation="No historical data available for scoring",
            )

        local = self._localize(time)
        score, factors = self._evaluate(local, participants or [])
        return MeetingScore(
            score=score,
            confidence=self._confidence(local),
            success_rate=self._success_rate(local),
            factors=factors,
            recommendation=self._recommendation(score, factors),
            alternative_times=self._alternatives(local, participants or [], score),
        )

    def _localize(self, time: datetime) -> datetime:
        zone = self._config.zone()
        if time.tzinfo is None:
            return time.replace(tzinfo=zone)
        return time.astimezone(zone)

    def _evaluate(
        self, local: datetime, participants: list[str]
    ) -> tuple[int, list[ScoreFactor]]:
        patterns = self._patterns
        acceptance = patterns.acceptance
        day = weekday_name(local)
        hour = hour_key(local)
        factors: list[ScoreFactor] = []

        if day in acceptance.by_day_of_week:
            rate = acceptance.by_day_of_week[day]
            factors.append(
                ScoreFactor(
                    name="Day Preference",
                    description=f"{rate * 100:.0f}% acceptance rate on {day}s",
                    impact=round((rate - 0.5) * ACCEPTANCE_WEIGHT),
                )
            )

        if hour in acceptance.by_time_of_day:
            rate = acceptance.by_time_of_day[hour]
            factors.append(
                ScoreFactor(
                    name="Time Preference",
                    description=f"{rate * 100:.0f}% acceptance rate at {hour}",
                    impact=round((rate - 0.5) * ACCEPTANCE_WEIGHT),
                )
            )

        overall = patterns.duration.overall
        if overall.sample_size > 0:
            factors.append(
                ScoreFactor(
                    name="Overrun Risk",
                    description=(
                        f"{overall.overrun_rate * 100:.0f}% of meetings run over "
                        "their scheduled time"
                    ),
                    impact=-round(overall.overrun_rate * OVERRUN_WEIGHT),
                )
            )

        if acceptance.samples_by_day:
            success = self._success_rate(local)
            factors.append(
                ScoreFactor(
                    name="Historical Success",
                    description=f"{success * 100:.0f}% of similar meetings accepted",
                    impact=round((success - 0.5) * SUCCESS_WEIGHT),
                )
            )

        match = self._participant_match(participants, day, hour)
        if match is not None:
            factors.append(
                ScoreFactor(
                    name="Participant Match",
                    description="Based on historical meetings with these participants",
                    impact=round((match - 0.5) * PARTICIPANT_WEIGHT),
                )
            )

        block = self._focus_block(local)
        if block is not None:
            factors.append(
                ScoreFactor(
                    name="Productivity",
                    description=(
                        f"Inside focus window {block.day_of_week} "
                        f"{block.start_time}-{block.end_time}"
                    ),
                    impact=-round(block.score / 100 * FOCUS_WINDOW_WEIGHT),
                )
            )

        return _clamp(BASE_SCORE + sum(f.impact for f in factors)), factors

    def _focus_block(self, local: datetime) -> TimeBlock | None:
        """The learned focus window covering the local time, if any."""
        day = weekday_name(local)
        minute = local.hour * 60 + local.minute
        for block in self._patterns.productivity.blocks:
            if block.day_of_week != day:
                continue
            start = clock_minutes(block.start_time)
            if start <= minute < clock_minutes(block.end_time):
                return block
        return None

    def _participant_match(
        self, participants: list[str], day: str, hour: str
    ) -> float | None:
        """Share of preference hits among participants with learned patterns."""
        hits = 0
        known = 0
        for email in participants:
            pattern = self._patterns.participants.get(email.lower())
            if pattern is None:
                continue
            known += 1
            hits += day in pattern.preferred_days
            hits += hour in pattern.preferred_times
        if known == 0:
            return None
        return hits / (known * 2)

    def _success_rate(self, local: datetime) -> float:
        acceptance = self._patterns.acceptance
        return acceptance.by_day_of_week.get(weekday_name(local), acceptance.overall)

    def _confidence(self, local: datetime) -> float:
        acceptance = self._patterns.acceptance
        samples = min(
            acceptance.samples_by_day.get(weekday_name(local), 0),
            acceptance.samples_by_hour.get(hour_key(local), 0),
        )
        return min(samples / CONFIDENT_SAMPLES * 100, 100.0)

    @staticmethod
    def _recommendation(score: int, factors: list[ScoreFactor]) -> str:
        if score >= 85:
            return "Excellent time - highly recommended based on historical patterns"
        if score >= 70:
            return "Good time - aligns well with your preferences"
        if score >= 50:
            return "Acceptable time - consider alternatives if available"

        worst = min(factors, key=lambda f: f.impact, default=None)
        if worst is not None and worst.impact < 0:
            return (
                f"Not recommended - {worst.name} is suboptimal. "
                "Consider alternative times."
            )
        return "Not recommended - consider alternative times"

    def _alternatives(
        self, local: datetime, participants: list[str], score: int
    ) -> list[datetime]:
        """Same time of day on the following weekdays that score higher."""
        candidates = []
        for offset in range(1, ALTERNATIVE_DAYS + 1):
            candidate = local + timedelta(days=offset)
            if candidate.weekday() >= 5:
                continue
            candidate_score, _ = self._evaluate(candidate, participants)
            if candidate_score > score:
                candidates.append((candidate_score, candidate))

        candidates.sort(key=lambda item: (-item[0], item[1]))
        return [candidate for _, candidate in candidates[:MAX_ALTERNATIVES]]
