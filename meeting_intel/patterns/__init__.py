"""Meeting pattern learning and scoring.

This module provides:
- PatternLearner: Builds a MeetingPattern from calendar history
- MeetingScorer: Rates a candidate time against a pattern snapshot
- Schemas for patterns, analyses and scores
"""

from meeting_intel.patterns.learner import PatternLearner
from meeting_intel.patterns.schemas import (
    MeetingAnalysis,
    MeetingPattern,
    MeetingScore,
    ScoreFactor,
    TimeBlock,
)
from meeting_intel.patterns.scorer import MeetingScorer

__all__ = [
    "MeetingAnalysis",
    "MeetingPattern",
    "MeetingScore",
    "MeetingScorer",
    "PatternLearner",
    "ScoreFactor",
    "TimeBlock",
]
