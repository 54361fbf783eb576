"""Focus-time protection and adaptive scheduling.

This module provides:
- FocusOptimizer: Recommends, protects and right-sizes deep-work time
- AdaptiveScheduler: Proposes trigger-driven schedule changes
- Schemas for focus settings, blocks and schedule changes
"""

from meeting_intel.focus.adaptive import AdaptiveScheduler
from meeting_intel.focus.optimizer import FocusOptimizer
from meeting_intel.focus.schemas import (
    AdaptiveTrigger,
    DurationOptimization,
    FocusTimeAnalysis,
    FocusTimeBlock,
    FocusTimeSettings,
    ProtectedBlock,
    ScheduleChange,
)

__all__ = [
    "AdaptiveScheduler",
    "AdaptiveTrigger",
    "DurationOptimization",
    "FocusOptimizer",
    "FocusTimeAnalysis",
    "FocusTimeBlock",
    "FocusTimeSettings",
    "ProtectedBlock",
    "ScheduleChange",
]
