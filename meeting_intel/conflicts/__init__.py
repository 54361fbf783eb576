"""Conflict detection and rescheduling.

This module provides:
- ConflictResolver: Hard/soft conflict classification against the live calendar
- RescheduleSearch: Bounded search for ranked alternative times
- apply_reschedule: Moves an event to a selected option
- Schemas for conflicts, analyses and reschedule options
"""

from meeting_intel.conflicts.reschedule import (
    RescheduleSearch,
    apply_reschedule,
    calculate_reschedule_score,
)
from meeting_intel.conflicts.resolver import ConflictResolver
from meeting_intel.conflicts.schemas import (
    Conflict,
    ConflictAnalysis,
    ConflictSeverity,
    ConflictType,
    RescheduleOption,
    RescheduleRequest,
    RescheduleResult,
)

__all__ = [
    "Conflict",
    "ConflictAnalysis",
    "ConflictResolver",
    "ConflictSeverity",
    "ConflictType",
    "RescheduleOption",
    "RescheduleRequest",
    "RescheduleResult",
    "RescheduleSearch",
    "apply_reschedule",
    "calculate_reschedule_score",
]
