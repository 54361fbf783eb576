"""Meeting intelligence engine.

Learns a user's meeting behavior from calendar history and uses it to
detect conflicts, score candidate times, search reschedule alternatives
and protect focus time.
"""

__version__ = "0.1.0"
