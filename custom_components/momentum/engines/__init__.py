"""Pure logic engines for Momentum.

Engines have no Home Assistant dependencies and no state: every function
operates on passed-in data. Managers own persistence and side effects.

Engines:
    - RecurrenceEngine: next occurrence and expected occurrences of a rule
    - StatisticsEngine: streaks and completion rates
    - ProjectEngine: step ordering, frontier scans, drift, progress
"""

from .project_engine import ProjectEngine
from .schedule_engine import (
    DailyRule,
    MonthlyRule,
    RecurrenceEngine,
    RecurrenceRule,
    RuleValidationError,
    WeeklyRule,
    parse_recurrence_rule,
    rule_to_dict,
)
from .statistics_engine import StatisticsEngine

__all__ = [
    "DailyRule",
    "MonthlyRule",
    "ProjectEngine",
    "RecurrenceEngine",
    "RecurrenceRule",
    "RuleValidationError",
    "StatisticsEngine",
    "WeeklyRule",
    "parse_recurrence_rule",
    "rule_to_dict",
]
