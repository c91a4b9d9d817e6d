"""Test helpers for Momentum tests.

    from tests.helpers import TODAY, daily_rule, weekly_rule, step_payloads
"""

from tests.helpers.builders import (
    TODAY,
    completion_stamp,
    daily_rule,
    days_ago,
    monthly_rule,
    step_payloads,
    weekly_rule,
)

__all__ = [
    "TODAY",
    "completion_stamp",
    "daily_rule",
    "days_ago",
    "monthly_rule",
    "step_payloads",
    "weekly_rule",
]
