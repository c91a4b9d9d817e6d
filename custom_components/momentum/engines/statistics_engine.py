"""Statistics Engine - Streak and completion-rate maths for recurring sources.

Design Principles:
    - Stateless: No coordinator reference, operates on passed data structures
    - Injected clock: "today" is always an argument, never read from the system
    - Local calendar: completion timestamps are converted with as_local()
      before their date is taken
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from .. import const
from ..utils.dt_utils import dt_add_months, dt_to_local_date
from ..utils.math_utils import calculate_ratio
from .schedule_engine import DailyRule, RecurrenceEngine, WeeklyRule

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..type_defs import CompletionRateResult
    from .schedule_engine import RecurrenceRule


class StatisticsEngine:
    """Pure statistics over a completion history.

    Example:
        streak = StatisticsEngine.calculate_streak(
            ["2026-10-18T07:02:00+00:00", "2026-10-17T07:10:00+00:00"],
            rule,
            today=date(2026, 10, 18),
        )
    """

    # ────────────────────────────────────────────────────────────────
    # Completion dates
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def completion_dates(
        completions: Iterable[str | date | datetime], today: date
    ) -> list[date]:
        """Return unique local completion dates on or before today, newest first."""
        days: set[date] = set()
        for value in completions:
            day = dt_to_local_date(value)
            if day is None:
                const.LOGGER.debug("Skipping unparseable completion %s", value)
                continue
            if day <= today:
                days.add(day)
        return sorted(days, reverse=True)

    # ────────────────────────────────────────────────────────────────
    # Streaks
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def expected_date(rule: RecurrenceRule, today: date, steps: int) -> date:
        """Return the expected date `steps` rule intervals before today.

        Always measured from today so month-end clamping does not accumulate
        (Oct 31 -> Sep 30 -> Aug 31, not Aug 30).
        """
        if isinstance(rule, DailyRule):
            return today - timedelta(days=steps * rule.interval)
        if isinstance(rule, WeeklyRule):
            return today - timedelta(days=7 * steps * rule.interval)
        return dt_add_months(today, -steps * rule.interval)

    @staticmethod
    def calculate_streak(
        completions: Iterable[str | date | datetime],
        rule: RecurrenceRule | None,
        today: date,
    ) -> int:
        """Count consecutive on-time completions walking back from today.

        Each expected date must be matched by the most recent unconsumed
        completion, exactly, or for daily rules up to one day early. A miss
        against today means the streak is 0.

        Returns:
            Streak length (>= 0).
        """
        if rule is None:
            return 0
        days = StatisticsEngine.completion_dates(completions, today)
        grace_days = const.DAILY_GRACE_DAYS if isinstance(rule, DailyRule) else 0

        streak = 0
        for completed_on in days:
            expected = StatisticsEngine.expected_date(rule, today, streak)
            diff = (expected - completed_on).days
            if not 0 <= diff <= grace_days:
                break
            streak += 1
        return streak

    # ────────────────────────────────────────────────────────────────
    # Completion rate
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def window_bounds(today: date, window_days: int) -> tuple[date, date]:
        """Return the closed trailing window [today - window_days + 1, today]."""
        window_days = max(1, window_days)
        return today - timedelta(days=window_days - 1), today

    @staticmethod
    def calculate_completion_rate(
        completions: Iterable[str | date | datetime],
        rule: RecurrenceRule | None,
        today: date,
        window_days: int,
    ) -> CompletionRateResult:
        """Completed vs expected occurrences over the trailing window.

        Every completion record in the window counts, so extra completions
        push the rate above 1.0. The rate is never clamped.
        """
        start, end = StatisticsEngine.window_bounds(today, window_days)
        expected = len(RecurrenceEngine.expected_occurrences(rule, start, end))

        completed = 0
        for value in completions:
            day = dt_to_local_date(value)
            if day is not None and start <= day <= end:
                completed += 1

        return {
            "rate": calculate_ratio(completed, expected),
            "completed": completed,
            "expected": expected,
        }
