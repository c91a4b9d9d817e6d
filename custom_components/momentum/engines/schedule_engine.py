"""Schedule Engine for Momentum.

Recurrence rules are a tagged union of frozen dataclasses (DailyRule,
WeeklyRule, MonthlyRule) parsed from the stored dict payload at the storage
boundary, so the calculator never sees an untyped blob.

Hybrid approach:
- `dateutil.rrule` for enumerating daily/weekly occurrences in a range
- `dateutil.relativedelta` for month stepping and end-of-month clamping
  (day 31 in February resolves to Feb 28/29, never March)

All arithmetic is on calendar dates in the user's local civil calendar.
Datetimes are converted with `as_local()` before `.date()` is taken.

ARCHITECTURE: This is a pure logic engine with NO Home Assistant dependencies.
All functions are static methods that operate on passed-in data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
import json
from typing import TYPE_CHECKING, Any, ClassVar

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from .. import const
from ..utils.dt_utils import (
    dt_last_day_of_month,
    dt_parse_time,
    dt_to_local_date,
)

if TYPE_CHECKING:
    from ..type_defs import RecurrenceRuleData


class RuleValidationError(ValueError):
    """Raised by strict rule parsing when a payload violates rule invariants.

    Attributes:
        reason: Human readable description of the violation
    """

    def __init__(self, reason: str) -> None:
        """Initialize RuleValidationError."""
        self.reason = reason
        super().__init__(reason)


# =============================================================================
# RULE TYPES
# =============================================================================


@dataclass(frozen=True)
class DailyRule:
    """Every `interval` days, anchored at `start_date`."""

    interval: int
    start_date: date
    time_of_day: time | None = None
    custom_exclusions: frozenset[date] = frozenset()

    type: ClassVar[str] = const.RULE_TYPE_DAILY


@dataclass(frozen=True)
class WeeklyRule:
    """On the selected weekdays (0 = Monday .. 6 = Sunday)."""

    interval: int
    start_date: date
    days_of_week: frozenset[int] = frozenset()
    time_of_day: time | None = None
    custom_exclusions: frozenset[date] = frozenset()

    type: ClassVar[str] = const.RULE_TYPE_WEEKLY


@dataclass(frozen=True)
class MonthlyRule:
    """On the selected days of month.

    Positive values are clamped to the month's last day. Negative values
    count back from the end of the month (-1 = last day).
    """

    interval: int
    start_date: date
    days_of_month: tuple[int, ...] = ()
    time_of_day: time | None = None
    custom_exclusions: frozenset[date] = frozenset()

    type: ClassVar[str] = const.RULE_TYPE_MONTHLY


RecurrenceRule = DailyRule | WeeklyRule | MonthlyRule


# =============================================================================
# PARSING / SERIALIZATION (storage boundary)
# =============================================================================


def _parse_weekday(value: Any) -> int:
    """Return the weekday index for a name ("monday", "Mon") or an int 0-6."""
    if isinstance(value, bool):
        raise RuleValidationError(f"invalid weekday {value!r}")
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise RuleValidationError(f"weekday index {value} outside 0-6")
    if isinstance(value, str):
        token = value.strip().lower()
        for index, name in enumerate(const.WEEKDAY_NAMES):
            if token and name.lower().startswith(token) and len(token) >= 3:
                return index
    raise RuleValidationError(f"invalid weekday {value!r}")


def _parse_month_day(value: Any) -> int:
    """Return a validated day-of-month value (-31..31, non-zero)."""
    if isinstance(value, bool):
        raise RuleValidationError(f"invalid day of month {value!r}")
    try:
        day = int(value)
    except (TypeError, ValueError) as err:
        raise RuleValidationError(f"invalid day of month {value!r}") from err
    if day == 0 or not -31 <= day <= 31:
        raise RuleValidationError(f"day of month {day} outside -31..31")
    return day


def _build_rule(data: RecurrenceRuleData | dict[str, Any] | str) -> RecurrenceRule:
    """Validate a rule payload and build its dataclass. Raises RuleValidationError."""
    if isinstance(data, str):
        # Legacy payloads were stored as JSON text
        try:
            data = json.loads(data)
        except ValueError as err:
            raise RuleValidationError("rule is not valid JSON") from err
    if not isinstance(data, dict):
        raise RuleValidationError("rule must be a mapping")

    rule_type = str(data.get(const.RULE_TYPE, "")).strip().lower()
    if rule_type not in const.RULE_TYPES:
        raise RuleValidationError(f"unknown recurrence type {rule_type!r}")

    raw_interval = data.get(const.RULE_INTERVAL, 1)
    try:
        interval = int(raw_interval)
    except (TypeError, ValueError) as err:
        raise RuleValidationError(f"invalid interval {raw_interval!r}") from err
    if interval < 1:
        raise RuleValidationError(f"interval must be >= 1, got {interval}")

    start_date = dt_to_local_date(data.get(const.RULE_START_DATE))
    if start_date is None:
        raise RuleValidationError("start_date is required")

    time_of_day = None
    raw_time = data.get(const.RULE_TIME_OF_DAY)
    if raw_time:
        time_of_day = dt_parse_time(raw_time)
        if time_of_day is None:
            raise RuleValidationError(f"invalid time_of_day {raw_time!r}")

    exclusions: set[date] = set()
    for raw in data.get(const.RULE_CUSTOM_EXCLUSIONS) or []:
        excluded = dt_to_local_date(raw)
        if excluded is None:
            raise RuleValidationError(f"invalid exclusion date {raw!r}")
        exclusions.add(excluded)

    if rule_type == const.RULE_TYPE_DAILY:
        return DailyRule(
            interval=interval,
            start_date=start_date,
            time_of_day=time_of_day,
            custom_exclusions=frozenset(exclusions),
        )

    if rule_type == const.RULE_TYPE_WEEKLY:
        days = frozenset(
            _parse_weekday(day) for day in data.get(const.RULE_DAYS_OF_WEEK) or []
        )
        if not days:
            raise RuleValidationError("weekly rule needs at least one day")
        return WeeklyRule(
            interval=interval,
            start_date=start_date,
            days_of_week=days,
            time_of_day=time_of_day,
            custom_exclusions=frozenset(exclusions),
        )

    month_days = tuple(
        sorted(
            {_parse_month_day(day) for day in data.get(const.RULE_DAYS_OF_MONTH) or []}
        )
    )
    if not month_days:
        raise RuleValidationError("monthly rule needs at least one day")
    return MonthlyRule(
        interval=interval,
        start_date=start_date,
        days_of_month=month_days,
        time_of_day=time_of_day,
        custom_exclusions=frozenset(exclusions),
    )


def parse_recurrence_rule(
    data: RecurrenceRuleData | dict[str, Any] | str | None, strict: bool = False
) -> RecurrenceRule | None:
    """Parse a stored rule payload into a typed rule.

    Args:
        data: Stored payload (dict, or legacy JSON string)
        strict: When True, violations raise RuleValidationError (input path).
            When False, a malformed rule is logged and None is returned so
            callers treat it as "no occurrence" (read path).

    Returns:
        DailyRule | WeeklyRule | MonthlyRule, or None for a malformed rule
        in lenient mode.
    """
    if data is None:
        if strict:
            raise RuleValidationError("recurrence rule is required")
        return None
    try:
        return _build_rule(data)
    except RuleValidationError as err:
        if strict:
            raise
        const.LOGGER.warning("Ignoring malformed recurrence rule: %s", err.reason)
        return None


def rule_to_dict(rule: RecurrenceRule) -> RecurrenceRuleData:
    """Serialize a typed rule back to its normalized storage payload."""
    data: dict[str, Any] = {
        const.RULE_TYPE: rule.type,
        const.RULE_INTERVAL: rule.interval,
        const.RULE_START_DATE: rule.start_date.isoformat(),
        const.RULE_TIME_OF_DAY: (
            rule.time_of_day.strftime("%H:%M") if rule.time_of_day else None
        ),
        const.RULE_CUSTOM_EXCLUSIONS: sorted(
            day.isoformat() for day in rule.custom_exclusions
        ),
    }
    if isinstance(rule, WeeklyRule):
        data[const.RULE_DAYS_OF_WEEK] = [
            const.WEEKDAY_NAMES[day] for day in sorted(rule.days_of_week)
        ]
    elif isinstance(rule, MonthlyRule):
        data[const.RULE_DAYS_OF_MONTH] = list(rule.days_of_month)
    return data  # type: ignore[return-value]


# =============================================================================
# RECURRENCE ENGINE
# =============================================================================


class RecurrenceEngine:
    """Pure recurrence calculator.

    Weekly and monthly lookups follow the selected days only: their
    `interval` is carried on the rule (and used by the streak walk) but does
    not thin out occurrences. Daily rules step by `interval` days.
    """

    WEEKDAY_TO_RRULE: ClassVar[tuple[Any, ...]] = (MO, TU, WE, TH, FR, SA, SU)

    # ────────────────────────────────────────────────────────────────
    # Month-day resolution
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def resolve_month_day(year: int, month: int, day_value: int) -> date | None:
        """Resolve a day-of-month value for a concrete month.

        Positive values clamp to the month's last day (31 in February gives
        Feb 28/29). Negative values count back from the last day (-1 = last);
        a negative offset reaching before the 1st has no date in that month.
        """
        last_day = dt_last_day_of_month(year, month)
        if day_value < 0:
            resolved = last_day + day_value + 1
            if resolved < 1:
                return None
            return date(year, month, resolved)
        return date(year, month, min(day_value, last_day))

    @staticmethod
    def month_dates(rule: MonthlyRule, year: int, month: int) -> list[date]:
        """Return the sorted, de-duplicated dates a monthly rule selects in a month."""
        resolved = {
            RecurrenceEngine.resolve_month_day(year, month, value)
            for value in rule.days_of_month
        }
        return sorted(day for day in resolved if day is not None)

    # ────────────────────────────────────────────────────────────────
    # Next occurrence
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def next_occurrence(
        rule: RecurrenceRule | None, from_date: date | datetime | str
    ) -> date | None:
        """Return the first scheduled date strictly after `from_date`.

        - daily: from_date + interval days (excluded dates step further)
        - weekly: first selected weekday within the next 14 days
        - monthly: earliest selected day in the current month through +12

        Returns:
            The next date, or None when the rule is malformed or selects
            nothing in the scan window.
        """
        if rule is None:
            return None
        start = dt_to_local_date(from_date)
        if start is None:
            const.LOGGER.warning("Cannot compute next occurrence from %s", from_date)
            return None

        if isinstance(rule, DailyRule):
            candidate = start + timedelta(days=rule.interval)
            for _ in range(const.MAX_DAILY_EXCLUSION_STEPS):
                if candidate not in rule.custom_exclusions:
                    return candidate
                candidate += timedelta(days=rule.interval)
            const.LOGGER.warning(
                "Daily rule excludes every date for %s steps after %s",
                const.MAX_DAILY_EXCLUSION_STEPS,
                start,
            )
            return None

        if isinstance(rule, WeeklyRule):
            for offset in range(1, const.WEEKLY_SCAN_DAYS + 1):
                candidate = start + timedelta(days=offset)
                if (
                    candidate.weekday() in rule.days_of_week
                    and candidate not in rule.custom_exclusions
                ):
                    return candidate
            const.LOGGER.debug(
                "Weekly rule selected no day within %s days of %s",
                const.WEEKLY_SCAN_DAYS,
                start,
            )
            return None

        month_start = start.replace(day=1)
        for offset in range(const.MONTHLY_SCAN_MONTHS + 1):
            month = month_start + relativedelta(months=offset)
            month_days = RecurrenceEngine.month_dates(rule, month.year, month.month)
            for candidate in month_days:
                if candidate > start and candidate not in rule.custom_exclusions:
                    return candidate
        const.LOGGER.debug(
            "Monthly rule selected no day within %s months of %s",
            const.MONTHLY_SCAN_MONTHS,
            start,
        )
        return None

    # ────────────────────────────────────────────────────────────────
    # Matching and enumeration
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def matches(rule: RecurrenceRule | None, day: date) -> bool:
        """Return True if `day` is a scheduled date of the rule."""
        if rule is None or day < rule.start_date or day in rule.custom_exclusions:
            return False
        if isinstance(rule, DailyRule):
            return (day - rule.start_date).days % rule.interval == 0
        if isinstance(rule, WeeklyRule):
            return day.weekday() in rule.days_of_week
        return day in RecurrenceEngine.month_dates(rule, day.year, day.month)

    @staticmethod
    def expected_occurrences(
        rule: RecurrenceRule | None, start: date, end: date
    ) -> list[date]:
        """Enumerate every scheduled date in the closed interval [start, end].

        Used for statistics only. Dates before the rule's start_date and
        custom exclusions never count.
        """
        if rule is None:
            return []
        first = max(start, rule.start_date)
        if first > end:
            return []

        if isinstance(rule, DailyRule):
            # Anchored at start_date so every interval-th day counts
            occurrences = rrule(
                DAILY,
                interval=rule.interval,
                dtstart=datetime.combine(rule.start_date, time.min),
            ).between(
                datetime.combine(first, time.min),
                datetime.combine(end, time.min),
                inc=True,
            )
            days = [occurrence.date() for occurrence in occurrences]
        elif isinstance(rule, WeeklyRule):
            if not rule.days_of_week:
                return []
            occurrences = rrule(
                WEEKLY,
                byweekday=[
                    RecurrenceEngine.WEEKDAY_TO_RRULE[day]
                    for day in sorted(rule.days_of_week)
                ],
                dtstart=datetime.combine(first, time.min),
                until=datetime.combine(end, time.min),
            )
            days = [occurrence.date() for occurrence in occurrences]
        else:
            days = []
            month = first.replace(day=1)
            while month <= end:
                days.extend(
                    day
                    for day in RecurrenceEngine.month_dates(
                        rule, month.year, month.month
                    )
                    if first <= day <= end
                )
                month += relativedelta(months=1)

        return [day for day in days if day not in rule.custom_exclusions]

    @staticmethod
    def first_occurrence_on_or_after(
        rule: RecurrenceRule | None, day: date
    ) -> date | None:
        """Return the earliest scheduled date >= max(day, start_date)."""
        if rule is None:
            return None
        day = max(day, rule.start_date)

        if isinstance(rule, DailyRule):
            remainder = (day - rule.start_date).days % rule.interval
            offset = (rule.interval - remainder) % rule.interval
            candidate = day + timedelta(days=offset)
            if candidate not in rule.custom_exclusions:
                return candidate
            return RecurrenceEngine.next_occurrence(rule, candidate)

        if RecurrenceEngine.matches(rule, day):
            return day
        return RecurrenceEngine.next_occurrence(rule, day)

    # ────────────────────────────────────────────────────────────────
    # Presentation helpers
    # ────────────────────────────────────────────────────────────────

    @staticmethod
    def reminder_time(rule: RecurrenceRule | None) -> str | None:
        """Return the rule's time of day as "HH:MM", if any."""
        if rule is None or rule.time_of_day is None:
            return None
        return rule.time_of_day.strftime("%H:%M")

    @staticmethod
    def describe_rule(rule: RecurrenceRule | None) -> str:
        """Return a short human label such as "Every 2 days" or "Weekdays".

        Example:
            >>> rule = MonthlyRule(1, date(2026, 1, 1), (1, -1))
            >>> RecurrenceEngine.describe_rule(rule)
            'Monthly on the 1st and last day'
        """
        if rule is None:
            return "Invalid schedule"

        if isinstance(rule, DailyRule):
            label = "Daily" if rule.interval == 1 else f"Every {rule.interval} days"
        elif isinstance(rule, WeeklyRule):
            days = sorted(rule.days_of_week)
            if days == list(range(7)):
                label = "Every day"
            elif days == list(range(5)):
                label = "Weekdays"
            elif days == [5, 6]:
                label = "Weekends"
            else:
                names = _join_words([const.WEEKDAY_NAMES[day] for day in days])
                label = f"Weekly on {names}"
            if rule.interval > 1:
                label = f"{label} (every {rule.interval} weeks)"
        else:
            labels = [_month_day_label(day) for day in rule.days_of_month]
            # Positive days first, then counted-from-end days
            positives = [lbl for day, lbl in zip(rule.days_of_month, labels) if day > 0]
            negatives = [
                lbl
                for day, lbl in sorted(
                    zip(rule.days_of_month, labels), key=lambda pair: -pair[0]
                )
                if day < 0
            ]
            label = f"Monthly on the {_join_words(positives + negatives)}"
            if negatives:
                label = f"{label} day"
            if rule.interval > 1:
                label = f"{label} (every {rule.interval} months)"

        if rule.time_of_day is not None:
            label = f"{label} at {rule.time_of_day.strftime('%H:%M')}"
        return label


def _ordinal(value: int) -> str:
    """Return 1st, 2nd, 3rd, 11th, 22nd..."""
    if 10 <= value % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(value % 10, "th")
    return f"{value}{suffix}"


def _month_day_label(value: int) -> str:
    if value == -1:
        return "last"
    if value < 0:
        return f"{_ordinal(-value)} to last"
    return _ordinal(value)


def _join_words(words: list[str]) -> str:
    if len(words) <= 1:
        return "".join(words)
    return f"{', '.join(words[:-1])} and {words[-1]}"
