# File: utils/dt_utils.py
"""Date and time utilities for Momentum.

Pure Python date/time functions with ZERO Home Assistant dependencies.
All functions here can be unit tested without Home Assistant mocking.

UTILS PURITY: NO `homeassistant.*` imports allowed.
   Uses standard library: datetime, zoneinfo, calendar, and dateutil.

Calendar dates are always derived in the user's local civil calendar.
A stored UTC timestamp is converted with `as_local()` before `.date()` is
taken; a date-only string is never routed through a UTC day boundary.

Functions:
    - set_default_timezone / get_default_timezone: Configure the local zone
    - dt_today_local: Today's date in local timezone
    - dt_now_utc / dt_now_iso: Current datetime helpers
    - as_local: Timezone conversion
    - dt_parse_date: Parse date strings
    - dt_parse_time: Parse "HH:MM" strings
    - dt_to_local_date: Normalize str/date/datetime to a local calendar date
    - dt_add_months: Month arithmetic with end-of-month clamping
    - dt_last_day_of_month: Number of days in a month
"""

from __future__ import annotations

from calendar import monthrange
from datetime import UTC, date, datetime, time
import logging
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

# Module-level logger (no HA dependency)
_LOGGER = logging.getLogger(__name__)

# Default timezone - replaced during integration setup
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone for all dt_utils functions.

    Call this during integration setup to configure the user's timezone.

    Args:
        tz: ZoneInfo object representing the default timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_today_local(tz: ZoneInfo | None = None) -> date:
    """Return today's date in local timezone as a `datetime.date`.

    This is the default clock used by the coordinator; managers never call
    it directly so tests can pin "today".

    Example:
        datetime.date(2026, 10, 18)
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.now(tz_info).date()


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def dt_now_iso() -> str:
    """Return the current UTC datetime as an ISO string (record timestamps)."""
    return dt_now_utc().isoformat()


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_local(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert a datetime to local timezone.

    Naive datetimes are assumed to be in UTC (storage timestamps are UTC).
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=UTC)
    return dt_obj.astimezone(tz_info)


# ==============================================================================
# Date/Time Parsing
# ==============================================================================


def dt_parse_date(date_str: str | None) -> date | None:
    """Safely parse a date string into a `datetime.date`.

    Accepts formats:
    - "2026-04-07" (ISO format)
    - "04/07/2026" (US format)
    - "2026/04/07"

    Returns:
        datetime.date or None if parsing fails.
    """
    if not date_str or not isinstance(date_str, str):
        return None

    try:
        return date.fromisoformat(date_str)
    except ValueError:
        pass

    for fmt in ("%m/%d/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue

    return None


def dt_parse_time(time_str: str | None) -> time | None:
    """Parse an "HH:MM" (or "HH:MM:SS") string into a `datetime.time`.

    Returns:
        datetime.time or None if the string is empty or malformed.
    """
    if not time_str or not isinstance(time_str, str):
        return None
    try:
        return time.fromisoformat(time_str.strip())
    except ValueError:
        _LOGGER.warning("Invalid time of day '%s'", time_str)
        return None


def dt_to_local_date(
    value: str | date | datetime | None, tz: ZoneInfo | None = None
) -> date | None:
    """Normalize a date-like value to a calendar date in the local zone.

    - `date`: returned unchanged
    - naive `datetime`: already local civil time, the date part is used
    - aware `datetime`: converted with `as_local()` first
    - ISO date string ("2026-10-18"): parsed as a calendar date, no tz shift
    - ISO datetime string: parsed, then handled like a datetime

    Returns:
        The local calendar date, or None when the value cannot be parsed.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return as_local(value, tz).date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        # Date-only strings are civil dates already
        if len(value) <= 10:
            return dt_parse_date(value)
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            _LOGGER.warning("Could not parse date value '%s'", value)
            return None
        return dt_to_local_date(parsed, tz)

    _LOGGER.warning("Unsupported date value type: %s", type(value))
    return None


# ==============================================================================
# Calendar Arithmetic
# ==============================================================================


def dt_last_day_of_month(year: int, month: int) -> int:
    """Return the number of days in the given month (28-31)."""
    return monthrange(year, month)[1]


def dt_add_months(day: date, months: int) -> date:
    """Add (or subtract) whole months, clamping to the target month's last day.

    Uses relativedelta so Jan 31 + 1 month = Feb 28 (or 29), never March.
    """
    return day + relativedelta(months=months)
