"""Tests for the pure date/time helpers in utils/dt_utils.py."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from custom_components.momentum.utils import dt_utils


@pytest.fixture
def pacific() -> Iterator[ZoneInfo]:
    """Use a zone west of UTC and restore the previous default afterwards."""
    previous = dt_utils.get_default_timezone()
    zone = ZoneInfo("America/Los_Angeles")
    dt_utils.set_default_timezone(zone)
    yield zone
    dt_utils.set_default_timezone(previous)


class TestToLocalDate:
    """dt_to_local_date never routes a civil date through UTC."""

    def test_date_only_string_is_not_shifted(self, pacific: ZoneInfo) -> None:
        """"2026-10-18" stays Oct 18 for users west of UTC."""
        assert dt_utils.dt_to_local_date("2026-10-18") == date(2026, 10, 18)

    def test_utc_timestamp_uses_local_calendar(self, pacific: ZoneInfo) -> None:
        """03:00 UTC on Oct 18 is still Oct 17 in Los Angeles."""
        assert dt_utils.dt_to_local_date("2026-10-18T03:00:00+00:00") == date(
            2026, 10, 17
        )
        aware = datetime(2026, 10, 18, 3, 0, tzinfo=timezone.utc)
        assert dt_utils.dt_to_local_date(aware) == date(2026, 10, 17)

    def test_naive_datetime_and_date(self) -> None:
        """Naive datetimes keep their date; dates pass through."""
        assert dt_utils.dt_to_local_date(datetime(2026, 10, 18, 23, 30)) == date(
            2026, 10, 18
        )
        assert dt_utils.dt_to_local_date(date(2026, 1, 2)) == date(2026, 1, 2)

    @pytest.mark.parametrize("value", [None, "", "not-a-date", "2026-13-45T00:00"])
    def test_unparseable_values(self, value: str | None) -> None:
        """Unparseable input yields None."""
        assert dt_utils.dt_to_local_date(value) is None


class TestParsing:
    """dt_parse_date / dt_parse_time."""

    @pytest.mark.parametrize("value", ["2026-04-07", "04/07/2026", "2026/04/07"])
    def test_date_formats(self, value: str) -> None:
        """ISO, US and slash formats are accepted."""
        assert dt_utils.dt_parse_date(value) == date(2026, 4, 7)

    def test_time(self) -> None:
        """HH:MM parses; garbage is None."""
        assert dt_utils.dt_parse_time("07:30") == time(7, 30)
        assert dt_utils.dt_parse_time("7 o'clock") is None
        assert dt_utils.dt_parse_time(None) is None


class TestCalendarArithmetic:
    """Month arithmetic clamps to the end of the month."""

    def test_add_months_clamps(self) -> None:
        """Jan 31 + 1 month is the end of February."""
        assert dt_utils.dt_add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert dt_utils.dt_add_months(date(2028, 3, 31), -1) == date(2028, 2, 29)

    def test_last_day_of_month(self) -> None:
        """February length follows leap years."""
        assert dt_utils.dt_last_day_of_month(2026, 2) == 28
        assert dt_utils.dt_last_day_of_month(2028, 2) == 29

    def test_today_local_uses_zone(self, pacific: ZoneInfo) -> None:
        """Today is computed in the configured zone."""
        assert dt_utils.dt_today_local() == datetime.now(pacific).date()
