"""Tests for utils/dt_utils.py strict parsing and month arithmetic."""

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from reminder_scheduler.utils import dt_utils
from reminder_scheduler.utils.dt_utils import (
    add_months_clamped,
    as_local,
    clamp_to_month,
    dt_format_time,
    dt_parse_date,
    dt_parse_time,
    dt_split_due,
    is_iso_date_format,
    occurrence_moment,
)


class TestStrictDateParsing:
    """YYYY-MM-DD parsing never coerces."""

    def test_valid_date(self) -> None:
        assert dt_parse_date("2024-02-29") == date(2024, 2, 29)

    @pytest.mark.parametrize(
        "value",
        ["2023-02-29", "2024-02-30", "2024-13-01", "2024-2-01", "2024-02-01T10:00", "", None, 20240201],
    )
    def test_rejected(self, value: object) -> None:
        assert dt_parse_date(value) is None

    def test_shape_check_is_separate_from_value_check(self) -> None:
        assert is_iso_date_format("2025-02-30")
        assert dt_parse_date("2025-02-30") is None
        assert not is_iso_date_format("02/30/2025")


class TestStrictTimeParsing:
    """24-hour HH:mm parsing."""

    def test_valid_times(self) -> None:
        assert dt_parse_time("00:00") == time(0, 0)
        assert dt_parse_time("23:59") == time(23, 59)
        assert dt_parse_time("9:05") == time(9, 5)

    @pytest.mark.parametrize("value", ["24:00", "12:60", "12:5", "noon", "", None])
    def test_rejected(self, value: object) -> None:
        assert dt_parse_time(value) is None

    def test_format_zero_pads(self) -> None:
        assert dt_format_time(time(9, 5)) == "09:05"


class TestSplitDue:
    """Due strings with an optional time part."""

    def test_date_only(self) -> None:
        assert dt_split_due("2024-03-05") == ("2024-03-05", None)

    def test_with_t_separator(self) -> None:
        assert dt_split_due("2024-03-05T14:30") == ("2024-03-05", "14:30")

    def test_with_space_separator(self) -> None:
        assert dt_split_due("2024-03-05 14:30") == ("2024-03-05", "14:30")

    @pytest.mark.parametrize("value", ["03/05/2024", "2024-03-05T14", "tomorrow", 5])
    def test_wrong_shape(self, value: object) -> None:
        assert dt_split_due(value) is None


class TestMonthArithmetic:
    """Clamped month addition."""

    def test_clamp_to_month(self) -> None:
        assert clamp_to_month(2025, 2, 31) == date(2025, 2, 28)
        assert clamp_to_month(2024, 2, 31) == date(2024, 2, 29)
        assert clamp_to_month(2024, 4, 15) == date(2024, 4, 15)

    def test_jan_31_plus_one_month_leap_year(self) -> None:
        assert add_months_clamped(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_jan_31_plus_one_month_common_year(self) -> None:
        assert add_months_clamped(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_basis_day_restores_after_clamp(self) -> None:
        assert add_months_clamped(date(2024, 2, 29), 1, basis_day=31) == date(2024, 3, 31)

    def test_without_basis_day_clamp_sticks(self) -> None:
        assert add_months_clamped(date(2024, 2, 29), 1) == date(2024, 3, 29)

    def test_negative_months(self) -> None:
        assert add_months_clamped(date(2024, 3, 31), -1) == date(2024, 2, 29)

    def test_year_boundary(self) -> None:
        assert add_months_clamped(date(2024, 12, 31), 2) == date(2025, 2, 28)


class TestTimezones:
    """Local timezone handling."""

    def test_occurrence_moment_all_day_is_midnight(self) -> None:
        moment = occurrence_moment(date(2024, 3, 4))
        assert moment == datetime(2024, 3, 4, 0, 0, tzinfo=ZoneInfo("UTC"))

    def test_occurrence_moment_uses_default_timezone(self) -> None:
        dt_utils.set_default_timezone(ZoneInfo("Europe/Berlin"))
        moment = occurrence_moment(date(2024, 3, 4), time(9, 0))
        assert moment.utcoffset().total_seconds() == 3600

    def test_as_local_converts_aware(self) -> None:
        dt_utils.set_default_timezone(ZoneInfo("America/New_York"))
        local = as_local(datetime(2024, 3, 1, 2, 0, tzinfo=UTC))
        assert local.date() == date(2024, 2, 29)

    def test_as_local_naive_is_already_local(self) -> None:
        local = as_local(datetime(2024, 3, 1, 2, 0))
        assert local.tzinfo == ZoneInfo("UTC")
        assert local.hour == 2
