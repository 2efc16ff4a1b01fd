"""Tests for the business calendar."""

from datetime import date

import pytest

from loan_schedule.holidays import (
    canadian_holidays,
    easter_sunday,
    holiday_names,
    holidays_for_range,
    is_business_day,
    next_business_day,
    parse_holidays,
)


class TestNextBusinessDay:
    """Tests for next_business_day."""

    def test_no_calendar_means_no_shift(self) -> None:
        saturday = date(2024, 6, 1)
        assert next_business_day(saturday) == saturday
        assert next_business_day(saturday, set()) == saturday

    def test_holiday_moves_forward(self) -> None:
        assert next_business_day(date(2024, 7, 1), {date(2024, 7, 1)}) == date(2024, 7, 2)

    def test_consecutive_holidays(self) -> None:
        holidays = {date(2024, 12, 25), date(2024, 12, 26)}
        assert next_business_day(date(2024, 12, 25), holidays) == date(2024, 12, 27)

    def test_holiday_then_weekend(self) -> None:
        # Friday holiday, weekend skipped as well
        assert next_business_day(date(2024, 3, 29), {date(2024, 3, 29)}, skip_weekends=True) == date(2024, 4, 1)

    def test_is_business_day(self) -> None:
        assert is_business_day(date(2024, 6, 1))
        assert not is_business_day(date(2024, 6, 1), skip_weekends=True)
        assert not is_business_day(date(2024, 7, 1), {date(2024, 7, 1)})

    def test_broken_calendar(self) -> None:
        start = date(2024, 1, 1)
        every_day = {date.fromordinal(start.toordinal() + i) for i in range(400)}
        with pytest.raises(ValueError):
            next_business_day(start, every_day)


class TestCanadianHolidays:
    """Tests for the computed statutory calendar."""

    @pytest.mark.parametrize(
        ("year", "easter"),
        [(2024, date(2024, 3, 31)), (2025, date(2025, 4, 20)), (2026, date(2026, 4, 5))],
    )
    def test_easter(self, year: int, easter: date) -> None:
        assert easter_sunday(year) == easter

    def test_2024_calendar(self) -> None:
        names = holiday_names([2024])
        assert names[date(2024, 3, 29)] == "Good Friday"
        assert names[date(2024, 4, 1)] == "Easter Monday"
        assert names[date(2024, 5, 20)] == "Victoria Day"
        assert names[date(2024, 9, 2)] == "Labour Day"
        assert names[date(2024, 10, 14)] == "Thanksgiving"
        assert names[date(2024, 12, 26)] == "Boxing Day"
        assert len(names) == 10

    def test_range_spans_years(self) -> None:
        holidays = holidays_for_range(date(2024, 12, 1), date(2025, 2, 1))
        assert date(2024, 12, 25) in holidays
        assert date(2025, 1, 1) in holidays
        assert holidays == canadian_holidays([2024, 2025])

    def test_parse_holidays(self) -> None:
        assert parse_holidays(["2024-07-01", " ", "2024-12-25 "]) == [date(2024, 7, 1), date(2024, 12, 25)]
        with pytest.raises(ValueError):
            parse_holidays(["July 1st"])
