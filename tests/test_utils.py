"""Tests for rounding and parsing helpers."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from loan_schedule.utils import (
    add_months,
    decimal_from_str,
    format_money,
    money_sum,
    parse_date,
    reconcile,
    round_money,
)


class TestRoundMoney:
    """Tests for round_money."""

    def test_half_up(self) -> None:
        assert round_money(Decimal("2.675")) == Decimal("2.68")
        assert round_money(Decimal("2.665")) == Decimal("2.67")
        assert round_money(Decimal("-2.675")) == Decimal("-2.68")

    def test_float_goes_through_str(self) -> None:
        assert round_money(0.1 + 0.2) == Decimal("0.30")

    def test_money_sum(self) -> None:
        assert money_sum([Decimal("0.10"), Decimal("0.20")]) == Decimal("0.30")
        assert money_sum([]) == Decimal("0.00")


class TestReconcile:
    """Tests for reconcile."""

    def test_parts_sum_exactly(self) -> None:
        parts = reconcile(Decimal("100.00"), 3)
        assert parts == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
        assert sum(parts) == Decimal("100.00")

    def test_last_part_can_be_lower(self) -> None:
        parts = reconcile(Decimal("200.00"), 3)
        assert parts == [Decimal("66.67"), Decimal("66.67"), Decimal("66.66")]

    def test_single_part(self) -> None:
        assert reconcile(Decimal("10.005"), 1) == [Decimal("10.01")]

    @pytest.mark.parametrize("n", [0, -1])
    def test_non_positive_count(self, n: int) -> None:
        with pytest.raises(ValueError):
            reconcile(Decimal("10"), n)


class TestParsing:
    """Tests for date and number parsing."""

    def test_parse_date_variants(self) -> None:
        assert parse_date("2024-03-01") == date(2024, 3, 1)
        assert parse_date("2024-03-01T23:30:00Z") == date(2024, 3, 1)
        assert parse_date("2024-03-01 08:00") == date(2024, 3, 1)
        assert parse_date(datetime(2024, 3, 1, 12, 0)) == date(2024, 3, 1)
        assert parse_date(date(2024, 3, 1)) == date(2024, 3, 1)

    @pytest.mark.parametrize("value", ["", "not a date", "2024-02-30", "2024-03-011", None])
    def test_parse_date_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            parse_date(value)

    def test_decimal_from_str(self) -> None:
        assert decimal_from_str("$1,234.50") == Decimal("1234.50")
        assert decimal_from_str(" 12 ") == Decimal("12")
        assert decimal_from_str(3) == Decimal("3")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", ""])
    def test_decimal_from_str_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            decimal_from_str(value)

    def test_format_money(self) -> None:
        assert format_money(Decimal("1234.5")) == "$1,234.50"
        assert format_money(Decimal("-1")) == "-$1.00"


class TestAddMonths:
    """Tests for add_months."""

    def test_clamps_to_month_end(self) -> None:
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 3, 31), 1) == date(2024, 4, 30)

    def test_crosses_year(self) -> None:
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)
        assert add_months(date(2024, 1, 15), -1) == date(2023, 12, 15)
