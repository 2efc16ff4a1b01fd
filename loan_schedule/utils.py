"""Utility functions for the loan schedule engine.

This module holds the currency rounding policy used by every other module
(``round_money`` and ``reconcile``) together with helpers for parsing user
input into ``Decimal`` and ``date`` values and for calendar month arithmetic.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from typing import Iterable, List, Union

getcontext().prec = 28  # increase decimal precision to avoid rounding errors

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, str, float]


def to_decimal(value: Number) -> Decimal:
    """Coerce ``value`` to ``Decimal`` without going through binary floats."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(amount: Number) -> Decimal:
    """Round an amount to cents using half-up rounding.

    >>> round_money(Decimal("2.675"))
    Decimal('2.68')
    """
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def reconcile(total: Number, n: int) -> List[Decimal]:
    """Split ``total`` into ``n`` cent-rounded parts that sum exactly.

    The first ``n - 1`` parts are each ``round_money(total / n)``; the last
    part takes whatever is left so that ``sum(parts) == round_money(total)``.

    Raises
    ------
    ValueError
        If ``n`` is not positive.
    """
    if n <= 0:
        raise ValueError("Number of parts must be positive")
    total_dec = to_decimal(total)
    share = round_money(total_dec / Decimal(n))
    parts = [share] * (n - 1)
    parts.append(round_money(total_dec) - sum(parts, ZERO))
    return parts


def money_sum(values: Iterable[Decimal]) -> Decimal:
    return round_money(sum(values, ZERO))


def parse_date(value: Union[str, date, datetime]) -> date:
    """Parse an ISO ``YYYY-MM-DD`` string (or pass a date through).

    Timestamps such as ``2024-03-01T00:00:00Z`` are accepted; only the date
    part is kept so no timezone shift can move the day.

    Raises
    ------
    ValueError
        If the value is not a valid calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # drop a time part, never anything else
    for separator in ("T", " "):
        text = text.split(separator, 1)[0]
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Invalid date string: {value}") from exc


def add_months(dt: date, months: int) -> date:
    """Return a new date a number of months after ``dt``.

    The day of the month is clamped to the last valid day if needed (e.g.,
    adding one month to Jan 31 yields Feb 28 or 29).
    """
    year = dt.year + (dt.month - 1 + months) // 12
    month = (dt.month - 1 + months) % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def decimal_from_str(value: Union[str, int, float, Decimal]) -> Decimal:
    """Convert a numeric string into a ``Decimal``.

    The function strips any commas, a leading ``$`` and surrounding spaces.
    It raises ``ValueError`` if conversion fails.
    """
    if isinstance(value, (Decimal, int, float)) and not isinstance(value, bool):
        result = to_decimal(value)
    else:
        try:
            cleaned = str(value).strip().replace(",", "").lstrip("$")
            result = Decimal(cleaned)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Invalid numeric value: {value}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid numeric value: {value}")
    return result


def format_money(amount: Decimal) -> str:
    """Render an amount as ``$1,234.56`` (negative as ``-$1.00``)."""
    rounded = round_money(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,.2f}"
