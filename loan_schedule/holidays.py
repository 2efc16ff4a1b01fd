"""Business-day adjustment and the statutory holiday calendar.

The engine only ever receives holidays as a plain set of dates. The Canadian
calendar below is provided for callers (the CLI and the web adapter) that
need to build that set; it is computed, never fetched.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import AbstractSet, Dict, Iterable, List, Optional, Set

WEEKEND_DAYS = frozenset({5, 6})  # Saturday, Sunday


def is_business_day(
    day: date,
    holidays: Optional[AbstractSet[date]] = None,
    skip_weekends: bool = False,
) -> bool:
    if holidays and day in holidays:
        return False
    if skip_weekends and day.weekday() in WEEKEND_DAYS:
        return False
    return True


def next_business_day(
    day: date,
    holidays: Optional[AbstractSet[date]] = None,
    skip_weekends: bool = False,
) -> date:
    """Return ``day`` or the first following date that is a business day.

    With no holidays and ``skip_weekends`` off the date is returned as is.
    """
    if not holidays and not skip_weekends:
        return day
    current = day
    # a year of consecutive closed days can only mean a broken calendar
    for _ in range(366):
        if is_business_day(current, holidays, skip_weekends):
            return current
        current += timedelta(days=1)
    raise ValueError(f"No business day found within a year of {day.isoformat()}")


def easter_sunday(year: int) -> date:
    """Easter Sunday for ``year`` (anonymous Gregorian computus)."""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return date(year, month, day)


def _nth_weekday_on_or_after(start: date, weekday: int) -> date:
    return start + timedelta(days=(weekday - start.weekday()) % 7)


def _canadian_holidays_for_year(year: int) -> Dict[date, str]:
    easter = easter_sunday(year)
    # Victoria Day: last Monday preceding May 25
    may_24 = date(year, 5, 24)
    victoria_day = may_24 - timedelta(days=may_24.weekday())
    return {
        date(year, 1, 1): "New Year's Day",
        easter - timedelta(days=2): "Good Friday",
        easter + timedelta(days=1): "Easter Monday",
        victoria_day: "Victoria Day",
        date(year, 7, 1): "Canada Day",
        _nth_weekday_on_or_after(date(year, 9, 1), 0): "Labour Day",
        _nth_weekday_on_or_after(date(year, 10, 8), 0): "Thanksgiving",
        date(year, 11, 11): "Remembrance Day",
        date(year, 12, 25): "Christmas",
        date(year, 12, 26): "Boxing Day",
    }


def holiday_names(years: Iterable[int]) -> Dict[date, str]:
    """Return ``{date: name}`` for the Canadian holidays of each year."""
    names: Dict[date, str] = {}
    for year in sorted(set(years)):
        names.update(_canadian_holidays_for_year(year))
    return names


def canadian_holidays(years: Iterable[int]) -> Set[date]:
    """Return the set of Canadian statutory holidays for the given years."""
    return set(holiday_names(years))


def holidays_for_range(start: date, end: date) -> Set[date]:
    """Canadian holidays for every calendar year touched by ``start``..``end``."""
    return canadian_holidays(range(start.year, end.year + 1))


def parse_holidays(values: Iterable[str]) -> List[date]:
    """Parse ISO date strings, skipping blanks."""
    parsed: List[date] = []
    for value in values:
        text = value.strip()
        if text:
            parsed.append(date.fromisoformat(text))
    return parsed
