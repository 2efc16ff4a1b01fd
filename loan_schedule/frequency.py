"""Payment frequencies and their date-stepping rules.

Each ``PaymentFrequency`` member carries both the number of periods per year
used to turn the annual rate into a periodic rate and the rule used to step
from one due date to the next. Keeping the two together means the payment
amount and the schedule dates can never be derived from different cadences.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from enum import Enum
from typing import Any, Dict, Tuple

from .exceptions import InvalidTermsError
from .utils import add_months


class PaymentFrequency(Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi-weekly"
    TWICE_MONTHLY = "twice-monthly"
    MONTHLY = "monthly"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @property
    def days_between(self) -> int:
        """Fixed day offset between payments, 0 for calendar-month stepping."""
        return _DAYS_BETWEEN[self]

    def next_due_date(self, current: date) -> date:
        """Return the due date one period after ``current``.

        Twice-monthly is a fixed 15-day offset rather than a calendar half
        month. Monthly keeps the day of month, clamped to the last day of a
        shorter month.
        """
        if self is PaymentFrequency.MONTHLY:
            return add_months(current, 1)
        return current + timedelta(days=self.days_between)

    def due_date(self, start: date, periods: int) -> date:
        """Return the due date ``periods`` steps after ``start``.

        Monthly steps are anchored on ``start`` so a day-31 anchor comes back
        to the 31st after passing through a shorter month.
        """
        if self is PaymentFrequency.MONTHLY:
            return add_months(start, periods)
        return start + timedelta(days=self.days_between * periods)

    @classmethod
    def parse(cls, value: Any) -> "PaymentFrequency":
        """Normalize free-form input to a ``PaymentFrequency``.

        Accepts the canonical values, enum members and the aliases found in
        application data ("biweekly", "fortnightly", "semi-monthly", ...).

        Raises
        ------
        InvalidTermsError
            If the value matches no known frequency.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            raise InvalidTermsError("Payment frequency is required", field="payment_frequency")
        key = _canonicalize(str(value))
        for member in cls:
            if member.value == key:
                return member
        if key in _ALIASES:
            return _ALIASES[key]
        # "monthly: 15th and last day" style values carry the cadence first
        for segment in re.split(r"[:|;,/]+", key):
            segment = segment.strip("-")
            if segment in _ALIASES:
                return _ALIASES[segment]
        raise InvalidTermsError(f"Invalid payment frequency: {value}", field="payment_frequency")


_PERIODS_PER_YEAR: Dict[PaymentFrequency, int] = {
    PaymentFrequency.WEEKLY: 52,
    PaymentFrequency.BI_WEEKLY: 26,
    PaymentFrequency.TWICE_MONTHLY: 24,
    PaymentFrequency.MONTHLY: 12,
}

_DAYS_BETWEEN: Dict[PaymentFrequency, int] = {
    PaymentFrequency.WEEKLY: 7,
    PaymentFrequency.BI_WEEKLY: 14,
    PaymentFrequency.TWICE_MONTHLY: 15,
    PaymentFrequency.MONTHLY: 0,
}

_ALIAS_TABLE: Dict[PaymentFrequency, Tuple[str, ...]] = {
    PaymentFrequency.WEEKLY: (
        "weekly", "week", "once-a-week", "one-week", "1w",
        "hebdomadaire", "every-week", "per-week",
    ),
    PaymentFrequency.BI_WEEKLY: (
        "bi-weekly", "biweekly", "every-two-weeks", "two-weeks",
        "fortnightly", "14-days", "every-14-days", "2w",
    ),
    PaymentFrequency.TWICE_MONTHLY: (
        "twice-monthly", "twice-per-month", "two-times-per-month",
        "2-times-per-month", "2x-per-month", "2x-month", "semi-monthly",
        "semimonthly", "semi-month", "twice-month",
    ),
    PaymentFrequency.MONTHLY: (
        "monthly", "month", "once-a-month", "1m", "mensuel", "per-month",
    ),
}

_ALIASES: Dict[str, PaymentFrequency] = {
    alias: member for member, aliases in _ALIAS_TABLE.items() for alias in aliases
}

# Three-month maximum term at each cadence
_DEFAULT_NUMBER_OF_PAYMENTS: Dict[PaymentFrequency, int] = {
    PaymentFrequency.WEEKLY: 12,
    PaymentFrequency.BI_WEEKLY: 6,
    PaymentFrequency.TWICE_MONTHLY: 6,
    PaymentFrequency.MONTHLY: 3,
}


def _canonicalize(value: str) -> str:
    text = value.strip().lower()
    text = re.sub(r"[_\s]+", "-", text)
    return re.sub(r"-+", "-", text)


def default_number_of_payments(frequency: PaymentFrequency) -> int:
    """Number of payments covering the standard three-month term."""
    return _DEFAULT_NUMBER_OF_PAYMENTS[PaymentFrequency.parse(frequency)]
