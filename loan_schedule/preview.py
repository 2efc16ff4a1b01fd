"""Schedule preview used while staff tune loan terms before submission.

The preview is a small state machine over the schedule's own ``mode``:

* ``AutoMode`` -- every change of terms or start date regenerates the whole
  schedule.
* ``ManualMode`` -- someone edited an item, so the schedule belongs to them.
  Input changes are remembered but do not regenerate until ``reset()``.

``lock()`` hands back the schedule to persist at submission time.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import AbstractSet, FrozenSet, Optional, Union

from .data_models import LoanTerms, ManualMode, Schedule
from .engine import generate_schedule
from .exceptions import InvalidEditError
from .logging import get_logger
from .utils import decimal_from_str, parse_date, round_money

logger = get_logger(__name__)


@dataclass
class SchedulePreview:
    terms: LoanTerms
    start_date: Union[date, str, None]
    holidays: FrozenSet[date] = field(default_factory=frozenset)
    skip_weekends: Optional[bool] = None
    first_payment_on_start: bool = False
    schedule: Schedule = field(default_factory=Schedule)

    @classmethod
    def auto(
        cls,
        terms: LoanTerms,
        start_date: Union[date, str, None],
        holidays: Optional[AbstractSet[date]] = None,
        skip_weekends: Optional[bool] = None,
        first_payment_on_start: bool = False,
    ) -> "SchedulePreview":
        preview = cls(
            terms=terms,
            start_date=start_date,
            holidays=frozenset(holidays or ()),
            skip_weekends=skip_weekends,
            first_payment_on_start=first_payment_on_start,
        )
        preview._regenerate()
        return preview

    @property
    def mode(self):
        return self.schedule.mode

    @property
    def is_manual(self) -> bool:
        return isinstance(self.schedule.mode, ManualMode)

    def _regenerate(self) -> None:
        # every regeneration replaces the whole preview, never merges
        self.schedule = generate_schedule(
            self.terms,
            self.start_date,
            self.holidays,
            skip_weekends=self.skip_weekends,
            first_payment_on_start=self.first_payment_on_start,
        )

    def update_terms(
        self,
        terms: Optional[LoanTerms] = None,
        start_date: Union[date, str, None] = None,
    ) -> Schedule:
        """Record new inputs; regenerate only while in automatic mode."""
        if terms is not None:
            self.terms = terms
        if start_date is not None:
            self.start_date = start_date
        if self.is_manual:
            logger.debug("Schedule is manually edited; regeneration suppressed")
        else:
            self._regenerate()
        return self.schedule

    def edit_item(
        self,
        index: int,
        amount: Union[Decimal, str, None] = None,
        due_date: Union[date, str, None] = None,
    ) -> Schedule:
        """Change one previewed item and switch to manual mode."""
        items = list(self.schedule.items)
        if not 0 <= index < len(items):
            raise InvalidEditError(f"No scheduled payment at position {index + 1}", field="index")
        item = items[index]
        updates = {}
        if amount is not None:
            try:
                new_amount = round_money(decimal_from_str(amount))
            except ValueError as exc:
                raise InvalidEditError("Amount must be a number", field="amount") from exc
            if new_amount <= 0:
                raise InvalidEditError("Amount must be a positive number", field="amount")
            updates["amount"] = new_amount
        if due_date is not None:
            try:
                updates["due_date"] = parse_date(due_date)
            except ValueError as exc:
                raise InvalidEditError("Invalid payment date format", field="due_date") from exc
        items[index] = replace(item, **updates)
        items.sort(key=lambda i: i.due_date)
        self.schedule = replace(self.schedule, items=tuple(items), mode=ManualMode())
        return self.schedule

    def reset(self) -> Schedule:
        """Drop manual edits and regenerate from the latest inputs."""
        self._regenerate()
        return self.schedule

    def lock(self) -> Schedule:
        """Return the schedule to persist at submission."""
        return self.schedule
