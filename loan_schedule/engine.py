"""Core calculation engine for the loan schedule.

This module implements the amortization arithmetic: the fixed periodic
payment for a set of loan terms and the declining-balance schedule built from
it. Due dates follow the terms' payment frequency and are shifted past
non-business days for display only; interest always accrues on the nominal
period. Every amount leaving this module is rounded to cents, and the final
payment absorbs whatever rounding drift the earlier periods accumulated so
that cumulative principal equals the financed amount exactly.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AbstractSet, Any, Dict, List, Optional, Union

from .config import get_config
from .data_models import AutoMode, LoanSummary, LoanTerms, PaymentScheduleItem, Schedule
from .exceptions import ReconciliationWarning
from .fees import financed_base
from .holidays import next_business_day
from .logging import get_logger
from .utils import CENT, ZERO, parse_date, reconcile, round_money

logger = get_logger(__name__)


def _calculate_annuity_payment(principal: Decimal, periodic_rate: Decimal, term: int) -> Decimal:
    """Return the unrounded fixed payment for an amortizing loan.

    The formula is:

        payment = r * P / (1 - (1 + r)^(-n))

    where ``P`` is the financed amount, ``r`` the periodic rate and ``n``
    the number of payments. When the rate is zero, the payment simplifies to
    ``P / n``.
    """
    if periodic_rate == 0:
        return principal / Decimal(term)
    return periodic_rate * principal / (1 - (1 + periodic_rate) ** (-term))


def payment_amount(terms: LoanTerms) -> Decimal:
    """Return the rounded periodic payment for ``terms``.

    Raises
    ------
    InvalidTermsError
        If the principal, payment count, rate or fees are out of range. The
        error's ``field`` names the offending input.
    """
    terms.validate()
    return round_money(_calculate_annuity_payment(financed_base(terms), terms.periodic_rate, terms.number_of_payments))


def _reconciliation_tolerance(tolerance: Optional[Decimal], periods: int) -> Decimal:
    # each rounded payment can be off by half a cent; allow a cent per period
    base = get_config().reconciliation_tolerance if tolerance is None else tolerance
    return base + CENT * periods


def generate_schedule(
    terms: LoanTerms,
    start_date: Union[date, str, None],
    holidays: Optional[AbstractSet[date]] = None,
    *,
    payment: Optional[Decimal] = None,
    skip_weekends: Optional[bool] = None,
    tolerance: Optional[Decimal] = None,
    first_payment_on_start: bool = False,
) -> Schedule:
    """Build the dated payment schedule for ``terms``.

    Parameters
    ----------
    terms: LoanTerms
        The loan terms. ``number_of_payments`` due dates are produced, the
        first one frequency step after ``start_date``.
    start_date: date or str
        Anchor date. ISO strings are parsed.
    holidays: set of date, optional
        Non-business days supplied by the caller. Missing data means no
        holiday adjustment.
    payment: Decimal, optional
        Override for the nominal periodic payment (for example a rounded
        figure agreed with the borrower). The final payment still absorbs
        the difference, and a ``ReconciliationWarning`` is attached when that
        difference is larger than rounding can explain.
    skip_weekends: bool, optional
        Also treat Saturdays and Sundays as non-business days. Defaults to
        the configured value.
    tolerance: Decimal, optional
        Base tolerance for the final-payment adjustment.
    first_payment_on_start: bool
        Treat ``start_date`` as the first due date instead of the anchor the
        first due date is stepped from. Used for contract payloads, which
        carry the borrower's next payment date.

    Returns
    -------
    Schedule
        The schedule in ``AutoMode``. It is empty when the start date cannot
        be parsed or the payment count is not positive; callers should treat
        that as "not ready to generate".
    """
    if terms.number_of_payments is None or terms.number_of_payments <= 0:
        logger.debug("Schedule not generated: number_of_payments=%s", terms.number_of_payments)
        return Schedule(terms=terms)
    if start_date is None:
        return Schedule(terms=terms)
    try:
        start = parse_date(start_date)
    except ValueError:
        logger.debug("Schedule not generated: unparsable start date %r", start_date)
        return Schedule(terms=terms)

    nominal_payment = payment_amount(terms) if payment is None else round_money(payment)
    if skip_weekends is None:
        skip_weekends = get_config().skip_weekends
    holiday_set = frozenset(holidays) if holidays else frozenset()

    frequency = terms.payment_frequency
    rate = terms.periodic_rate
    periods = terms.number_of_payments
    balance = financed_base(terms)
    step_offset = 1 if first_payment_on_start else 0

    # Zero-rate loans split the financed amount evenly, remainder last
    even_split: Optional[List[Decimal]] = None
    if rate == 0 and payment is None:
        even_split = reconcile(balance, periods)

    items: List[PaymentScheduleItem] = []
    for period in range(1, periods + 1):
        interest = round_money(balance * rate)
        if period == periods:
            principal = balance
            amount = principal + interest
        elif even_split is not None:
            principal = even_split[period - 1]
            amount = principal + interest
        else:
            principal = nominal_payment - interest
            amount = nominal_payment
        balance -= principal

        nominal_due = frequency.due_date(start, period - step_offset)
        due = next_business_day(nominal_due, holiday_set, skip_weekends)

        items.append(
            PaymentScheduleItem(
                payment_number=period,
                due_date=due,
                amount=amount,
                principal=principal,
                interest=interest,
                remaining_balance=balance,
            )
        )

    warnings = []
    drift = abs(items[-1].amount - nominal_payment)
    limit = _reconciliation_tolerance(tolerance, periods)
    if periods > 1 and drift > limit:
        message = (
            f"Final payment {items[-1].amount} differs from the periodic payment "
            f"{nominal_payment} by {drift} (tolerance {limit}); check the rate and term"
        )
        logger.warning(message)
        warnings.append(ReconciliationWarning(message))

    logger.debug(
        "Generated %d %s payments of %s from %s",
        periods,
        frequency.value,
        nominal_payment,
        start.isoformat(),
    )
    return Schedule(
        items=tuple(items),
        terms=terms,
        start_date=start,
        payment_amount=nominal_payment,
        mode=AutoMode(terms=terms, start_date=start),
        warnings=tuple(warnings),
    )


def summarize_schedule(schedule: Schedule) -> LoanSummary:
    """Compute aggregate figures for a schedule.

    ``total_fees`` only counts the fees folded into the financed amount; the
    origination fee is contingent and is not part of the repayment total.
    """
    terms = schedule.terms
    if terms is None:
        raise ValueError("Schedule has no loan terms to summarize")
    financed = financed_base(terms)
    total_interest = schedule.total_interest if schedule.items else ZERO
    return LoanSummary(
        principal_amount=round_money(terms.principal_amount),
        total_fees=round_money(terms.brokerage_fee),
        financed_amount=financed,
        payment_amount=schedule.payment_amount,
        total_interest=total_interest,
        total_repayment=round_money(financed + total_interest),
        number_of_payments=len(schedule.items),
        payment_frequency=terms.payment_frequency,
        first_due_date=schedule.items[0].due_date if schedule.items else None,
        last_due_date=schedule.items[-1].due_date if schedule.items else None,
        warnings=tuple(str(w) for w in schedule.warnings),
    )


def contract_payment_schedule(schedule: Schedule) -> List[Dict[str, Any]]:
    """Serialize a schedule into the ``payment_schedule`` contract payload."""
    return [
        {
            "due_date": item.due_date.isoformat(),
            "amount": float(item.amount),
            "principal": float(item.principal),
            "interest": float(item.interest),
        }
        for item in schedule.items
    ]
