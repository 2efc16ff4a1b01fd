"""Post-generation edits to persisted payments.

Two operations are supported: an isolated manual edit of one payment's
amount or date, and a deferral that zeroes a pending payment and appends a
replacement after the current last payment. Both return new ``Payment``
objects and append a timestamped line to the payment notes; inputs are never
mutated.

A manual edit does not rebalance the remaining payments, so after an amount
edit the payments no longer necessarily sum to the financed amount.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import AbstractSet, List, Optional, Sequence, Tuple, Union
from uuid import uuid4

from .data_models import ContractFees, DeferralRequest, FeeOption, Payment, PaymentStatus
from .exceptions import InvalidEditError, PaymentNotFoundError, PreconditionError
from .fees import deferral_fee
from .frequency import PaymentFrequency
from .holidays import next_business_day
from .logging import get_logger
from .utils import ZERO, decimal_from_str, format_money, money_sum, parse_date, round_money

logger = get_logger(__name__)


@dataclass(frozen=True)
class PaymentTotals:
    amount: Decimal
    principal: Decimal
    interest: Decimal
    fee: Decimal


def note_timestamp(now: Optional[datetime] = None) -> str:
    """Format ``now`` the way audit notes show it, e.g. ``Mar 1, 2024, 09:05 AM``."""
    now = now or datetime.now()
    return f"{now:%b} {now.day}, {now.year}, {now:%I:%M %p}"


def append_note(existing: str, text: str, now: Optional[datetime] = None) -> str:
    line = f"[{note_timestamp(now)}] {text}"
    return f"{existing}\n{line}" if existing else line


def _parse_amount(value: Union[Decimal, str, int, float], field: str) -> Decimal:
    try:
        amount = decimal_from_str(value)
    except ValueError as exc:
        raise InvalidEditError(f"{field.replace('_', ' ').capitalize()} must be a number", field=field) from exc
    return round_money(amount)


def edit_payment(
    payment: Payment,
    new_amount: Union[Decimal, str, int, float, None] = None,
    new_date: Union[date, str, None] = None,
    *,
    now: Optional[datetime] = None,
) -> Payment:
    """Override the amount and/or due date of one payment.

    Raises
    ------
    InvalidEditError
        If ``new_amount`` is not a positive number or ``new_date`` is not a
        valid date.
    """
    changes: List[str] = []
    updates = {}

    if new_amount is not None:
        amount = _parse_amount(new_amount, "amount")
        if amount <= 0:
            raise InvalidEditError("Amount must be a positive number", field="amount")
        if amount != payment.amount:
            updates["amount"] = amount
            changes.append(
                f"Payment amount changed from {format_money(payment.amount)} to {format_money(amount)}"
            )

    if new_date is not None:
        try:
            due = parse_date(new_date)
        except ValueError as exc:
            raise InvalidEditError("Invalid payment date format", field="due_date") from exc
        if due != payment.due_date:
            updates["due_date"] = due
            changes.append(
                f"Payment date changed from {payment.due_date.isoformat()} to {due.isoformat()}"
            )

    if not changes:
        return payment

    logger.info(
        "Payment %s edited: %s",
        payment.id,
        "; ".join(changes),
        extra={"loan_id": payment.loan_id, "payment_id": payment.id},
    )
    return replace(payment, notes=append_note(payment.notes, "; ".join(changes), now), **updates)


def _resolve_fee(
    fee_option: FeeOption,
    fee_amount: Union[Decimal, str, int, float, None],
    contract_fees: Optional[ContractFees],
) -> Decimal:
    if fee_option is FeeOption.NONE:
        return ZERO
    if fee_amount is None:
        return deferral_fee(contract_fees)
    fee = _parse_amount(fee_amount, "fee_amount")
    if fee < 0:
        raise InvalidEditError("Fee amount cannot be negative", field="fee_amount")
    return fee


def build_deferral_request(
    payment_id: str,
    fee_option: Union[FeeOption, str] = FeeOption.NONE,
    fee_amount: Union[Decimal, str, int, float, None] = None,
    contract_fees: Optional[ContractFees] = None,
) -> DeferralRequest:
    """Build a deferral request, sourcing a missing fee from the contract."""
    option = FeeOption.parse(fee_option)
    if option is FeeOption.NONE:
        return DeferralRequest(payment_id=payment_id)
    return DeferralRequest(
        payment_id=payment_id,
        fee_option=option,
        fee_amount=_resolve_fee(option, fee_amount, contract_fees),
    )


def defer_payment(
    payment: Payment,
    payments: Sequence[Payment],
    frequency: Union[PaymentFrequency, str],
    fee_option: Union[FeeOption, str] = FeeOption.NONE,
    fee_amount: Union[Decimal, str, int, float, None] = None,
    *,
    contract_fees: Optional[ContractFees] = None,
    holidays: Optional[AbstractSet[date]] = None,
    skip_weekends: bool = False,
    now: Optional[datetime] = None,
    new_id: Optional[str] = None,
) -> Tuple[Payment, Payment]:
    """Move a pending payment to the end of the schedule.

    Parameters
    ----------
    payment: Payment
        The payment to defer. Must be pending.
    payments: sequence of Payment
        Every payment of the loan; used to find the current last due date
        and the highest payment number.
    frequency: PaymentFrequency
        Cadence of the loan; the new payment is one step after the last one.
    fee_option: FeeOption
        ``NONE`` moves the amount unchanged. ``ADD_TO_END_PAYMENT`` adds a
        deferral fee to the new payment, kept in its ``fee`` field.
    fee_amount: Decimal, optional
        Deferral fee. Defaults to the contract's deferral fee (or the
        configured default). Ignored when ``fee_option`` is ``NONE``.

    Returns
    -------
    (updated, new)
        The zeroed, deferred original and the appended payment.

    Raises
    ------
    PreconditionError
        If the payment is not pending.
    InvalidEditError
        If the fee option or amount is invalid.
    """
    if payment.status is not PaymentStatus.PENDING:
        raise PreconditionError(
            f"Only pending payments can be deferred (payment {payment.id} is {payment.status.value})"
        )
    frequency = PaymentFrequency.parse(frequency)
    option = FeeOption.parse(fee_option)
    fee = _resolve_fee(option, fee_amount, contract_fees)
    request = DeferralRequest(
        payment_id=payment.id,
        fee_option=option,
        fee_amount=fee if option is FeeOption.ADD_TO_END_PAYMENT else None,
    )

    last_due = max((p.due_date for p in payments), default=payment.due_date)
    last_number = max((p.payment_number for p in payments), default=payment.payment_number)
    new_due = next_business_day(frequency.next_due_date(last_due), holidays, skip_weekends)
    new_number = max(last_number, payment.payment_number) + 1

    fee_note = f", deferral fee: {format_money(fee)}" if fee > 0 else ""
    updated = replace(
        payment,
        amount=ZERO,
        principal=ZERO,
        interest=ZERO,
        fee=ZERO,
        status=PaymentStatus.DEFERRED,
        notes=append_note(
            payment.notes,
            f"Payment deferred to #{new_number} due {new_due.isoformat()}. "
            f"Original amount: {format_money(payment.amount)}{fee_note}.",
            now,
        ),
    )

    if fee > 0:
        new_note = f"Deferred payment from #{payment.payment_number} (includes deferral fee of {format_money(fee)} in amount)."
    else:
        new_note = f"Deferred payment from #{payment.payment_number}."
    new_payment = Payment(
        id=new_id or uuid4().hex,
        loan_id=payment.loan_id,
        payment_number=new_number,
        due_date=new_due,
        amount=round_money(payment.amount + fee),
        principal=payment.principal,
        interest=payment.interest,
        fee=round_money(payment.fee + fee),
        status=PaymentStatus.PENDING,
        notes=append_note("", new_note, now),
    )
    logger.info(
        "Payment %s deferred to #%d on %s (fee option %s, fee %s)",
        request.payment_id,
        new_number,
        new_due.isoformat(),
        option.value,
        fee,
        extra={"loan_id": payment.loan_id, "payment_id": payment.id, "fee_option": option.value},
    )
    return updated, new_payment


def apply_deferral(
    payments: Sequence[Payment],
    request: DeferralRequest,
    frequency: Union[PaymentFrequency, str],
    **kwargs,
) -> List[Payment]:
    """Defer the payment named by ``request`` within a full payment list.

    Returns the new list, ordered by due date, with the original replaced
    and the new payment appended. Extra keyword arguments are passed to
    ``defer_payment``.
    """
    target = next((p for p in payments if p.id == request.payment_id), None)
    if target is None:
        raise PaymentNotFoundError(f"Payment {request.payment_id} not found")
    updated, new = defer_payment(
        target, payments, frequency, request.fee_option, request.fee_amount, **kwargs
    )
    result = [updated if p.id == target.id else p for p in payments]
    result.append(new)
    return sorted(result, key=lambda p: (p.due_date, p.payment_number))


def payment_totals(payments: Sequence[Payment]) -> PaymentTotals:
    """Sum amounts by component; fees are kept out of principal and interest."""
    return PaymentTotals(
        amount=money_sum(p.amount for p in payments),
        principal=money_sum(p.principal for p in payments),
        interest=money_sum(p.interest for p in payments),
        fee=money_sum(p.fee for p in payments),
    )
