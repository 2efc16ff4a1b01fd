"""Data models for the loan schedule engine.

This module defines dataclasses representing the entities the engine works
with: the loan terms a schedule is generated from, the generated schedule and
its items, the persisted payments that editor operations mutate, and the fee
terms of the originating contract. Using dataclasses makes it easy to
construct, compare and serialize these structures.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from .exceptions import InvalidEditError, InvalidTermsError, ReconciliationWarning
from .frequency import PaymentFrequency
from .utils import ZERO, money_sum, parse_date, round_money


class PaymentStatus(Enum):
    """Payment state, set by the payment-processing side of the system."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PAID = "paid"
    FAILED = "failed"
    REJECTED = "rejected"
    DEFERRED = "deferred"
    MANUAL = "manual"
    CANCELLED = "cancelled"
    REBATE = "rebate"


class FeeOption(Enum):
    """How a deferral fee is charged."""

    NONE = "none"
    ADD_TO_END_PAYMENT = "add-to-end-payment"

    @classmethod
    def parse(cls, value: Any) -> "FeeOption":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("_", "-")
        aliases = {
            "none": cls.NONE,
            "no-fee": cls.NONE,
            "add-to-end-payment": cls.ADD_TO_END_PAYMENT,
            "addtoendpayment": cls.ADD_TO_END_PAYMENT,
        }
        if key not in aliases:
            raise InvalidEditError(f"Invalid fee option: {value}", field="fee_option")
        return aliases[key]


@dataclass(frozen=True)
class LoanTerms:
    """Terms a schedule is generated from.

    Attributes
    ----------
    principal_amount: Decimal
        Amount lent to the borrower, before fees.
    interest_rate: Decimal
        Annual nominal interest rate in percent (``29`` means 29 %).
    payment_frequency: PaymentFrequency
        Cadence of the payments.
    number_of_payments: int
        Total number of scheduled payments.
    brokerage_fee: Decimal
        Fee folded into the financed amount; interest accrues on it.
    origination_fee: Decimal
        Fee charged only when a payment is returned. It never enters the
        financed amount.

    Terms are immutable. Changing an input means building new terms with
    ``dataclasses.replace``.
    """

    principal_amount: Decimal
    interest_rate: Decimal
    payment_frequency: PaymentFrequency
    number_of_payments: int
    brokerage_fee: Decimal = ZERO
    origination_fee: Decimal = ZERO

    def validate(self) -> None:
        """Raise ``InvalidTermsError`` naming the first offending field."""
        if self.principal_amount is None or self.principal_amount <= 0:
            raise InvalidTermsError("Principal amount must be greater than 0", field="principal_amount")
        if self.interest_rate is None or self.interest_rate < 0:
            raise InvalidTermsError("Interest rate cannot be negative", field="interest_rate")
        if not isinstance(self.payment_frequency, PaymentFrequency):
            raise InvalidTermsError("Invalid payment frequency", field="payment_frequency")
        if self.number_of_payments is None or self.number_of_payments <= 0:
            raise InvalidTermsError("Number of payments must be greater than 0", field="number_of_payments")
        if self.brokerage_fee < 0:
            raise InvalidTermsError("Brokerage fee cannot be negative", field="brokerage_fee")
        if self.origination_fee < 0:
            raise InvalidTermsError("Origination fee cannot be negative", field="origination_fee")

    @property
    def periodic_rate(self) -> Decimal:
        """Annual nominal rate divided by the frequency's periods per year."""
        return self.interest_rate / Decimal(100) / Decimal(self.payment_frequency.periods_per_year)


@dataclass(frozen=True)
class PaymentScheduleItem:
    """One dated payment of a generated schedule."""

    payment_number: int
    due_date: date
    amount: Decimal
    principal: Decimal
    interest: Decimal
    remaining_balance: Decimal = ZERO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payment_number": self.payment_number,
            "due_date": self.due_date.isoformat(),
            "amount": str(self.amount),
            "principal": str(self.principal),
            "interest": str(self.interest),
            "remaining_balance": str(self.remaining_balance),
        }


@dataclass(frozen=True)
class AutoMode:
    """The schedule is derived from ``terms`` and regenerated on every change."""

    terms: LoanTerms
    start_date: date


@dataclass(frozen=True)
class ManualMode:
    """A user owns the schedule; regeneration is suppressed until reset."""

    reason: str = "edited"


ScheduleMode = Union[AutoMode, ManualMode]


@dataclass(frozen=True)
class Schedule:
    """Ordered payment schedule plus the state it was produced in.

    An empty ``items`` tuple means the inputs were not ready for generation.
    """

    items: Tuple[PaymentScheduleItem, ...] = ()
    terms: Optional[LoanTerms] = None
    start_date: Optional[date] = None
    payment_amount: Decimal = ZERO
    mode: Optional[ScheduleMode] = None
    warnings: Tuple[ReconciliationWarning, ...] = field(default=(), compare=False)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def is_manual(self) -> bool:
        return isinstance(self.mode, ManualMode)

    @property
    def total_amount(self) -> Decimal:
        return money_sum(item.amount for item in self.items)

    @property
    def total_principal(self) -> Decimal:
        return money_sum(item.principal for item in self.items)

    @property
    def total_interest(self) -> Decimal:
        return money_sum(item.interest for item in self.items)


@dataclass(frozen=True)
class ContractFees:
    """Fee terms recorded on the originating contract."""

    brokerage_fee: Decimal = ZERO
    origination_fee: Decimal = ZERO
    deferral_fee: Optional[Decimal] = None
    other_fees: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ContractFees":
        data = data or {}

        def _opt(key: str) -> Optional[Decimal]:
            value = data.get(key)
            return None if value is None else round_money(Decimal(str(value)))

        return cls(
            brokerage_fee=_opt("brokerage_fee") or ZERO,
            origination_fee=_opt("origination_fee") or ZERO,
            deferral_fee=_opt("deferral_fee"),
            other_fees=_opt("other_fees"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "brokerage_fee": str(self.brokerage_fee),
            "origination_fee": str(self.origination_fee),
            "deferral_fee": None if self.deferral_fee is None else str(self.deferral_fee),
            "other_fees": None if self.other_fees is None else str(self.other_fees),
        }


@dataclass
class Payment:
    """A persisted schedule item owned by a loan.

    ``fee`` holds money that is neither principal nor interest (a deferral
    fee added to the end payment). ``notes`` is an append-only audit trail of
    timestamped lines.
    """

    id: str
    loan_id: str
    payment_number: int
    due_date: date
    amount: Decimal
    principal: Decimal
    interest: Decimal
    fee: Decimal = ZERO
    status: PaymentStatus = PaymentStatus.PENDING
    notes: str = ""

    @classmethod
    def from_item(cls, item: PaymentScheduleItem, *, id: str, loan_id: str) -> "Payment":
        return cls(
            id=id,
            loan_id=loan_id,
            payment_number=item.payment_number,
            due_date=item.due_date,
            amount=item.amount,
            principal=item.principal,
            interest=item.interest,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "loan_id": self.loan_id,
            "payment_number": self.payment_number,
            "due_date": self.due_date.isoformat(),
            "amount": str(self.amount),
            "principal": str(self.principal),
            "interest": str(self.interest),
            "fee": str(self.fee),
            "status": self.status.value,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payment":
        return cls(
            id=str(data["id"]),
            loan_id=str(data.get("loan_id", "")),
            payment_number=int(data["payment_number"]),
            due_date=parse_date(data["due_date"]),
            amount=Decimal(str(data["amount"])),
            principal=Decimal(str(data.get("principal", "0"))),
            interest=Decimal(str(data.get("interest", "0"))),
            fee=Decimal(str(data.get("fee", "0"))),
            status=PaymentStatus(data.get("status", "pending")),
            notes=data.get("notes") or "",
        )


@dataclass(frozen=True)
class DeferralRequest:
    """Request to move one payment to the end of the schedule."""

    payment_id: str
    fee_option: FeeOption = FeeOption.NONE
    fee_amount: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.fee_option is FeeOption.ADD_TO_END_PAYMENT:
            if self.fee_amount is None:
                raise InvalidEditError("Fee amount is required when adding a fee", field="fee_amount")
            if self.fee_amount < 0:
                raise InvalidEditError("Fee amount cannot be negative", field="fee_amount")


@dataclass(frozen=True)
class LoanSummary:
    """Aggregate figures for a generated schedule."""

    principal_amount: Decimal
    total_fees: Decimal
    financed_amount: Decimal
    payment_amount: Decimal
    total_interest: Decimal
    total_repayment: Decimal
    number_of_payments: int
    payment_frequency: PaymentFrequency
    first_due_date: Optional[date] = None
    last_due_date: Optional[date] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "principal_amount": str(self.principal_amount),
            "total_fees": str(self.total_fees),
            "financed_amount": str(self.financed_amount),
            "payment_amount": str(self.payment_amount),
            "total_interest": str(self.total_interest),
            "total_repayment": str(self.total_repayment),
            "number_of_payments": self.number_of_payments,
            "payment_frequency": self.payment_frequency.value,
            "first_due_date": self.first_due_date.isoformat() if self.first_due_date else None,
            "last_due_date": self.last_due_date.isoformat() if self.last_due_date else None,
            "warnings": list(self.warnings),
        }
