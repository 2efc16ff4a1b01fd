"""Fee allocation rules.

Brokerage fees are charged on every loan and folded into the financed
amount. The origination fee is contingent: it is realized once per returned
payment and never enters the amortization base, so it cannot distort the
payment shown up front.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .config import Tier, get_config
from .data_models import ContractFees, LoanTerms
from .utils import ZERO, Number, money_sum, round_money, to_decimal


@dataclass(frozen=True)
class FailedPayment:
    amount: Decimal
    interest: Decimal
    payment_date: Optional[date] = None


@dataclass(frozen=True)
class FailedPaymentFees:
    total_fees: Decimal
    total_interest: Decimal
    total_amount: Decimal
    failed_payment_count: int


def brokerage_fee_for(loan_amount: Number, tiers: Optional[Sequence[Tier]] = None) -> Decimal:
    """Return the brokerage fee for ``loan_amount`` from the tier table.

    The fee is the one of the first tier whose ceiling covers the amount;
    amounts above every ceiling pay the last tier's fee. Non-positive
    amounts pay nothing.
    """
    amount = to_decimal(loan_amount)
    if not amount.is_finite() or amount <= 0:
        return ZERO
    table = tiers if tiers is not None else get_config().brokerage_fee_tiers
    if not table:
        return ZERO
    for ceiling, fee in table:
        if amount <= ceiling:
            return round_money(fee)
    return round_money(table[-1][1])


def financed_base(terms: LoanTerms) -> Decimal:
    """Amount interest is computed on: principal plus the brokerage fee."""
    return round_money(terms.principal_amount + terms.brokerage_fee)


def deferral_fee(contract_fees: Optional[ContractFees] = None, default: Optional[Decimal] = None) -> Decimal:
    """Deferral fee sourced from the contract's fee terms.

    Falls back to the contract's ``other_fees`` and then to the configured
    default when the contract carries neither.
    """
    if contract_fees is not None:
        if contract_fees.deferral_fee is not None:
            return round_money(contract_fees.deferral_fee)
        if contract_fees.other_fees is not None:
            return round_money(contract_fees.other_fees)
    if default is None:
        default = get_config().deferral_fee_default
    return round_money(default)


def failed_payment_fees(failed_payments: Iterable[FailedPayment], origination_fee: Number) -> FailedPaymentFees:
    """Fees and unpaid interest accumulated by returned payments."""
    failed = list(failed_payments)
    total_fees = round_money(to_decimal(origination_fee) * len(failed))
    total_interest = money_sum(p.interest or ZERO for p in failed)
    return FailedPaymentFees(
        total_fees=total_fees,
        total_interest=total_interest,
        total_amount=round_money(total_fees + total_interest),
        failed_payment_count=len(failed),
    )


def modification_balance(current_balance: Number, brokerage_fee: Number, failed: FailedPaymentFees) -> Decimal:
    """Balance to re-amortize when a loan is modified after failed payments."""
    return round_money(to_decimal(current_balance) + to_decimal(brokerage_fee) + failed.total_amount)
