"""Output helpers for the loan schedule CLI.

This module renders schedules, summaries and persisted payments as simple
tab-separated tables using built-in printing and string formatting.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from .data_models import LoanSummary, Payment, PaymentScheduleItem
from .fees import FailedPaymentFees


def print_summary(summary: LoanSummary) -> None:
    """Print a summary of loan figures in a human-readable format."""
    print("Summary")
    print("-" * 72)
    print(f"Principal          : {summary.principal_amount:.2f}")
    print(f"Financed fees      : {summary.total_fees:.2f}")
    print(f"Financed amount    : {summary.financed_amount:.2f}")
    print(f"Payment amount     : {summary.payment_amount:.2f} ({summary.payment_frequency.value})")
    print(f"Total interest     : {summary.total_interest:.2f}")
    print(f"Total repayment    : {summary.total_repayment:.2f}")
    print(f"Payments           : {summary.number_of_payments}")
    if summary.first_due_date and summary.last_due_date:
        print(f"First due date     : {summary.first_due_date.isoformat()}")
        print(f"Last due date      : {summary.last_due_date.isoformat()}")
    for warning in summary.warnings:
        print(f"Warning            : {warning}")
    print("-" * 72)


def print_schedule(schedule: Iterable[PaymentScheduleItem], holiday_names: Optional[dict] = None) -> None:
    """Print the payment schedule as a simple table.

    Parameters
    ----------
    schedule: Iterable[PaymentScheduleItem]
        The schedule items to print.
    holiday_names: dict, optional
        ``{date: name}``; when given, a column flags payments whose due date
        is still a holiday (for example after a manual date edit).
    """
    headers = ["#", "Due date", "Payment", "Principal", "Interest", "Balance"]
    if holiday_names is not None:
        headers.append("Holiday")
    print("\t".join(headers))
    for item in schedule:
        row = [
            str(item.payment_number),
            item.due_date.isoformat(),
            f"{item.amount:.2f}",
            f"{item.principal:.2f}",
            f"{item.interest:.2f}",
            f"{item.remaining_balance:.2f}",
        ]
        if holiday_names is not None:
            row.append(holiday_names.get(item.due_date, ""))
        print("\t".join(row))


def print_payments(payments: Iterable[Payment]) -> None:
    """Print persisted payments including status, fee and the last note."""
    headers = ["#", "Due date", "Amount", "Principal", "Interest", "Fee", "Status", "Last note"]
    print("\t".join(headers))
    for payment in payments:
        last_note = payment.notes.splitlines()[-1] if payment.notes else "-"
        print(
            "\t".join(
                [
                    str(payment.payment_number),
                    payment.due_date.isoformat(),
                    f"{payment.amount:.2f}",
                    f"{payment.principal:.2f}",
                    f"{payment.interest:.2f}",
                    f"{payment.fee:.2f}",
                    payment.status.value,
                    last_note,
                ]
            )
        )


def print_failed_fees(fees: FailedPaymentFees, current_balance: Decimal, balance: Decimal) -> None:
    """Print failed-payment charges and the balance a loan modification would re-amortize."""
    print("Failed payments")
    print("-" * 72)
    print(f"Failed payments    : {fees.failed_payment_count}")
    print(f"Failed fees        : {fees.total_fees:.2f}")
    print(f"Unpaid interest    : {fees.total_interest:.2f}")
    print(f"Total charges      : {fees.total_amount:.2f}")
    print(f"Pending principal  : {current_balance:.2f}")
    print(f"Modification total : {balance:.2f}")
    print("-" * 72)
