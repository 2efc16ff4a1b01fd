"""Command‑line interface for the loan schedule engine.

This module uses the ``click`` library to implement a multi‑command
interface. Users can compute full payment schedules, view summaries, look up
the brokerage fee for an amount, and edit or defer payments stored in a JSON
payments file. Schedules can be printed to the terminal or exported to
JSON/CSV files.
"""

from __future__ import annotations

import csv
import json
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import uuid4

import click

from .config import get_config
from .data_models import ContractFees, LoanTerms, Payment, PaymentStatus, Schedule
from .editor import apply_deferral, build_deferral_request, edit_payment
from .engine import contract_payment_schedule, generate_schedule, summarize_schedule
from .exceptions import InvalidEditError, InvalidTermsError, LoanScheduleError
from .fees import FailedPayment, brokerage_fee_for, failed_payment_fees, modification_balance
from .formatter import print_failed_fees, print_payments, print_schedule, print_summary
from .frequency import PaymentFrequency, default_number_of_payments
from .holidays import holiday_names, parse_holidays
from .logging import get_logger, setup_logging
from .utils import ZERO, decimal_from_str, parse_date, round_money

logger = get_logger(__name__)

FREQUENCY_CHOICES = [f.value for f in PaymentFrequency]

# Rate used when the contract screen leaves it blank
DEFAULT_INTEREST_RATE = "29"


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """Parse a money amount such as ``"1,000"``, ``"$250.50"`` or ``"1.5k"``."""
    text = str(value).strip().lower()
    factor = 1
    if text.endswith("k"):
        factor = 1_000
        text = text[:-1]
    try:
        return decimal_from_str(text) * factor
    except ValueError as exc:
        raise InvalidTermsError(f"Invalid amount: {value}", field=field) from exc


def build_terms_from_options(
    principal: str,
    rate: str,
    frequency: str,
    number_of_payments: Optional[int],
    brokerage_fee: Optional[str],
    origination_fee: Optional[str],
) -> LoanTerms:
    """Build validated ``LoanTerms`` from raw option values.

    A missing payment count falls back to the frequency's three-month term
    and a missing brokerage fee is looked up in the tier table.
    """
    principal_value = round_money(parse_amount(principal, "principal_amount"))
    payment_frequency = PaymentFrequency.parse(frequency)
    terms = LoanTerms(
        principal_amount=principal_value,
        interest_rate=parse_amount(rate, "interest_rate"),
        payment_frequency=payment_frequency,
        number_of_payments=(
            default_number_of_payments(payment_frequency)
            if number_of_payments is None
            else number_of_payments
        ),
        brokerage_fee=(
            brokerage_fee_for(principal_value)
            if brokerage_fee in (None, "")
            else round_money(parse_amount(brokerage_fee, "brokerage_fee"))
        ),
        origination_fee=(
            round_money(parse_amount(origination_fee, "origination_fee")) if origination_fee else ZERO
        ),
    )
    terms.validate()
    return terms


def validate_next_payment_date(value: Any, today: Optional[date] = None) -> date:
    """Parse ``value`` and require it to be tomorrow or later.

    Raises
    ------
    InvalidTermsError
        If the date is missing, malformed or not in the future.
    """
    if value in (None, ""):
        raise InvalidTermsError("Next payment date is required", field="next_payment_date")
    try:
        parsed = parse_date(value)
    except ValueError as exc:
        raise InvalidTermsError("Invalid next payment date format", field="next_payment_date") from exc
    tomorrow = (today or date.today()) + timedelta(days=1)
    if parsed < tomorrow:
        raise InvalidTermsError(
            f"Next payment date must be on or after {tomorrow.isoformat()}",
            field="next_payment_date",
        )
    return parsed


def terms_from_payload(
    payload: Mapping[str, Any], today: Optional[date] = None
) -> Tuple[LoanTerms, date, Optional[str]]:
    """Parse a contract-screen loan terms payload.

    Returns ``(terms, next_payment_date, account_id)``. Keys follow the
    contract screen (``loanAmount``, ``paymentFrequency``,
    ``numberOfPayments``, ``nextPaymentDate``, ``interestRate``,
    ``brokerageFee``, ``originationFee``, ``accountId``).
    """
    if not isinstance(payload, Mapping):
        raise InvalidTermsError("Loan terms payload must be an object")
    amount = payload.get("loanAmount")
    if amount in (None, ""):
        raise InvalidTermsError("Loan amount is required", field="principal_amount")
    count = payload.get("numberOfPayments")
    if count in (None, ""):
        number_of_payments = None
    else:
        try:
            number_of_payments = int(count)
        except (TypeError, ValueError) as exc:
            raise InvalidTermsError("Number of payments must be a whole number", field="number_of_payments") from exc
    rate = payload.get("interestRate")
    fee = payload.get("brokerageFee")
    origination = payload.get("originationFee")
    terms = build_terms_from_options(
        str(amount),
        DEFAULT_INTEREST_RATE if rate in (None, "") else str(rate),
        payload.get("paymentFrequency"),
        number_of_payments,
        None if fee in (None, "") else str(fee),
        None if origination in (None, "") else str(origination),
    )
    next_payment = validate_next_payment_date(payload.get("nextPaymentDate"), today)
    account_id = payload.get("accountId")
    return terms, next_payment, None if account_id is None else str(account_id)


def _holiday_set(holiday: Tuple[str, ...], canadian: bool, start: date, terms: LoanTerms) -> Dict[date, str]:
    try:
        names = {d: "Holiday" for d in parse_holidays(holiday)}
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--holiday")
    if canadian:
        # a year of margin covers every supported term plus business-day shifts
        names.update(holiday_names(range(start.year, start.year + 2 + terms.number_of_payments // 52)))
    return names


def _build_schedule(
    principal: str,
    rate: str,
    frequency: str,
    number_of_payments: Optional[int],
    brokerage_fee: Optional[str],
    origination_fee: Optional[str],
    start_date: str,
    holiday: Tuple[str, ...],
    canadian_holidays: bool,
    skip_weekends: bool,
    payment: Optional[str],
) -> Tuple[Schedule, Dict[date, str]]:
    try:
        terms = build_terms_from_options(
            principal, rate, frequency, number_of_payments, brokerage_fee, origination_fee
        )
    except InvalidTermsError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)
    try:
        start = parse_date(start_date)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--start-date")
    names = _holiday_set(holiday, canadian_holidays, start, terms)
    override = None
    if payment:
        try:
            override = round_money(parse_amount(payment, "payment"))
        except InvalidTermsError as exc:
            raise click.BadParameter(str(exc), param_hint="--payment")
    schedule = generate_schedule(
        terms,
        start,
        set(names),
        payment=override,
        skip_weekends=skip_weekends or None,
    )
    return schedule, names


def export_to_json(path: Path, schedule: Schedule) -> None:
    """Export schedule and summary to a JSON file."""
    data = {
        "summary": summarize_schedule(schedule).to_dict(),
        "payment_schedule": contract_payment_schedule(schedule),
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_to_csv(path: Path, schedule: Schedule) -> None:
    """Export schedule to a CSV file."""
    header = ["Payment_Number", "Due_Date", "Amount", "Principal", "Interest", "Remaining_Balance"]
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for item in schedule.items:
            writer.writerow(
                [
                    item.payment_number,
                    item.due_date.isoformat(),
                    str(item.amount),
                    str(item.principal),
                    str(item.interest),
                    str(item.remaining_balance),
                ]
            )


def load_payments_file(path: Path) -> Dict[str, Any]:
    """Read a payments file written by ``schedule --payments-file``."""
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Cannot read payments file {path}: {exc}")
    try:
        return {
            "loan_id": data.get("loan_id", ""),
            "payment_frequency": PaymentFrequency.parse(data.get("payment_frequency")),
            "contract_fees": ContractFees.from_dict(data.get("contract_fees")),
            "payments": [Payment.from_dict(p) for p in data.get("payments", [])],
        }
    except (KeyError, ValueError, ArithmeticError) as exc:
        raise click.ClickException(f"Malformed payments file {path}: {exc}")


def save_payments_file(
    path: Path,
    loan_id: str,
    frequency: PaymentFrequency,
    contract_fees: ContractFees,
    payments: List[Payment],
) -> None:
    data = {
        "loan_id": loan_id,
        "payment_frequency": frequency.value,
        "contract_fees": contract_fees.to_dict(),
        "payments": [p.to_dict() for p in payments],
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _find_payment(payments: List[Payment], number: int) -> Payment:
    for payment in payments:
        if payment.payment_number == number:
            return payment
    raise click.BadParameter(f"No payment #{number} in file", param_hint="--payment")


def terms_options(func):
    """Attach the loan terms options shared by ``schedule`` and ``summary``."""
    options = [
        click.option("--principal", "-p", "principal", required=True, help="Loan amount before fees"),
        click.option("--rate", "-r", "rate", default=DEFAULT_INTEREST_RATE, show_default=True, help="Annual interest rate (percent)"),
        click.option("--frequency", "-f", "frequency", type=click.Choice(FREQUENCY_CHOICES), default="monthly", show_default=True, help="Payment frequency"),
        click.option("--payments", "-n", "number_of_payments", type=int, help="Number of payments (defaults to a three-month term)"),
        click.option("--brokerage-fee", "brokerage_fee", help="Brokerage fee (defaults to the tier table)"),
        click.option("--origination-fee", "origination_fee", help="Fee charged per returned payment"),
        click.option("--start-date", "-s", "start_date", required=True, help="Schedule anchor date (YYYY-MM-DD); the first payment is one period later"),
        click.option("--holiday", "holiday", multiple=True, help="Non-business day (YYYY-MM-DD)"),
        click.option("--canadian-holidays", "canadian_holidays", is_flag=True, help="Shift payments past Canadian statutory holidays"),
        click.option("--skip-weekends", "skip_weekends", is_flag=True, help="Shift payments falling on a weekend"),
        click.option("--payment", "payment", help="Override the periodic payment amount"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("--log-level", "log_level", default=None, help="Log level (defaults to LOG_LEVEL or INFO)")
@click.option("--log-format", "log_format", type=click.Choice(["standard", "json"]), default="standard")
def cli(log_level: Optional[str], log_format: str) -> None:
    """Loan payment schedules: generate, summarize, edit and defer."""
    setup_logging(log_level or get_config().log_level, log_format)


@cli.command()
@terms_options
@click.option("--output", "output", type=str, help="Output file path (.json or .csv)")
@click.option("--payments-file", "payments_file", type=str, help="Write the schedule as editable payments (.json)")
@click.option("--loan-id", "loan_id", help="Loan id recorded in the payments file")
def schedule(
    principal: str,
    rate: str,
    frequency: str,
    number_of_payments: Optional[int],
    brokerage_fee: Optional[str],
    origination_fee: Optional[str],
    start_date: str,
    holiday: Tuple[str, ...],
    canadian_holidays: bool,
    skip_weekends: bool,
    payment: Optional[str],
    output: Optional[str],
    payments_file: Optional[str],
    loan_id: Optional[str],
) -> None:
    """Compute and print the full payment schedule."""
    sched, names = _build_schedule(
        principal, rate, frequency, number_of_payments, brokerage_fee, origination_fee,
        start_date, holiday, canadian_holidays, skip_weekends, payment,
    )
    if sched.is_empty:
        raise click.ClickException("Schedule could not be generated from these inputs")
    if payments_file:
        loan = loan_id or uuid4().hex
        rows = [Payment.from_item(item, id=uuid4().hex, loan_id=loan) for item in sched.items]
        fees = ContractFees(
            brokerage_fee=sched.terms.brokerage_fee,
            origination_fee=sched.terms.origination_fee,
        )
        save_payments_file(Path(payments_file), loan, sched.terms.payment_frequency, fees, rows)
        click.echo(f"Payments written to {payments_file}")
    if output:
        path = Path(output)
        if path.suffix.lower() == ".json":
            export_to_json(path, sched)
            click.echo(f"Schedule exported to {path}")
        elif path.suffix.lower() == ".csv":
            export_to_csv(path, sched)
            click.echo(f"Schedule exported to {path}")
        else:
            raise click.BadParameter("Unsupported output format; use .json or .csv", param_hint="--output")
    elif not payments_file:
        print_summary(summarize_schedule(sched))
        print_schedule(sched.items, names if names else None)


@cli.command()
@terms_options
@click.option("--output", "output", type=str, help="Output file path (.json)")
def summary(
    principal: str,
    rate: str,
    frequency: str,
    number_of_payments: Optional[int],
    brokerage_fee: Optional[str],
    origination_fee: Optional[str],
    start_date: str,
    holiday: Tuple[str, ...],
    canadian_holidays: bool,
    skip_weekends: bool,
    payment: Optional[str],
    output: Optional[str],
) -> None:
    """Compute and print only the summary figures for a loan."""
    sched, _ = _build_schedule(
        principal, rate, frequency, number_of_payments, brokerage_fee, origination_fee,
        start_date, holiday, canadian_holidays, skip_weekends, payment,
    )
    summary_data = summarize_schedule(sched)
    if output:
        path = Path(output)
        if path.suffix.lower() != ".json":
            raise click.BadParameter("Summary export must use .json extension", param_hint="--output")
        with path.open("w", encoding="utf-8") as f:
            json.dump({"summary": summary_data.to_dict()}, f, indent=2)
        click.echo(f"Summary exported to {path}")
    else:
        print_summary(summary_data)


@cli.command("brokerage-fee")
@click.argument("amount")
def brokerage_fee_command(amount: str) -> None:
    """Print the brokerage fee charged on a loan AMOUNT."""
    try:
        value = parse_amount(amount)
    except InvalidTermsError as exc:
        raise click.BadParameter(str(exc), param_hint="AMOUNT")
    click.echo(f"{brokerage_fee_for(value):.2f}")


@cli.command()
@click.argument("payments_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--payment", "payment_number", required=True, type=int, help="Payment number to edit")
@click.option("--amount", "amount", help="New payment amount")
@click.option("--date", "due_date", help="New due date (YYYY-MM-DD)")
def edit(payments_file: str, payment_number: int, amount: Optional[str], due_date: Optional[str]) -> None:
    """Change the amount and/or due date of one payment in PAYMENTS_FILE."""
    if amount is None and due_date is None:
        raise click.UsageError("Nothing to change; pass --amount and/or --date")
    path = Path(payments_file)
    data = load_payments_file(path)
    payments = data["payments"]
    target = _find_payment(payments, payment_number)
    try:
        updated = edit_payment(target, amount, due_date)
    except InvalidEditError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)
    payments = [updated if p.id == target.id else p for p in payments]
    payments.sort(key=lambda p: (p.due_date, p.payment_number))
    save_payments_file(path, data["loan_id"], data["payment_frequency"], data["contract_fees"], payments)
    print_payments(payments)


@cli.command()
@click.argument("payments_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--payment", "payment_number", required=True, type=int, help="Payment number to defer")
@click.option(
    "--fee-option",
    "fee_option",
    type=click.Choice(["none", "add-to-end-payment"]),
    default="none",
    show_default=True,
    help="Whether to add a deferral fee to the new end payment",
)
@click.option("--fee-amount", "fee_amount", help="Deferral fee (defaults to the contract's deferral fee)")
@click.option("--canadian-holidays", "canadian_holidays", is_flag=True, help="Shift the new payment past Canadian statutory holidays")
@click.option("--skip-weekends", "skip_weekends", is_flag=True, help="Shift the new payment off a weekend")
def defer(
    payments_file: str,
    payment_number: int,
    fee_option: str,
    fee_amount: Optional[str],
    canadian_holidays: bool,
    skip_weekends: bool,
) -> None:
    """Move one pending payment in PAYMENTS_FILE to the end of the schedule."""
    path = Path(payments_file)
    data = load_payments_file(path)
    payments = data["payments"]
    target = _find_payment(payments, payment_number)
    holidays = None
    if canadian_holidays and payments:
        last = max(p.due_date for p in payments)
        holidays = set(holiday_names(range(last.year, last.year + 2)))
    try:
        request = build_deferral_request(target.id, fee_option, fee_amount, data["contract_fees"])
        payments = apply_deferral(
            payments,
            request,
            data["payment_frequency"],
            contract_fees=data["contract_fees"],
            holidays=holidays,
            skip_weekends=skip_weekends,
        )
    except InvalidEditError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)
    except LoanScheduleError as exc:
        raise click.ClickException(str(exc))
    save_payments_file(path, data["loan_id"], data["payment_frequency"], data["contract_fees"], payments)
    print_payments(payments)


@cli.command("failed-fees")
@click.argument("payments_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--origination-fee", "origination_fee", help="Fee per returned payment (defaults to the contract's origination fee)")
@click.option("--brokerage-fee", "brokerage_fee", default="0", show_default=True, help="Brokerage fee charged on the modification")
def failed_fees(payments_file: str, origination_fee: Optional[str], brokerage_fee: str) -> None:
    """Total the charges from failed or rejected payments in PAYMENTS_FILE."""
    data = load_payments_file(Path(payments_file))
    payments = data["payments"]
    try:
        fee = data["contract_fees"].origination_fee if origination_fee is None else parse_amount(origination_fee, "origination_fee")
        brokerage = parse_amount(brokerage_fee, "brokerage_fee")
    except InvalidTermsError as exc:
        raise click.BadParameter(str(exc), param_hint=exc.field)
    failed = [
        FailedPayment(p.amount, p.interest, p.due_date)
        for p in payments
        if p.status in (PaymentStatus.FAILED, PaymentStatus.REJECTED)
    ]
    charges = failed_payment_fees(failed, fee)
    current_balance = round_money(sum((p.principal for p in payments if p.status is PaymentStatus.PENDING), ZERO))
    print_failed_fees(charges, current_balance, modification_balance(current_balance, brokerage, charges))


if __name__ == "__main__":
    cli()
