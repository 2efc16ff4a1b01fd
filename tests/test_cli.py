"""Tests for the command-line interface."""

import json
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

import pytest
from click.testing import CliRunner

from loan_schedule.exceptions import InvalidTermsError
from loan_schedule.frequency import PaymentFrequency
from loan_schedule.main import build_terms_from_options, cli, terms_from_payload, validate_next_payment_date

EXAMPLE_ARGS = ["-p", "1000", "--brokerage-fee", "150", "-n", "3", "-s", "2024-03-01"]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def payments_file(runner: CliRunner, tmp_path: Path) -> Path:
    path = tmp_path / "payments.json"
    result = runner.invoke(
        cli,
        ["--log-level", "WARNING", "schedule", *EXAMPLE_ARGS, "--payments-file", str(path), "--loan-id", "loan-1"],
    )
    assert result.exit_code == 0, result.output
    return path


class TestTermsParsing:
    """Tests for option and payload parsing."""

    def test_defaults_from_tables(self) -> None:
        terms = build_terms_from_options("1,000", "29", "bi-weekly", None, None, None)

        assert terms.principal_amount == Decimal("1000.00")
        assert terms.number_of_payments == 6
        assert terms.brokerage_fee == Decimal("680.00")
        assert terms.origination_fee == Decimal("0.00")
        assert terms.payment_frequency is PaymentFrequency.BI_WEEKLY

    def test_shorthand_amount(self) -> None:
        terms = build_terms_from_options("1.5k", "29", "monthly", 3, "0", "45")
        assert terms.principal_amount == Decimal("1500.00")
        assert terms.brokerage_fee == Decimal("0.00")
        assert terms.origination_fee == Decimal("45.00")

    def test_invalid_amount(self) -> None:
        with pytest.raises(InvalidTermsError) as exc_info:
            build_terms_from_options("lots", "29", "monthly", 3, None, None)
        assert exc_info.value.field == "principal_amount"

    def test_next_payment_date(self) -> None:
        today = date(2024, 3, 1)
        assert validate_next_payment_date("2024-03-02", today) == date(2024, 3, 2)
        for value in ("2024-03-01", "2024-02-01", "", None, "soon"):
            with pytest.raises(InvalidTermsError) as exc_info:
                validate_next_payment_date(value, today)
            assert exc_info.value.field == "next_payment_date"

    def test_payload(self) -> None:
        payload = {
            "loanAmount": 1000,
            "paymentFrequency": "Monthly",
            "numberOfPayments": "3",
            "nextPaymentDate": "2024-04-01",
            "interestRate": 29,
            "brokerageFee": 150,
            "accountId": 42,
        }
        terms, next_payment, account_id = terms_from_payload(payload, today=date(2024, 3, 1))

        assert terms.principal_amount == Decimal("1000.00")
        assert terms.brokerage_fee == Decimal("150.00")
        assert terms.number_of_payments == 3
        assert next_payment == date(2024, 4, 1)
        assert account_id == "42"

    def test_payload_derives_brokerage_fee(self) -> None:
        payload = {"loanAmount": "750", "paymentFrequency": "weekly", "nextPaymentDate": "2024-04-01"}
        terms, _, account_id = terms_from_payload(payload, today=date(2024, 3, 1))

        assert terms.brokerage_fee == Decimal("510.00")
        assert terms.interest_rate == Decimal("29")
        assert terms.number_of_payments == 12
        assert account_id is None

    @pytest.mark.parametrize(
        ("changes", "field"),
        [
            ({"loanAmount": None}, "principal_amount"),
            ({"numberOfPayments": "three"}, "number_of_payments"),
            ({"paymentFrequency": "yearly"}, "payment_frequency"),
            ({"nextPaymentDate": "2024-03-01"}, "next_payment_date"),
        ],
    )
    def test_payload_errors(self, changes: dict, field: str) -> None:
        payload = {"loanAmount": 1000, "paymentFrequency": "monthly", "nextPaymentDate": "2024-04-01", **changes}
        with pytest.raises(InvalidTermsError) as exc_info:
            terms_from_payload(payload, today=date(2024, 3, 1))
        assert exc_info.value.field == field


class TestScheduleCommands:
    """Tests for schedule, summary and brokerage-fee."""

    def test_schedule_prints_table(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["schedule", *EXAMPLE_ARGS])

        assert result.exit_code == 0, result.output
        assert "Financed amount    : 1150.00" in result.output
        assert "1\t2024-04-01\t402.01\t374.22\t27.79" in result.output
        assert "3\t2024-06-01\t402.01\t392.52\t9.49\t0.00" in result.output

    def test_schedule_with_holiday(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["schedule", *EXAMPLE_ARGS, "--holiday", "2024-05-01"])

        assert result.exit_code == 0, result.output
        assert "2\t2024-05-02\t" in result.output

    def test_schedule_skip_weekends(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["schedule", *EXAMPLE_ARGS, "--skip-weekends"])
        assert "3\t2024-06-03\t" in result.output

    def test_schedule_canadian_holidays(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["schedule", "-p", "1000", "-n", "3", "-s", "2024-06-01", "--canadian-holidays"])

        assert result.exit_code == 0, result.output
        assert "1\t2024-07-02\t" in result.output

    def test_export_json(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "schedule.json"
        result = runner.invoke(cli, ["schedule", *EXAMPLE_ARGS, "--output", str(path)])

        assert result.exit_code == 0, result.output
        data = json.loads(path.read_text())
        assert data["summary"]["financed_amount"] == "1150.00"
        assert data["payment_schedule"][0] == {
            "due_date": "2024-04-01",
            "amount": 402.01,
            "principal": 374.22,
            "interest": 27.79,
        }

    def test_export_csv(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "schedule.csv"
        result = runner.invoke(cli, ["schedule", *EXAMPLE_ARGS, "--output", str(path)])

        assert result.exit_code == 0, result.output
        lines = path.read_text().splitlines()
        assert lines[0].startswith("Payment_Number,Due_Date")
        assert lines[1] == "1,2024-04-01,402.01,374.22,27.79,775.78"

    def test_export_unknown_format(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["schedule", *EXAMPLE_ARGS, "--output", str(tmp_path / "x.txt")])
        assert result.exit_code != 0

    def test_invalid_principal(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["schedule", "-p", "0", "-s", "2024-03-01"])
        assert result.exit_code == 2
        assert "Principal amount must be greater than 0" in result.output

    def test_invalid_start_date(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["schedule", "-p", "1000", "-s", "March"])
        assert result.exit_code == 2

    def test_summary(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["summary", *EXAMPLE_ARGS])
        assert result.exit_code == 0, result.output
        assert "Total interest     : 56.03" in result.output

        path = tmp_path / "summary.json"
        result = runner.invoke(cli, ["summary", *EXAMPLE_ARGS, "--output", str(path)])
        assert json.loads(path.read_text())["summary"]["total_repayment"] == "1206.03"

    @pytest.mark.parametrize(("amount", "fee"), [("1000", "680.00"), ("$2,500", "2040.00"), ("0", "0.00")])
    def test_brokerage_fee(self, runner: CliRunner, amount: str, fee: str) -> None:
        result = runner.invoke(cli, ["brokerage-fee", amount])
        assert result.exit_code == 0, result.output
        assert result.output.strip().endswith(fee)


class TestPaymentFileCommands:
    """Tests for edit and defer on a payments file."""

    def test_payments_file_written(self, payments_file: Path) -> None:
        data = json.loads(payments_file.read_text())

        assert data["loan_id"] == "loan-1"
        assert data["payment_frequency"] == "monthly"
        assert data["contract_fees"]["brokerage_fee"] == "150.00"
        assert [p["amount"] for p in data["payments"]] == ["402.01", "402.01", "402.01"]

    def test_edit(self, runner: CliRunner, payments_file: Path) -> None:
        result = runner.invoke(
            cli, ["--log-level", "WARNING", "edit", str(payments_file), "--payment", "2", "--amount", "410"]
        )

        assert result.exit_code == 0, result.output
        payments = json.loads(payments_file.read_text())["payments"]
        assert payments[1]["amount"] == "410.00"
        assert "Payment amount changed from $402.01 to $410.00" in payments[1]["notes"]

    def test_edit_requires_change(self, runner: CliRunner, payments_file: Path) -> None:
        result = runner.invoke(cli, ["edit", str(payments_file), "--payment", "2"])
        assert result.exit_code == 2

    def test_edit_unknown_payment(self, runner: CliRunner, payments_file: Path) -> None:
        result = runner.invoke(cli, ["edit", str(payments_file), "--payment", "9", "--amount", "1"])
        assert result.exit_code == 2

    def test_edit_bad_amount(self, runner: CliRunner, payments_file: Path) -> None:
        result = runner.invoke(cli, ["edit", str(payments_file), "--payment", "1", "--amount", "-4"])
        assert result.exit_code == 2
        assert "positive" in result.output

    def test_defer_with_fee(self, runner: CliRunner, payments_file: Path) -> None:
        result = runner.invoke(
            cli,
            [
                "--log-level", "WARNING",
                "defer", str(payments_file),
                "--payment", "1",
                "--fee-option", "add-to-end-payment",
                "--fee-amount", "25",
            ],
        )

        assert result.exit_code == 0, result.output
        payments = json.loads(payments_file.read_text())["payments"]
        assert len(payments) == 4
        assert payments[0]["status"] == "deferred"
        assert payments[0]["amount"] == "0.00"
        assert payments[-1]["payment_number"] == 4
        assert payments[-1]["due_date"] == "2024-07-01"
        assert payments[-1]["amount"] == "427.01"
        assert payments[-1]["fee"] == "25.00"

    def test_defer_twice_fails(self, runner: CliRunner, payments_file: Path) -> None:
        runner.invoke(cli, ["--log-level", "WARNING", "defer", str(payments_file), "--payment", "1"])
        result = runner.invoke(cli, ["--log-level", "WARNING", "defer", str(payments_file), "--payment", "1"])

        assert result.exit_code == 1
        assert "Only pending payments can be deferred" in result.output
        assert len(json.loads(payments_file.read_text())["payments"]) == 4

    def test_malformed_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        result = runner.invoke(cli, ["defer", str(path), "--payment", "1"])
        assert result.exit_code == 1
        assert "Cannot read payments file" in result.output


class TestFailedFees:
    """Tests for failed-fees."""

    @pytest.fixture
    def failed_file(self, runner: CliRunner, tmp_path: Path) -> Path:
        path = tmp_path / "failed.json"
        runner.invoke(
            cli,
            ["--log-level", "WARNING", "schedule", *EXAMPLE_ARGS, "--origination-fee", "45", "--payments-file", str(path)],
        )
        data = json.loads(path.read_text())
        data["payments"][0]["status"] = "failed"
        path.write_text(json.dumps(data))
        return path

    def test_contract_origination_fee(self, runner: CliRunner, failed_file: Path) -> None:
        result = runner.invoke(cli, ["failed-fees", str(failed_file)])

        assert result.exit_code == 0, result.output
        assert "Failed payments    : 1" in result.output
        assert "Failed fees        : 45.00" in result.output
        assert "Unpaid interest    : 27.79" in result.output
        assert "Total charges      : 72.79" in result.output
        assert "Pending principal  : 775.78" in result.output
        assert "Modification total : 848.57" in result.output

    def test_fee_overrides(self, runner: CliRunner, failed_file: Path) -> None:
        result = runner.invoke(
            cli, ["failed-fees", str(failed_file), "--origination-fee", "20", "--brokerage-fee", "100"]
        )

        assert result.exit_code == 0, result.output
        assert "Total charges      : 47.79" in result.output
        assert "Modification total : 923.57" in result.output

    def test_no_failed_payments(self, runner: CliRunner, payments_file: Path) -> None:
        result = runner.invoke(cli, ["failed-fees", str(payments_file)])

        assert result.exit_code == 0, result.output
        assert "Failed payments    : 0" in result.output
        assert "Modification total : 1150.00" in result.output

    def test_bad_fee(self, runner: CliRunner, failed_file: Path) -> None:
        result = runner.invoke(cli, ["failed-fees", str(failed_file), "--brokerage-fee", "lots"])
        assert result.exit_code == 2
