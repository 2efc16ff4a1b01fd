"""Pytest configuration and fixtures."""

import logging
from datetime import date
from decimal import Decimal

import pytest

from loan_schedule import config as config_module
from loan_schedule.data_models import LoanTerms, Payment
from loan_schedule.frequency import PaymentFrequency


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Isolate every test from LOAN_* variables and the cached config."""
    for name in (
        "LOAN_DEFERRAL_FEE",
        "LOAN_RECONCILIATION_TOLERANCE",
        "LOAN_SKIP_WEEKENDS",
        "LOAN_BROKERAGE_TIERS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "_default_config", None)
    yield


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo handler and level changes made by setup_logging."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    names = ("loan_schedule", "loan_schedule_web", "sqlalchemy.engine", "werkzeug")
    levels = {name: logging.getLogger(name).level for name in names}
    root_level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(root_level)
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


@pytest.fixture
def example_terms() -> LoanTerms:
    """$1000 at 29 % monthly over three payments with a $150 brokerage fee."""
    return LoanTerms(
        principal_amount=Decimal("1000.00"),
        interest_rate=Decimal("29"),
        payment_frequency=PaymentFrequency.MONTHLY,
        number_of_payments=3,
        brokerage_fee=Decimal("150.00"),
    )


@pytest.fixture
def example_start() -> date:
    return date(2024, 3, 1)


@pytest.fixture
def sample_loan_id() -> str:
    """Sample loan ID."""
    return "loan-test-001"


@pytest.fixture
def pending_payments(sample_loan_id: str) -> list:
    """Three pending monthly payments as persisted after submission."""
    rows = [
        ("p1", 1, date(2024, 4, 1), "402.01", "374.22", "27.79"),
        ("p2", 2, date(2024, 5, 1), "402.01", "383.26", "18.75"),
        ("p3", 3, date(2024, 6, 1), "402.01", "392.52", "9.49"),
    ]
    return [
        Payment(
            id=pid,
            loan_id=sample_loan_id,
            payment_number=number,
            due_date=due,
            amount=Decimal(amount),
            principal=Decimal(principal),
            interest=Decimal(interest),
        )
        for pid, number, due, amount, principal, interest in rows
    ]
