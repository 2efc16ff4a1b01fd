"""Persistence layer for loan payments.

This module keeps the payments of submitted schedules in an external
database. It defaults to SQLite for local development, but accepts any
SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL).

Every edit and deferral runs inside one transaction that first locks the
loan row, so concurrent requests against the same loan are serialized and
a reader sees either the whole change or none of it.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from loan_schedule.data_models import ContractFees, FeeOption, Payment, PaymentStatus, Schedule
from loan_schedule.editor import apply_deferral, build_deferral_request, edit_payment
from loan_schedule.exceptions import PaymentNotFoundError, PreconditionError
from loan_schedule.frequency import PaymentFrequency
from loan_schedule.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoanModel(Base):
    __tablename__ = "loans"

    id = Column(String(64), primary_key=True)
    account_id = Column(String(64), index=True, nullable=True)
    payment_frequency = Column(String(32), nullable=False)
    contract_fees_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class PaymentModel(Base):
    __tablename__ = "loan_payments"

    id = Column(String(64), primary_key=True)
    loan_id = Column(String(64), ForeignKey("loans.id"), index=True, nullable=False)
    payment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    principal = Column(Numeric(12, 2), nullable=False)
    interest = Column(Numeric(12, 2), nullable=False)
    fee = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    status = Column(String(32), nullable=False, default=PaymentStatus.PENDING.value)
    notes = Column(Text, nullable=False, default="")
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class PaymentStore:
    """Database-backed payment store."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)

    def create_loan_payments(
        self,
        loan_id: str,
        schedule: Schedule,
        *,
        account_id: Optional[str] = None,
        contract_fees: Optional[ContractFees] = None,
        payment_ids: Optional[Sequence[str]] = None,
    ) -> List[Payment]:
        """Persist a locked schedule as the payments of a new loan.

        Raises
        ------
        PreconditionError
            If the schedule is empty or the loan already has payments.
        """
        if schedule.is_empty or schedule.terms is None:
            raise PreconditionError("Cannot submit an empty schedule")
        terms = schedule.terms
        fees = contract_fees or ContractFees(
            brokerage_fee=terms.brokerage_fee,
            origination_fee=terms.origination_fee,
        )
        ids = list(payment_ids) if payment_ids else [f"{loan_id}-{item.payment_number}" for item in schedule.items]
        payments = [
            Payment.from_item(item, id=payment_id, loan_id=loan_id)
            for item, payment_id in zip(schedule.items, ids)
        ]
        with self._session_factory() as session, session.begin():
            if session.get(LoanModel, loan_id) is not None:
                raise PreconditionError(f"Loan {loan_id} already has a payment schedule")
            session.add(
                LoanModel(
                    id=loan_id,
                    account_id=account_id,
                    payment_frequency=terms.payment_frequency.value,
                    contract_fees_json=json.dumps(fees.to_dict()),
                )
            )
            # loan row must exist before its payments reference it
            session.flush()
            session.add_all(self._to_model(p) for p in payments)
        logger.info("Stored %d payments for loan %s", len(payments), loan_id, extra={"loan_id": loan_id})
        return payments

    def list_payments(self, loan_id: str) -> List[Payment]:
        with self._session_factory() as session:
            if session.get(LoanModel, loan_id) is None:
                raise PaymentNotFoundError(f"Loan {loan_id} not found")
            return self._payments_for(session, loan_id)

    def contract_fees(self, loan_id: str) -> ContractFees:
        with self._session_factory() as session:
            loan = session.get(LoanModel, loan_id)
            if loan is None:
                raise PaymentNotFoundError(f"Loan {loan_id} not found")
            return ContractFees.from_dict(json.loads(loan.contract_fees_json))

    def edit_payment(
        self,
        loan_id: str,
        payment_id: str,
        new_amount: Union[Decimal, str, int, float, None] = None,
        new_date: Any = None,
    ) -> Payment:
        """Apply a manual edit to one payment and persist it."""
        with self._session_factory() as session, session.begin():
            self._lock_loan(session, loan_id)
            row = self._payment_row(session, loan_id, payment_id)
            current = self._from_model(row)
            updated = edit_payment(current, new_amount, new_date)
            if updated is not current:
                self._copy_onto(row, updated)
        logger.info(
            "Payment %s of loan %s saved", payment_id, loan_id, extra={"loan_id": loan_id, "payment_id": payment_id}
        )
        return updated

    def defer_payment(
        self,
        loan_id: str,
        payment_id: str,
        fee_option: Union[FeeOption, str] = FeeOption.NONE,
        fee_amount: Union[Decimal, str, int, float, None] = None,
        *,
        holidays=None,
        skip_weekends: bool = False,
    ) -> List[Payment]:
        """Defer one payment and append its replacement in a single transaction.

        Returns every payment of the loan after the change.
        """
        with self._session_factory() as session, session.begin():
            loan = self._lock_loan(session, loan_id)
            self._payment_row(session, loan_id, payment_id)
            fees = ContractFees.from_dict(json.loads(loan.contract_fees_json))
            payments = self._payments_for(session, loan_id)
            request = build_deferral_request(payment_id, fee_option, fee_amount, fees)
            result = apply_deferral(
                payments,
                request,
                PaymentFrequency.parse(loan.payment_frequency),
                contract_fees=fees,
                holidays=holidays,
                skip_weekends=skip_weekends,
            )
            existing = {p.id for p in payments}
            for payment in result:
                if payment.id in existing:
                    if payment.id == payment_id:
                        self._copy_onto(session.get(PaymentModel, payment_id), payment)
                else:
                    session.add(self._to_model(payment))
        logger.info(
            "Payment %s of loan %s deferred", payment_id, loan_id, extra={"loan_id": loan_id, "payment_id": payment_id}
        )
        return result

    def _lock_loan(self, session: Session, loan_id: str) -> LoanModel:
        loan = session.execute(
            select(LoanModel).where(LoanModel.id == loan_id).with_for_update()
        ).scalar_one_or_none()
        if loan is None:
            raise PaymentNotFoundError(f"Loan {loan_id} not found")
        return loan

    @staticmethod
    def _payment_row(session: Session, loan_id: str, payment_id: str) -> PaymentModel:
        row = session.get(PaymentModel, payment_id)
        if row is None or row.loan_id != loan_id:
            raise PaymentNotFoundError(f"Payment {payment_id} not found for loan {loan_id}")
        return row

    def _payments_for(self, session: Session, loan_id: str) -> List[Payment]:
        rows: Iterable[PaymentModel] = session.execute(
            select(PaymentModel)
            .where(PaymentModel.loan_id == loan_id)
            .order_by(PaymentModel.due_date.asc(), PaymentModel.payment_number.asc())
        ).scalars()
        return [self._from_model(row) for row in rows]

    @staticmethod
    def _copy_onto(row: PaymentModel, payment: Payment) -> None:
        row.due_date = payment.due_date
        row.amount = payment.amount
        row.principal = payment.principal
        row.interest = payment.interest
        row.fee = payment.fee
        row.status = payment.status.value
        row.notes = payment.notes

    @staticmethod
    def _to_model(payment: Payment) -> PaymentModel:
        return PaymentModel(
            id=payment.id,
            loan_id=payment.loan_id,
            payment_number=payment.payment_number,
            due_date=payment.due_date,
            amount=payment.amount,
            principal=payment.principal,
            interest=payment.interest,
            fee=payment.fee,
            status=payment.status.value,
            notes=payment.notes,
        )

    @staticmethod
    def _from_model(row: PaymentModel) -> Payment:
        return Payment(
            id=row.id,
            loan_id=row.loan_id,
            payment_number=row.payment_number,
            due_date=row.due_date,
            amount=Decimal(str(row.amount)).quantize(Decimal("0.01")),
            principal=Decimal(str(row.principal)).quantize(Decimal("0.01")),
            interest=Decimal(str(row.interest)).quantize(Decimal("0.01")),
            fee=Decimal(str(row.fee)).quantize(Decimal("0.01")),
            status=PaymentStatus(row.status),
            notes=row.notes or "",
        )


def create_store_from_env(url: Optional[str]) -> PaymentStore:
    return PaymentStore(url or "sqlite:///loan_payments.sqlite3")


def payment_to_dict(payment: Payment) -> Dict[str, Any]:
    """Serialize a payment for JSON responses (amounts as numbers)."""
    data = payment.to_dict()
    for key in ("amount", "principal", "interest", "fee"):
        data[key] = float(getattr(payment, key))
    return data
