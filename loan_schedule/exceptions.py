"""Exception hierarchy for the loan schedule engine."""

from __future__ import annotations

from typing import Optional


class LoanScheduleError(Exception):
    """Base exception for all loan schedule errors."""


class InvalidTermsError(LoanScheduleError, ValueError):
    """Raised when loan terms cannot be used to compute a schedule.

    ``field`` names the offending input so callers can point the user at it.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidEditError(LoanScheduleError, ValueError):
    """Raised when a manual edit or deferral request carries a bad value."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class PreconditionError(LoanScheduleError):
    """Raised when a payment is in the wrong state for the operation."""


class PaymentNotFoundError(LoanScheduleError):
    """Raised when a referenced loan or payment does not exist."""


class ReconciliationWarning(UserWarning):
    """Final-payment adjustment exceeded the expected rounding tolerance.

    Not raised. Instances are logged and attached to ``Schedule.warnings`` so
    staff can review a likely rate or term mismatch.
    """
