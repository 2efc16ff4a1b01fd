import os
from datetime import date, timedelta
from flask import Flask, current_app, jsonify, request

from loan_schedule.config import get_config
from loan_schedule.data_models import ContractFees
from loan_schedule.editor import payment_totals
from loan_schedule.engine import contract_payment_schedule, summarize_schedule
from loan_schedule.exceptions import InvalidEditError, LoanScheduleError, PaymentNotFoundError
from loan_schedule.holidays import holidays_for_range, parse_holidays
from loan_schedule.logging import get_logger, setup_logging
from loan_schedule.main import terms_from_payload
from loan_schedule.preview import SchedulePreview
from loan_schedule_web.payment_store import create_store_from_env, payment_to_dict

logger = get_logger(__name__)


def parse_form_list(value) -> list[str]:
    """Parse a list of entries given either as a JSON array or a comma/newline separated string.

    Returns a list of trimmed strings, skipping any empty entries.
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        parts = [str(p).strip() for p in value]
    else:
        parts = [p.strip() for p in str(value).replace("\n", ",").split(",")]
    return [p for p in parts if p]


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise InvalidEditError("Request body must be a JSON object")
    return body


def _holidays_from_body(body: dict, first_due: date) -> set:
    try:
        holidays = set(parse_holidays(parse_form_list(body.get("holidays"))))
    except ValueError as exc:
        raise InvalidEditError(f"Invalid holiday date: {exc}", field="holidays") from exc
    if body.get("canadianHolidays"):
        holidays |= holidays_for_range(first_due, first_due + timedelta(days=730))
    return holidays


def _skip_weekends_from_body(body: dict) -> bool:
    value = body.get("skipWeekends")
    if value is None:
        return get_config().skip_weekends
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _preview_from_body(body: dict):
    terms, next_payment, account_id = terms_from_payload(body)
    preview = SchedulePreview.auto(
        terms,
        next_payment,
        _holidays_from_body(body, next_payment),
        skip_weekends=_skip_weekends_from_body(body),
        first_payment_on_start=True,
    )
    # edits made on the contract screen before submission
    for edit in body.get("edits") or []:
        if not isinstance(edit, dict) or "index" not in edit:
            raise InvalidEditError("Each edit needs an index", field="edits")
        try:
            index = int(edit["index"])
        except (TypeError, ValueError) as exc:
            raise InvalidEditError("Edit index must be a whole number", field="index") from exc
        preview.edit_item(index, edit.get("amount"), edit.get("dueDate"))
    return preview, account_id


def _preview_payload(preview: SchedulePreview) -> dict:
    schedule = preview.lock()
    summary = summarize_schedule(schedule)
    return {
        "mode": "manual" if preview.is_manual else "auto",
        "paymentAmount": float(schedule.payment_amount),
        "summary": summary.to_dict(),
        "payment_schedule": contract_payment_schedule(schedule),
        "warnings": list(summary.warnings),
    }


def _payments_payload(loan_id: str, payments) -> dict:
    totals = payment_totals(payments)
    return {
        "loan_id": loan_id,
        "payments": [payment_to_dict(p) for p in payments],
        "totals": {
            "amount": float(totals.amount),
            "principal": float(totals.principal),
            "interest": float(totals.interest),
            "fee": float(totals.fee),
        },
    }


def create_app(store=None) -> Flask:
    app = Flask(__name__)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    app.config["PAYMENT_STORE"] = store or create_store_from_env(os.environ.get("PAYMENTS_DATABASE_URL"))

    @app.errorhandler(PaymentNotFoundError)
    def handle_not_found(exc):
        return jsonify({"error": str(exc)}), 404

    @app.errorhandler(LoanScheduleError)
    def handle_engine_error(exc):
        logger.info("Rejected %s %s: %s", request.method, request.path, exc)
        body = {"error": str(exc)}
        field = getattr(exc, "field", None)
        if field:
            body["field"] = field
        return jsonify(body), 400

    @app.post("/api/schedule/preview")
    def preview_schedule():
        preview, _ = _preview_from_body(_json_body())
        return jsonify(_preview_payload(preview))

    @app.post("/api/loans/<loan_id>/payments")
    def submit_schedule(loan_id):
        body = _json_body()
        preview, account_id = _preview_from_body(body)
        terms = preview.terms
        fees = ContractFees.from_dict(
            {
                "brokerage_fee": terms.brokerage_fee,
                "origination_fee": terms.origination_fee,
                "deferral_fee": body.get("deferralFee"),
                "other_fees": body.get("otherFees"),
            }
        )
        payments = _store().create_loan_payments(
            loan_id, preview.lock(), account_id=account_id, contract_fees=fees
        )
        return jsonify(_payments_payload(loan_id, payments)), 201

    @app.get("/api/loans/<loan_id>/payments")
    def list_payments(loan_id):
        return jsonify(_payments_payload(loan_id, _store().list_payments(loan_id)))

    @app.patch("/api/loans/<loan_id>/payments/<payment_id>")
    def update_payment(loan_id, payment_id):
        body = _json_body()
        if body.get("amount") is None and body.get("dueDate") is None:
            raise InvalidEditError("Nothing to change; send amount and/or dueDate")
        payment = _store().edit_payment(loan_id, payment_id, body.get("amount"), body.get("dueDate"))
        return jsonify(payment_to_dict(payment))

    @app.post("/api/loans/<loan_id>/payments/<payment_id>/defer")
    def defer_payment(loan_id, payment_id):
        body = _json_body()
        holidays = _holidays_from_body(body, date.today())
        payments = _store().defer_payment(
            loan_id,
            payment_id,
            body.get("feeOption", "none"),
            body.get("feeAmount"),
            holidays=holidays,
            skip_weekends=_skip_weekends_from_body(body),
        )
        return jsonify(_payments_payload(loan_id, payments))

    return app


def _store():
    return current_app.config["PAYMENT_STORE"]


if __name__ == "__main__":
    setup_logging(get_config().log_level)
    print("Starting loan schedule API...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
