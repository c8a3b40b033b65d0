"""JSON/CSV web API for the EMI calculator.

The calculator pages post their form fields here and render what comes back:
the installment and totals, the principal/interest split for the donut chart,
the amortization schedule, CSV and clipboard exports, prepayment and
extra-installment estimates, affordability and tax-benefit checks and the
visitor's saved calculations. Form ranges mirror the sliders on the pages
and are enforced here, before the engine sees the values.
"""

import logging
import os
from decimal import Decimal
from uuid import uuid4

from flask import Flask, Response, jsonify, request, session

from emi_calc.data_models import FREQUENCIES, MORATORIUM_MODES, LoanParameters
from emi_calc.engine import (
    affordability,
    amortize,
    extra_payment_impact,
    loan_amount,
    prepayment_impact,
    tax_benefit,
)
from emi_calc.exceptions import LoanValidationError
from emi_calc.formatter import (
    affordability_to_dict,
    extra_payment_to_dict,
    parameters_to_dict,
    prepayment_to_dict,
    schedule_to_clipboard,
    schedule_to_csv,
    serialize_schedule,
    summarize,
    tax_benefit_to_dict,
)
from emi_calc.history_store import create_store_from_env
from emi_calc.utils import check_range, parse_amount, parse_int, parse_percent

logger = logging.getLogger(__name__)

PREVIEW_ROWS = 120

DEFAULT_FIELD_LIMITS = {
    "principal": (Decimal("50000"), Decimal("10000000")),
    "rate": (Decimal("5"), Decimal("25")),
    "tenure": (Decimal("1"), Decimal("30")),
    "moratorium_months": (Decimal("0"), Decimal("60")),
    "processing_fee": (Decimal("0"), Decimal("100")),
}

app = Flask(__name__)
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
app.config["FIELD_LIMITS"] = dict(DEFAULT_FIELD_LIMITS)
history_store = create_store_from_env()


def _ensure_user_token() -> str:
    token = session.get("user_token")
    if not token:
        token = uuid4().hex
        session["user_token"] = token
        session.modified = True
    return token


def _request_fields() -> dict:
    """Return the posted fields from a JSON body or an HTML form."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def _field(form: dict, name: str, default=None):
    value = form.get(name, default)
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise LoanValidationError(f"{name} is required", name)
    return value


def _limited(name: str, value: Decimal) -> Decimal:
    low, high = app.config["FIELD_LIMITS"].get(name, (None, None))
    return check_range(name, value, low, high)


def _truthy(value) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _form_to_params(form: dict) -> LoanParameters:
    principal = parse_amount(_field(form, "principal"), "principal")
    down_payment = parse_amount(_field(form, "down_payment", "0"), "down_payment")
    if down_payment:
        principal = loan_amount(principal, down_payment)
    principal = _limited("principal", principal)
    rate = _limited("rate", parse_percent(_field(form, "rate"), "rate"))
    tenure = parse_int(_field(form, "tenure"), "tenure")
    _limited("tenure", Decimal(tenure))
    frequency = str(_field(form, "frequency", "monthly")).lower()
    if frequency not in FREQUENCIES:
        raise LoanValidationError(f"frequency must be one of {', '.join(FREQUENCIES)}", "frequency")
    periods_per_year = FREQUENCIES[frequency]
    moratorium_months = parse_int(_field(form, "moratorium_months", 0), "moratorium_months")
    _limited("moratorium_months", Decimal(moratorium_months))
    if (moratorium_months * periods_per_year) % 12:
        raise LoanValidationError(
            "moratorium_months must be a whole number of installment periods", "moratorium_months"
        )
    moratorium_mode = str(_field(form, "moratorium_mode", MORATORIUM_MODES[0])).lower()
    balloon = parse_amount(_field(form, "balloon", "0"), "balloon")
    processing_fee = _limited(
        "processing_fee", parse_percent(_field(form, "processing_fee", "0"), "processing_fee")
    )
    return LoanParameters(
        principal=principal,
        annual_rate=rate,
        periods=tenure * periods_per_year,
        periods_per_year=periods_per_year,
        moratorium_periods=moratorium_months * periods_per_year // 12,
        moratorium_mode=moratorium_mode,
        balloon=balloon,
        processing_fee_percent=processing_fee,
    )


def _summaries_for_view(summary: dict, schedule: list, show_full_schedule: bool):
    if show_full_schedule:
        return summary, schedule
    preview = schedule[:PREVIEW_ROWS]
    if len(schedule) > PREVIEW_ROWS:
        summary["truncated"] = len(schedule) - len(preview)
    return summary, preview


def _run_analysis(form: dict):
    params = _form_to_params(form)
    return params, amortize(params)


@app.errorhandler(ValueError)
def handle_invalid_input(exc: ValueError):
    logger.info("Rejected calculation request: %s", exc)
    return jsonify({"error": str(exc), "field": getattr(exc, "field", None)}), 400


@app.post("/api/schedule")
def schedule():
    form = _request_fields()
    _, result = _run_analysis(form)
    summary, rows = _summaries_for_view(
        summarize(result),
        serialize_schedule(result.schedule),
        _truthy(form.get("show_full_schedule", "")),
    )
    data = {"summary": summary, "schedule": rows}
    income = _field(form, "monthly_income", "")
    if income != "":
        income = parse_amount(income, "monthly_income")
        data["affordability"] = affordability_to_dict(affordability(result, income))
    bracket = _field(form, "tax_bracket", "")
    if bracket != "":
        bracket = parse_percent(bracket, "tax_bracket")
        data["tax_benefit"] = tax_benefit_to_dict(tax_benefit(result, bracket))
    return jsonify(data)


@app.post("/api/schedule.csv")
def schedule_csv():
    _, result = _run_analysis(_request_fields())
    return Response(
        schedule_to_csv(result),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=emi-schedule.csv"},
    )


@app.post("/api/schedule.tsv")
def schedule_clipboard():
    _, result = _run_analysis(_request_fields())
    return Response(schedule_to_clipboard(result), mimetype="text/plain")


@app.post("/api/prepayment")
def prepayment():
    form = _request_fields()
    params = _form_to_params(form)
    amount = parse_amount(_field(form, "amount"), "amount")
    after_period = parse_int(_field(form, "after_period", 0), "after_period")
    mode = str(_field(form, "mode", "term"))
    impact = prepayment_impact(params, amount, after_period, mode)
    return jsonify(prepayment_to_dict(impact))


@app.post("/api/extra-payment")
def extra_payment():
    form = _request_fields()
    params = _form_to_params(form)
    extra_percent = parse_percent(_field(form, "extra_percent"), "extra_percent")
    return jsonify(extra_payment_to_dict(extra_payment_impact(params, extra_percent)))


@app.get("/api/history")
def list_history():
    return jsonify(history_store.list(_ensure_user_token()))


@app.post("/api/history")
def save_history():
    user_token = _ensure_user_token()
    form = _request_fields()
    params, result = _run_analysis(form)
    name = str(form.get("name") or "").strip() or "Calculation"
    calculation_id = history_store.save(user_token, name, parameters_to_dict(params), summarize(result))
    return jsonify({"id": calculation_id}), 201


@app.delete("/api/history")
def clear_history():
    history_store.clear(_ensure_user_token())
    return "", 204


@app.get("/api/history/<int:calculation_id>")
def load_history(calculation_id: int):
    entry = history_store.load(_ensure_user_token(), calculation_id)
    if entry is None:
        return jsonify({"error": f"No saved calculation with id {calculation_id}"}), 404
    return jsonify(entry)


@app.delete("/api/history/<int:calculation_id>")
def delete_history(calculation_id: int):
    if not history_store.delete(_ensure_user_token(), calculation_id):
        return jsonify({"error": f"No saved calculation with id {calculation_id}"}), 404
    return "", 204


def main() -> None:
    print("Starting EMI calculator API...")
    app.run(host="0.0.0.0", port=8710, debug=os.environ.get("FLASK_DEBUG") == "1")


if __name__ == "__main__":
    main()
