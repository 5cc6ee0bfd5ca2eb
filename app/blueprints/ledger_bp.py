"""
Ledger Blueprint — grades, payments and finance figures.

Endpoints:
    POST /api/v1/grades                              record a subject result
    POST /api/v1/payments                            record a confirmed payment
    GET  /api/v1/students/<id>/grades                ?session&term
    GET  /api/v1/students/<id>/payments              ?session&term
    GET  /api/v1/students/<id>/results               resolver-backed result sheet
         ?session&term&admission_number&full_name
    GET  /api/v1/finance/overview                    ?session&term
    GET  /api/v1/finance/net-position                ?session&term
    GET  /api/v1/finance/report-snapshot             ?session&term
    GET  /api/v1/finance/sessions                    sessions (+terms) with payments
"""

import logging

from flask import Blueprint, g, jsonify, request

from app.blueprints import paginate_list, require_period_args
from app.services.registry import get_services
from app.utils.errors import E, api_error, register_service_error_handlers

logger = logging.getLogger(__name__)

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/v1")
register_service_error_handlers(ledger_bp)


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def _missing_period(missing):
    return api_error(
        E.VALIDATION_REQUIRED, "session and term are required",
        details={field: "required" for field in missing},
    )


# ── Writes ────────────────────────────────────────────────────────────────────


@ledger_bp.route("/grades", methods=["POST"])
def record_grade():
    data = _json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON object body is required")
    if g.get("user_id"):
        data.setdefault("teacher_id", g.user_id)

    grade = get_services().ledger.record_grade(data)
    return jsonify(grade.to_dict()), 201


@ledger_bp.route("/payments", methods=["POST"])
def record_payment():
    data = _json_body()
    if data is None:
        return api_error(E.VALIDATION_INVALID, "JSON object body is required")
    if g.get("user_id"):
        data.setdefault("confirmed_by", g.user_id)

    payment = get_services().ledger.record_payment(data)
    return jsonify(payment.to_dict()), 201


# ── Student reads ─────────────────────────────────────────────────────────────


@ledger_bp.route("/students/<student_id>/grades", methods=["GET"])
def student_grades(student_id):
    grades = get_services().ledger.grades_for_student(
        student_id, request.args.get("session"), request.args.get("term"),
    )
    page, total = paginate_list(grades)
    return jsonify({"items": [gr.to_dict() for gr in page], "total": total}), 200


@ledger_bp.route("/students/<student_id>/payments", methods=["GET"])
def student_payments(student_id):
    payments = get_services().ledger.payments_for_student(
        student_id, request.args.get("session"), request.args.get("term"),
    )
    page, total = paginate_list(payments)
    return jsonify({"items": [p.to_dict() for p in page], "total": total}), 200


@ledger_bp.route("/students/<student_id>/results", methods=["GET"])
def student_results(student_id):
    """Result sheet for one term, falling back to admission number / name."""
    session, term, missing = require_period_args()
    if missing:
        return _missing_period(missing)

    services = get_services()
    admission_number = request.args.get("admission_number")
    full_name = request.args.get("full_name")

    grades = services.identity.resolve_grades(student_id, admission_number, full_name, session, term)
    payments = services.identity.resolve_payments(student_id, admission_number, full_name, session, term)

    return jsonify({
        "student_id": student_id,
        "academic_session": session,
        "term": term,
        "grades": [gr.to_dict() for gr in grades],
        "payments": [p.to_dict() for p in payments],
        "average_score": services.ledger.average_score(grades),
        "subject_count": len(grades),
    }), 200


# ── Finance ───────────────────────────────────────────────────────────────────


@ledger_bp.route("/finance/overview", methods=["GET"])
def finance_overview():
    session, term, missing = require_period_args()
    if missing:
        return _missing_period(missing)

    overview = get_services().ledger.financial_overview(session, term)
    overview["recent_payments"] = [p.to_dict() for p in overview["recent_payments"]]
    return jsonify(overview), 200


@ledger_bp.route("/finance/net-position", methods=["GET"])
def finance_net_position():
    session, term, missing = require_period_args()
    if missing:
        return _missing_period(missing)

    ledger = get_services().ledger
    return jsonify({
        "academic_session": session,
        "term": term,
        "approved_expenditures": ledger.approved_expenditure_total(session, term),
        "net_position": ledger.net_position(session, term),
    }), 200


@ledger_bp.route("/finance/report-snapshot", methods=["GET"])
def finance_report_snapshot():
    session, term, missing = require_period_args()
    if missing:
        return _missing_period(missing)
    return jsonify(get_services().ledger.report_snapshot(session, term)), 200


@ledger_bp.route("/finance/sessions", methods=["GET"])
def finance_sessions():
    ledger = get_services().ledger
    sessions = ledger.sessions_with_payments()
    return jsonify({
        "sessions": sessions,
        "terms": {s: ledger.terms_with_payments(s) for s in sessions},
    }), 200
