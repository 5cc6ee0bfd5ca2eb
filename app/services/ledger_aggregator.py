"""
Ledger Aggregator — grade and payment ledgers plus the figures derived from them.

Writes:
    record_grade      validate CA/exam ranges, compute total/grade/remark
    record_payment    validate amount + required fields, receipt numbers unique

Reads:
    per-student grade / payment lists, averages, result summaries
    per-period financial overview, approved expenditure, net position
    FinancialReport snapshot block

Amounts are integers in the smallest currency unit; nothing here rounds or
formats money.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone

from app.core.exceptions import DuplicateKeyError, ValidationError
from app.models.ledger import (
    CA_MAX_SCORE,
    EXAM_MAX_SCORE,
    TERMS,
    grade_for_total,
    remark_for_grade,
)
from app.models.workflow import SPENT_STATUSES
from app.services.academic_calendar import parse_session
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

RECENT_PAYMENTS_LIMIT = 10

_SCORE_LIMITS = {
    "first_ca": CA_MAX_SCORE,
    "second_ca": CA_MAX_SCORE,
    "exam": EXAM_MAX_SCORE,
}

_GRADE_FIELDS = frozenset({
    "student_id", "student_name", "admission_number", "subject_id", "subject_name",
    "class_id", "teacher_id", "academic_session", "term",
    "first_ca", "second_ca", "exam", "position",
})

_PAYMENT_FIELDS = frozenset({
    "student_id", "student_name", "admission_number", "receipt_number", "amount",
    "payment_method", "bank_name", "account_number", "transaction_id", "description",
    "academic_session", "term", "date_issued", "confirmed_by",
})


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _check_period(data: dict, errors: dict) -> None:
    session = data.get("academic_session")
    if _blank(session):
        errors["academic_session"] = "required"
    elif parse_session(session) is None:
        errors["academic_session"] = "must look like 2024/2025"
    term = data.get("term")
    if _blank(term):
        errors["term"] = "required"
    elif term not in TERMS:
        errors["term"] = f"must be one of: {', '.join(TERMS)}"


def _check_unknown(data: dict, allowed: frozenset, errors: dict) -> None:
    for field in sorted(set(data) - allowed):
        errors[field] = "unknown field"


def _parse_datetime(value, errors: dict, field: str):
    if value is None:
        return None
    if not isinstance(value, datetime):
        try:
            value = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            errors[field] = "must be an ISO-8601 timestamp"
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _issued_key(payment) -> datetime:
    """Sort key for payments; SQLite hands timestamps back without tzinfo."""
    issued = payment.date_issued or payment.created_at
    if issued.tzinfo is not None:
        issued = issued.astimezone(timezone.utc).replace(tzinfo=None)
    return issued


class LedgerAggregator:
    """Append-only grade/payment ledgers and their period aggregates."""

    def __init__(self, store: RecordStore):
        self.store = store

    # ── Writes ───────────────────────────────────────────────────────────

    def record_grade(self, payload: dict):
        """
        Record one subject result.

        ``total`` is first_ca + second_ca + exam; ``grade`` and ``remark``
        follow from it. Any total/grade/remark in the payload is ignored.

        Raises:
            ValidationError: missing field or score out of range.
            DuplicateKeyError: a grade already exists for the
                (student, subject, term, session).
        """
        data = {k: v for k, v in (payload or {}).items() if k not in ("total", "grade", "remark")}
        errors: dict[str, str] = {}
        _check_unknown(data, _GRADE_FIELDS, errors)
        for field in ("student_id", "subject_id"):
            if _blank(data.get(field)):
                errors[field] = "required"
        _check_period(data, errors)
        for field, limit in _SCORE_LIMITS.items():
            value = data.get(field, 0)
            if not _is_int(value):
                errors[field] = "must be an integer"
            elif not 0 <= value <= limit:
                errors[field] = f"must be between 0 and {limit}"
            else:
                data[field] = value
        if data.get("position") is not None and (not _is_int(data["position"]) or data["position"] < 1):
            errors["position"] = "must be a positive integer"
        if errors:
            raise ValidationError("Invalid grade payload", details=errors)

        total = data["first_ca"] + data["second_ca"] + data["exam"]
        grade = grade_for_total(total)
        data.update(total=total, grade=grade, remark=remark_for_grade(grade))

        existing = self.store.list_by_owner(
            "grades", data["student_id"], data["academic_session"], data["term"],
        )
        if any(g.subject_id == data["subject_id"] for g in existing):
            raise DuplicateKeyError(
                "GradeRecord", "student_id+subject_id+term+academic_session",
                f"{data['student_id']}/{data['subject_id']}/{data['term']}/{data['academic_session']}",
            )

        record = self.store.create("grades", data)
        logger.info(
            "Grade recorded",
            extra={"student_id": record.student_id, "subject_id": record.subject_id,
                   "total": record.total, "grade": record.grade},
        )
        return record

    def record_payment(self, payload: dict):
        """
        Record one confirmed payment.

        Raises:
            ValidationError: missing field or negative / non-integer amount.
            DuplicateKeyError: ``receipt_number`` already used.
        """
        data = dict(payload or {})
        errors: dict[str, str] = {}
        _check_unknown(data, _PAYMENT_FIELDS, errors)
        for field in ("student_id", "receipt_number", "payment_method"):
            if _blank(data.get(field)):
                errors[field] = "required"
        amount = data.get("amount")
        if amount is None:
            errors["amount"] = "required"
        elif not _is_int(amount):
            errors["amount"] = "must be an integer"
        elif amount < 0:
            errors["amount"] = "must not be negative"
        _check_period(data, errors)
        data["date_issued"] = _parse_datetime(data.get("date_issued"), errors, "date_issued")
        if errors:
            raise ValidationError("Invalid payment payload", details=errors)

        if self.store.find_one("payments", "receipt_number", data["receipt_number"]) is not None:
            raise DuplicateKeyError("PaymentRecord", "receipt_number", data["receipt_number"])

        if data["date_issued"] is None:
            data["date_issued"] = datetime.now(timezone.utc)

        record = self.store.create("payments", data)
        logger.info(
            "Payment recorded",
            extra={"student_id": record.student_id, "receipt_number": record.receipt_number,
                   "amount": record.amount},
        )
        return record

    # ── Per-student reads ────────────────────────────────────────────────

    def grades_for_student(self, student_id: str, session: str | None = None,
                           term: str | None = None) -> list:
        if not student_id:
            return []
        return self.store.list_by_owner("grades", student_id, session, term)

    def payments_for_student(self, student_id: str, session: str | None = None,
                             term: str | None = None) -> list:
        if not student_id:
            return []
        return self.store.list_by_owner("payments", student_id, session, term)

    @staticmethod
    def average_score(grades) -> float:
        """Mean of the grade totals; 0 for no grades."""
        grades = list(grades)
        if not grades:
            return 0
        return sum(g.total for g in grades) / len(grades)

    def student_summary(self, student_id: str, session: str | None = None,
                        term: str | None = None) -> dict:
        grades = self.grades_for_student(student_id, session, term)
        return {
            "student_id": student_id,
            "academic_session": session,
            "term": term,
            "grades": grades,
            "average_score": self.average_score(grades),
            "subject_count": len(grades),
        }

    # ── Per-period reads ─────────────────────────────────────────────────

    def grades_for_period(self, session: str, term: str) -> list:
        return self.store.list_by_period("grades", session, term)

    def payments_for_period(self, session: str, term: str) -> list:
        return self.store.list_by_period("payments", session, term)

    def approved_expenditures(self, session: str, term: str) -> list:
        """ExpenditureRequests for the period whose money counts as spent."""
        return [
            r for r in self.store.list_by_period("workflow_records", session, term)
            if r.kind == "expenditure_request" and r.status in SPENT_STATUSES
        ]

    def approved_expenditure_total(self, session: str, term: str) -> int:
        return sum(r.amount or 0 for r in self.approved_expenditures(session, term))

    def net_position(self, session: str, term: str) -> int:
        """Revenue minus approved/completed expenditure for the period."""
        revenue = sum(p.amount for p in self.payments_for_period(session, term))
        return revenue - self.approved_expenditure_total(session, term)

    def financial_overview(self, session: str, term: str) -> dict:
        """Revenue, breakdowns and latest payments for one period."""
        payments = self.payments_for_period(session, term)
        total_revenue = sum(p.amount for p in payments)
        payment_count = len(payments)

        by_method: dict[str, int] = defaultdict(int)
        by_description: dict[str, int] = defaultdict(int)
        for p in payments:
            by_method[p.payment_method or "Unknown"] += p.amount
            by_description[p.description or "Unspecified"] += p.amount

        recent = sorted(payments, key=_issued_key, reverse=True)[:RECENT_PAYMENTS_LIMIT]

        approved = self.approved_expenditure_total(session, term)
        return {
            "academic_session": session,
            "term": term,
            "total_revenue": total_revenue,
            "payment_count": payment_count,
            "average_payment": total_revenue / payment_count if payment_count else 0,
            "by_method": dict(by_method),
            "by_description": dict(by_description),
            "recent_payments": recent,
            "approved_expenditures": approved,
            "net_position": total_revenue - approved,
        }

    def report_snapshot(self, session: str, term: str) -> dict:
        """Figures stamped onto a FinancialReport at creation."""
        payments = self.payments_for_period(session, term)
        spent = self.approved_expenditures(session, term)
        total_revenue = sum(p.amount for p in payments)
        total_expenditures = sum(r.amount or 0 for r in spent)
        return {
            "total_revenue": total_revenue,
            "total_expenditures": total_expenditures,
            "net_balance": total_revenue - total_expenditures,
            "payment_count": len(payments),
            "expenditure_count": len(spent),
        }

    def sessions_with_payments(self) -> list[str]:
        return sorted({s for s, _ in self.store.list_periods("payments")})

    def terms_with_payments(self, session: str) -> list[str]:
        """Terms of ``session`` that have payments, in term order."""
        present = {t for s, t in self.store.list_periods("payments") if s == session}
        return [t for t in TERMS if t in present]
