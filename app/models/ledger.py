"""
Shambil School Core
Ledger domain models — grades and payments.

Models:
    - GradeRecord:    one subject result per (student, subject, term, session)
    - PaymentRecord:  one confirmed fee payment, identified by its receipt number

Both ledgers are append-only: rows are inserted once by the teacher /
accountant and never mutated afterwards in normal operation. Student keys are
stored as written by the author, which is why reads go through the identity
resolver rather than assuming a clean foreign key.
"""

from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────

TERMS = ("First Term", "Second Term", "Third Term")

CA_MAX_SCORE = 20
EXAM_MAX_SCORE = 60

# (minimum total, letter), checked top-down
GRADE_BOUNDARIES = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (60, "D"),
    (50, "E"),
    (0, "F"),
)

GRADE_REMARKS = {
    "A+": "Outstanding",
    "A": "Excellent",
    "B": "Very Good",
    "C": "Good",
    "D": "Fair",
    "E": "Pass",
    "F": "Fail",
}

PAYMENT_METHODS = ("Bank Transfer", "Cash", "Debit Card", "Mobile Money")


def grade_for_total(total):
    """Return the letter grade for a 0–100 total."""
    for minimum, letter in GRADE_BOUNDARIES:
        if total >= minimum:
            return letter
    return "F"


def remark_for_grade(grade):
    return GRADE_REMARKS.get(grade, "N/A")


def _iso(value):
    return value.isoformat() if value else None


class GradeRecord(db.Model):
    """Subject result for one student in one term."""

    __tablename__ = "grades"

    OWNER_FIELD = "student_id"

    id = db.Column(db.String(32), primary_key=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    student_name = db.Column(db.String(150), nullable=False, default="")
    admission_number = db.Column(db.String(40), nullable=True, index=True)

    subject_id = db.Column(db.String(40), nullable=False)
    subject_name = db.Column(db.String(120), nullable=False, default="")
    class_id = db.Column(db.String(40), nullable=True)
    teacher_id = db.Column(db.String(64), nullable=True)

    academic_session = db.Column(db.String(9), nullable=False)
    term = db.Column(db.String(20), nullable=False)

    first_ca = db.Column(db.Integer, nullable=False, default=0)
    second_ca = db.Column(db.Integer, nullable=False, default=0)
    exam = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0, comment="first_ca + second_ca + exam")
    grade = db.Column(db.String(3), nullable=False, default="F")
    remark = db.Column(db.String(40), nullable=False, default="")
    position = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("student_id", "subject_id", "term", "academic_session",
                            name="uq_grades_student_subject_period"),
        db.Index("ix_grades_period", "academic_session", "term"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "admission_number": self.admission_number,
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "class_id": self.class_id,
            "teacher_id": self.teacher_id,
            "academic_session": self.academic_session,
            "term": self.term,
            "first_ca": self.first_ca,
            "second_ca": self.second_ca,
            "exam": self.exam,
            "total": self.total,
            "grade": self.grade,
            "remark": self.remark,
            "position": self.position,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<GradeRecord {self.student_id} {self.subject_id} {self.total}>"


class PaymentRecord(db.Model):
    """Confirmed fee payment."""

    __tablename__ = "payments"

    OWNER_FIELD = "student_id"

    id = db.Column(db.String(32), primary_key=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    student_name = db.Column(db.String(150), nullable=False, default="")
    admission_number = db.Column(db.String(40), nullable=True, index=True)

    receipt_number = db.Column(db.String(40), nullable=False, unique=True)
    amount = db.Column(db.BigInteger, nullable=False, comment="Smallest currency unit")
    payment_method = db.Column(db.String(40), nullable=False)
    bank_name = db.Column(db.String(120), nullable=True)
    account_number = db.Column(db.String(40), nullable=True)
    transaction_id = db.Column(db.String(80), nullable=True)
    description = db.Column(db.String(300), nullable=False, default="")

    academic_session = db.Column(db.String(9), nullable=False)
    term = db.Column(db.String(20), nullable=False)
    date_issued = db.Column(db.DateTime(timezone=True), nullable=True)
    confirmed_by = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("ix_payments_period", "academic_session", "term"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "admission_number": self.admission_number,
            "receipt_number": self.receipt_number,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "transaction_id": self.transaction_id,
            "description": self.description,
            "academic_session": self.academic_session,
            "term": self.term,
            "date_issued": _iso(self.date_issued),
            "confirmed_by": self.confirmed_by,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<PaymentRecord {self.receipt_number} {self.amount}>"
