"""
Shambil School Core
Approval workflow domain models.

Models:
    - WorkflowRecord:      shared lifecycle columns (single table ``workflow_records``)
    - ExpenditureRequest:  spending request raised by the accountant
    - FinancialReport:     term financial report with a ledger snapshot
    - ExamOfficerReport:   term academic report raised by the exam officer

The three kinds form a closed tagged union over the ``kind`` discriminator
(SQLAlchemy single-table polymorphism). Each subclass declares its own
payload contract; the workflow engine reads it instead of branching on kind.

Lifecycle:
    draft → submitted → approved | rejected
    approved → completed          (ExpenditureRequest only)
    rejected → draft              (re-edit by the owner, then resubmit)
"""

from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────

WORKFLOW_STATUSES = ("draft", "submitted", "approved", "rejected", "completed")

# Payload may only be changed while the record sits in one of these.
EDITABLE_STATUSES = frozenset({"draft", "rejected"})

WORKFLOW_TRANSITIONS = {
    "submit":   {"from": {"draft"},     "to": "submitted"},
    "approve":  {"from": {"submitted"}, "to": "approved"},
    "reject":   {"from": {"submitted"}, "to": "rejected"},
    "complete": {"from": {"approved"},  "to": "completed"},
}

# Statuses whose amounts count as money spent for the period.
SPENT_STATUSES = frozenset({"approved", "completed"})

EXPENDITURE_CATEGORIES = (
    "infrastructure", "equipment", "supplies", "maintenance",
    "utilities", "staff", "events", "other",
)
EXPENDITURE_PRIORITIES = ("low", "medium", "high", "urgent")

# Columns that never change after creation, whatever the status.
IMMUTABLE_FIELDS = frozenset({
    "id", "kind", "owner_id", "owner_name", "academic_session", "term", "created_at",
})


def _iso(value):
    return value.isoformat() if value else None


class WorkflowRecord(db.Model):
    """
    Base of every approvable record.

    Subclasses override the contract attributes:
        ACTIONS          transitions the kind supports
        PAYLOAD_FIELDS   columns editable while the record is in draft
        REQUIRED_FIELDS  payload columns that must be non-empty at create
        AUTHOR_ROLES     roles allowed to raise the record
        REVIEWER_ROLES   roles allowed to approve / reject / complete
    """

    __tablename__ = "workflow_records"

    OWNER_FIELD = "owner_id"
    ACTIONS = frozenset({"submit", "approve", "reject"})
    PAYLOAD_FIELDS = ("title", "content")
    REQUIRED_FIELDS = ("title",)
    AUTHOR_ROLES = frozenset({"admin"})
    REVIEWER_ROLES = frozenset({"admin"})

    id = db.Column(db.String(32), primary_key=True)
    kind = db.Column(db.String(30), nullable=False, index=True,
                     comment="expenditure_request | financial_report | exam_officer_report")
    status = db.Column(db.String(20), nullable=False, default="draft", index=True)

    owner_id = db.Column(db.String(64), nullable=False, index=True)
    owner_name = db.Column(db.String(150), nullable=False, default="")
    academic_session = db.Column(db.String(9), nullable=False, comment="e.g. 2024/2025")
    term = db.Column(db.String(20), nullable=False, comment="First Term | Second Term | Third Term")

    title = db.Column(db.String(300), nullable=False, default="")
    content = db.Column(db.Text, nullable=True)

    # Review stamp: null until the record is approved or rejected
    reviewer_id = db.Column(db.String(64), nullable=True)
    reviewer_name = db.Column(db.String(150), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    review_comment = db.Column(db.Text, nullable=True)

    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))

    __mapper_args__ = {"polymorphic_on": kind}
    __table_args__ = (
        db.Index("ix_workflow_records_period", "academic_session", "term"),
    )

    @property
    def is_editable(self):
        return self.status in EDITABLE_STATUSES

    def to_dict(self):
        data = {
            "id": self.id,
            "kind": self.kind,
            "status": self.status,
            "owner_id": self.owner_id,
            "owner_name": self.owner_name,
            "academic_session": self.academic_session,
            "term": self.term,
            "reviewer_id": self.reviewer_id,
            "reviewer_name": self.reviewer_name,
            "reviewed_at": _iso(self.reviewed_at),
            "review_comment": self.review_comment,
            "submitted_at": _iso(self.submitted_at),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        for field in self.PAYLOAD_FIELDS:
            data[field] = getattr(self, field)
        return data

    def __repr__(self):
        return f"<{type(self).__name__} {self.id} [{self.status}]>"


class ExpenditureRequest(WorkflowRecord):
    """Request to spend school funds; completes once the money is paid out."""

    ACTIONS = frozenset({"submit", "approve", "reject", "complete"})
    PAYLOAD_FIELDS = ("title", "description", "amount", "category", "priority", "notes")
    REQUIRED_FIELDS = ("title", "amount", "category")
    AUTHOR_ROLES = frozenset({"accountant", "admin"})
    REVIEWER_ROLES = frozenset({"admin"})

    amount = db.Column(db.BigInteger, nullable=True, comment="Smallest currency unit")
    category = db.Column(db.String(30), nullable=True)
    priority = db.Column(db.String(10), nullable=True, default="medium")
    description = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    __mapper_args__ = {"polymorphic_identity": "expenditure_request"}


class FinancialReport(WorkflowRecord):
    """Accountant's term report; carries the ledger figures it was written against."""

    PAYLOAD_FIELDS = (
        "title", "content",
        "total_revenue", "total_expenditures", "net_balance",
        "payment_count", "expenditure_count",
    )
    REQUIRED_FIELDS = ("title", "content")
    SNAPSHOT_FIELDS = (
        "total_revenue", "total_expenditures", "net_balance",
        "payment_count", "expenditure_count",
    )
    AUTHOR_ROLES = frozenset({"accountant"})
    REVIEWER_ROLES = frozenset({"admin"})

    total_revenue = db.Column(db.BigInteger, nullable=True)
    total_expenditures = db.Column(db.BigInteger, nullable=True)
    net_balance = db.Column(db.BigInteger, nullable=True)
    payment_count = db.Column(db.Integer, nullable=True)
    expenditure_count = db.Column(db.Integer, nullable=True)

    __mapper_args__ = {"polymorphic_identity": "financial_report"}


class ExamOfficerReport(WorkflowRecord):
    """Exam officer's term report on academic performance."""

    PAYLOAD_FIELDS = ("title", "content")
    REQUIRED_FIELDS = ("title", "content")
    AUTHOR_ROLES = frozenset({"exam_officer"})
    REVIEWER_ROLES = frozenset({"admin"})

    __mapper_args__ = {"polymorphic_identity": "exam_officer_report"}


WORKFLOW_KINDS = {
    "expenditure_request": ExpenditureRequest,
    "financial_report": FinancialReport,
    "exam_officer_report": ExamOfficerReport,
}
