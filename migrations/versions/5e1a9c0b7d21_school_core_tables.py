"""school_core_tables

Creates the school core tables:
  - workflow_records  — expenditure requests, financial reports, exam officer
                        reports (single table, discriminated by ``kind``)
  - grades            — subject results, unique per student/subject/term/session
  - payments          — confirmed fee payments, unique receipt numbers
  - notifications     — derived student notices, unique per student/period/category

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 5e1a9c0b7d21
Revises:
Create Date: 2026-10-19 09:12:44.318207
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5e1a9c0b7d21'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── WorkflowRecord ────────────────────────────────────────────────────
    if "workflow_records" not in existing:
        op.create_table(
            "workflow_records",
            sa.Column("id", sa.String(length=32), nullable=False),
            sa.Column(
                "kind", sa.String(length=30), nullable=False,
                comment="expenditure_request | financial_report | exam_officer_report",
            ),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("owner_id", sa.String(length=64), nullable=False),
            sa.Column("owner_name", sa.String(length=150), nullable=False, server_default=""),
            sa.Column("academic_session", sa.String(length=9), nullable=False, comment="e.g. 2024/2025"),
            sa.Column("term", sa.String(length=20), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False, server_default=""),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("reviewer_id", sa.String(length=64), nullable=True),
            sa.Column("reviewer_name", sa.String(length=150), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("review_comment", sa.Text(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            # ExpenditureRequest
            sa.Column("amount", sa.BigInteger(), nullable=True, comment="Smallest currency unit"),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("priority", sa.String(length=10), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            # FinancialReport snapshot
            sa.Column("total_revenue", sa.BigInteger(), nullable=True),
            sa.Column("total_expenditures", sa.BigInteger(), nullable=True),
            sa.Column("net_balance", sa.BigInteger(), nullable=True),
            sa.Column("payment_count", sa.Integer(), nullable=True),
            sa.Column("expenditure_count", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_workflow_records_kind", "workflow_records", ["kind"])
        op.create_index("ix_workflow_records_status", "workflow_records", ["status"])
        op.create_index("ix_workflow_records_owner_id", "workflow_records", ["owner_id"])
        op.create_index("ix_workflow_records_period", "workflow_records", ["academic_session", "term"])

    # ── GradeRecord ───────────────────────────────────────────────────────
    if "grades" not in existing:
        op.create_table(
            "grades",
            sa.Column("id", sa.String(length=32), nullable=False),
            sa.Column("student_id", sa.String(length=64), nullable=False),
            sa.Column("student_name", sa.String(length=150), nullable=False, server_default=""),
            sa.Column("admission_number", sa.String(length=40), nullable=True),
            sa.Column("subject_id", sa.String(length=40), nullable=False),
            sa.Column("subject_name", sa.String(length=120), nullable=False, server_default=""),
            sa.Column("class_id", sa.String(length=40), nullable=True),
            sa.Column("teacher_id", sa.String(length=64), nullable=True),
            sa.Column("academic_session", sa.String(length=9), nullable=False),
            sa.Column("term", sa.String(length=20), nullable=False),
            sa.Column("first_ca", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("second_ca", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("exam", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total", sa.Integer(), nullable=False, server_default="0",
                      comment="first_ca + second_ca + exam"),
            sa.Column("grade", sa.String(length=3), nullable=False, server_default="F"),
            sa.Column("remark", sa.String(length=40), nullable=False, server_default=""),
            sa.Column("position", sa.Integer(), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("student_id", "subject_id", "term", "academic_session",
                                name="uq_grades_student_subject_period"),
        )
        op.create_index("ix_grades_student_id", "grades", ["student_id"])
        op.create_index("ix_grades_admission_number", "grades", ["admission_number"])
        op.create_index("ix_grades_period", "grades", ["academic_session", "term"])

    # ── PaymentRecord ─────────────────────────────────────────────────────
    if "payments" not in existing:
        op.create_table(
            "payments",
            sa.Column("id", sa.String(length=32), nullable=False),
            sa.Column("student_id", sa.String(length=64), nullable=False),
            sa.Column("student_name", sa.String(length=150), nullable=False, server_default=""),
            sa.Column("admission_number", sa.String(length=40), nullable=True),
            sa.Column("receipt_number", sa.String(length=40), nullable=False),
            sa.Column("amount", sa.BigInteger(), nullable=False, comment="Smallest currency unit"),
            sa.Column("payment_method", sa.String(length=40), nullable=False),
            sa.Column("bank_name", sa.String(length=120), nullable=True),
            sa.Column("account_number", sa.String(length=40), nullable=True),
            sa.Column("transaction_id", sa.String(length=80), nullable=True),
            sa.Column("description", sa.String(length=300), nullable=False, server_default=""),
            sa.Column("academic_session", sa.String(length=9), nullable=False),
            sa.Column("term", sa.String(length=20), nullable=False),
            sa.Column("date_issued", sa.DateTime(timezone=True), nullable=True),
            sa.Column("confirmed_by", sa.String(length=64), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("receipt_number", name="uq_payments_receipt_number"),
        )
        op.create_index("ix_payments_student_id", "payments", ["student_id"])
        op.create_index("ix_payments_admission_number", "payments", ["admission_number"])
        op.create_index("ix_payments_period", "payments", ["academic_session", "term"])

    # ── StudentNotification ───────────────────────────────────────────────
    if "notifications" not in existing:
        op.create_table(
            "notifications",
            sa.Column("id", sa.String(length=32), nullable=False),
            sa.Column("student_id", sa.String(length=64), nullable=False),
            sa.Column("category", sa.String(length=10), nullable=False, comment="result | payment | both"),
            sa.Column("academic_session", sa.String(length=9), nullable=False),
            sa.Column("term", sa.String(length=20), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("student_id", "academic_session", "term", "category",
                                name="uq_notifications_student_period_category"),
        )
        op.create_index("ix_notifications_student_id", "notifications", ["student_id"])
        op.create_index("ix_notifications_period", "notifications", ["academic_session", "term"])


def downgrade():
    for table in ("notifications", "payments", "grades", "workflow_records"):
        op.drop_table(table)
