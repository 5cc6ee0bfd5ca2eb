"""
Shambil School Core
Student notification model.

Models:
    - StudentNotification: "your result / receipt is ready" notice with read tracking

Notifications are derived from the grade and payment ledgers, never written
directly by the teacher or accountant. At most one row may exist per
(student, session, term, category).
"""

from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_CATEGORIES = ("result", "payment", "both")

NOTIFICATION_MESSAGES = {
    "both": "Your {term} results and payment receipt for {session} are ready to download!",
    "result": "Your {term} results for {session} are ready to download!",
    "payment": "Your payment receipt for {term}, {session} is ready to download!",
}


class StudentNotification(db.Model):
    """
    In-app notification for one student.

    One record per (student, session, term, category).
    """

    __tablename__ = "notifications"

    OWNER_FIELD = "student_id"

    id = db.Column(db.String(32), primary_key=True)
    student_id = db.Column(db.String(64), nullable=False, index=True)
    category = db.Column(db.String(10), nullable=False, comment="result | payment | both")
    academic_session = db.Column(db.String(9), nullable=False)
    term = db.Column(db.String(20), nullable=False)
    message = db.Column(db.Text, default="")

    # Read tracking
    read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("student_id", "academic_session", "term", "category",
                            name="uq_notifications_student_period_category"),
        db.Index("ix_notifications_period", "academic_session", "term"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "category": self.category,
            "academic_session": self.academic_session,
            "term": self.term,
            "message": self.message,
            "read": self.read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<StudentNotification {self.id}: {self.category} {self.term} {self.academic_session}>"
