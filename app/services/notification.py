"""
Shambil School Core
Notification Deriver.

Turns the grade and payment ledgers into "ready to download" notices for a
student. Derivation runs on demand (``refresh``); nothing is scheduled.

For each of the most recent ``session_window`` sessions × the three terms:
    grades and payments  → "both"
    grades only          → "result"
    payments only        → "payment"
    neither              → nothing

A notice is created only if none exists yet for the same
(student, session, term, category). Existing notices are never deleted,
downgraded or merged, so a later "both" may sit next to an earlier "result".
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.core.exceptions import DuplicateKeyError
from app.models.ledger import TERMS
from app.models.notification import NOTIFICATION_MESSAGES
from app.services.academic_calendar import DEFAULT_START_MONTH, recent_sessions
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

COLLECTION = "notifications"


def category_for(has_grades: bool, has_payments: bool) -> str | None:
    """Notification category for what the ledgers hold in one period."""
    if has_grades and has_payments:
        return "both"
    if has_grades:
        return "result"
    if has_payments:
        return "payment"
    return None


class NotificationDeriver:
    """Creates, lists and marks student notifications."""

    def __init__(self, store: RecordStore, ledger, *, session_window: int = 3,
                 current_session: str | None = None,
                 start_month: int = DEFAULT_START_MONTH):
        """
        Args:
            store: Persistence backend.
            ledger: LedgerAggregator the notices are derived from.
            session_window: How many sessions, ending at the current one, to scan.
            current_session: Pin the current session (e.g. "2024/2025");
                computed from today's date when None.
            start_month: Month a session starts in when computing from the date.
        """
        self.store = store
        self.ledger = ledger
        self.session_window = session_window
        self.current_session = current_session
        self.start_month = start_month

    # ── Derive ────────────────────────────────────────────────────────────

    def refresh(self, student_id: str) -> list:
        """
        Create any missing notifications for ``student_id``.

        Safe to call repeatedly: a second call with unchanged ledgers creates
        nothing.

        Returns:
            All of the student's notifications, newest first.
        """
        if not student_id:
            return []

        sessions = recent_sessions(
            self.session_window, self.current_session, start_month=self.start_month,
        )
        existing = {
            (n.academic_session, n.term, n.category)
            for n in self.store.list_by_owner(COLLECTION, student_id)
        }

        created = 0
        for session in sessions:
            for term in TERMS:
                category = category_for(
                    bool(self.ledger.grades_for_student(student_id, session, term)),
                    bool(self.ledger.payments_for_student(student_id, session, term)),
                )
                if category is None or (session, term, category) in existing:
                    continue
                try:
                    self.store.create(COLLECTION, {
                        "student_id": student_id,
                        "category": category,
                        "academic_session": session,
                        "term": term,
                        "message": NOTIFICATION_MESSAGES[category].format(term=term, session=session),
                    })
                except DuplicateKeyError:
                    # Another refresh for the same student got there first
                    continue
                existing.add((session, term, category))
                created += 1

        if created:
            logger.info(
                "Derived %d notification(s)", created,
                extra={"student_id": student_id, "sessions": sessions},
            )
        return self.list_for_student(student_id)

    # ── Query ─────────────────────────────────────────────────────────────

    def list_for_student(self, student_id: str, unread_only: bool = False) -> list:
        """Student's notifications, newest first."""
        notifications = self.store.list_by_owner(COLLECTION, student_id)
        if unread_only:
            notifications = [n for n in notifications if not n.read]
        return notifications

    def unread_count(self, student_id: str) -> int:
        return len(self.list_for_student(student_id, unread_only=True))

    # ── Actions ───────────────────────────────────────────────────────────

    def mark_read(self, notification_id: str):
        """Mark a single notification as read. Returns None if it does not exist."""
        notif = self.store.get_by_id(COLLECTION, notification_id)
        if notif is None or notif.read:
            return notif
        return self.store.update(COLLECTION, notif.id, {
            "read": True,
            "read_at": datetime.now(timezone.utc),
        })

    def mark_all_read(self, student_id: str) -> int:
        """Mark every unread notification of the student as read; returns how many changed."""
        unread = self.list_for_student(student_id, unread_only=True)
        for notif in unread:
            self.mark_read(notif.id)
        return len(unread)
