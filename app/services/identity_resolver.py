"""
Identity Resolver — find a student's ledger rows when the key is unreliable.

Grades and payments store the student key as typed by the teacher or the
accountant: sometimes the account id, sometimes the admission number, and on
older rows only the student's name. Lookups therefore go down a fixed chain
and stop at the first tier that returns anything:

    1. raw id          rows whose student_id is the account id
    2. admission no.   rows keyed by, or tagged with, the admission number
    3. full name       rows in the period whose student_name matches exactly
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

TIERS = ("raw_id", "admission_number", "full_name")


class IdentityResolver:
    """Fallback lookups over the LedgerAggregator's grade and payment ledgers."""

    def __init__(self, ledger):
        self.ledger = ledger

    def resolve_grades(self, raw_id, admission_number, full_name, session, term) -> list:
        return self._resolve(
            "grades", self.ledger.grades_for_student, self.ledger.grades_for_period,
            raw_id, admission_number, full_name, session, term,
        )

    def resolve_payments(self, raw_id, admission_number, full_name, session, term) -> list:
        return self._resolve(
            "payments", self.ledger.payments_for_student, self.ledger.payments_for_period,
            raw_id, admission_number, full_name, session, term,
        )

    def _resolve(self, ledger_name, for_student, for_period,
                 raw_id, admission_number, full_name, session, term) -> list:
        matched_tier = None
        rows: list = []

        if raw_id:
            rows = for_student(raw_id, session, term)
            matched_tier = "raw_id" if rows else None

        if not rows and admission_number:
            rows = for_student(admission_number, session, term)
            if not rows and session and term:
                rows = [r for r in for_period(session, term) if r.admission_number == admission_number]
            matched_tier = "admission_number" if rows else None

        if not rows and full_name and session and term:
            name = full_name.strip()
            rows = [r for r in for_period(session, term) if (r.student_name or "").strip() == name]
            matched_tier = "full_name" if rows else None

        logger.info(
            "Resolved %s via %s", ledger_name, matched_tier or "no tier",
            extra={"student_id": raw_id, "tier": matched_tier, "matches": len(rows)},
        )
        return rows
