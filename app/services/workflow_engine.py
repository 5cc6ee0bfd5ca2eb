"""
Workflow Engine — lifecycle service for ExpenditureRequest, FinancialReport
and ExamOfficerReport.

One state machine serves all three kinds. What differs per kind (supported
actions, payload columns, mandatory fields, author / reviewer roles) is read
from the model class, see ``app/models/workflow.py``.

Transitions (WORKFLOW_TRANSITIONS):
    submit    draft      → submitted
    approve   submitted  → approved
    reject    submitted  → rejected     (comment mandatory)
    complete  approved   → completed    (ExpenditureRequest only)

Editing is allowed while the record is draft or rejected. Editing a rejected
record puts it back to draft and clears the previous review so it can be
submitted again.

Every status change is a single ``compare_and_set`` on the store: of two
concurrent approve/reject calls on the same submitted record exactly one wins,
the other gets IllegalTransitionError.

Usage:
    from app.services.workflow_engine import WorkflowEngine

    engine = WorkflowEngine(store)
    req = engine.create("expenditure_request", {...})
    engine.submit(req.id)
    engine.approve(req.id, "admin-1", "Administrator")
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from app.core.exceptions import (
    IllegalTransitionError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from app.models.ledger import TERMS
from app.models.workflow import (
    EDITABLE_STATUSES,
    EXPENDITURE_CATEGORIES,
    EXPENDITURE_PRIORITIES,
    IMMUTABLE_FIELDS,
    WORKFLOW_KINDS,
    WORKFLOW_STATUSES,
    WORKFLOW_TRANSITIONS,
    FinancialReport,
)
from app.services.academic_calendar import parse_session
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

COLLECTION = "workflow_records"

# Set at creation, never part of a payload patch
_META_FIELDS = ("owner_id", "owner_name", "academic_session", "term")

# Written only by transitions
_TRANSITION_FIELDS = frozenset({
    "status", "reviewer_id", "reviewer_name", "reviewed_at", "review_comment",
    "submitted_at", "completed_at", "updated_at",
})

_CLEARED_ON_REEDIT = {
    "reviewer_id": None,
    "reviewer_name": None,
    "reviewed_at": None,
    "review_comment": None,
    "submitted_at": None,
}

_INTEGER_FIELDS = frozenset({
    "amount", "total_revenue", "total_expenditures", "net_balance",
    "payment_count", "expenditure_count",
})

# May legitimately be negative (deficit term)
_SIGNED_FIELDS = frozenset({"net_balance"})

_MAX_TITLE_LENGTH = 300


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(value: datetime | None) -> datetime:
    """Comparable timestamp; SQLite returns them without tzinfo."""
    if value is None:
        return datetime.min
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value



def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_transition(record, action: str) -> dict:
    """
    Validate whether an action is valid for the record's current state.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = WORKFLOW_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": record.status, "to": None,
                "reason": f"Unknown action: {action}"}

    if action not in type(record).ACTIONS:
        return {"valid": False, "from": record.status, "to": rule["to"],
                "reason": f"'{action}' is not supported for {record.kind}"}

    if record.status not in rule["from"]:
        return {"valid": False, "from": record.status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{record.status}'"}

    return {"valid": True, "from": record.status, "to": rule["to"], "reason": None}


def available_actions(record) -> list[str]:
    """Actions (including ``edit``/``delete``) the record currently permits."""
    actions = [a for a in WORKFLOW_TRANSITIONS if validate_transition(record, a)["valid"]]
    if record.status in EDITABLE_STATUSES:
        actions += ["edit", "delete"]
    return actions


class WorkflowEngine:
    """Generic approval state machine over the ``workflow_records`` collection."""

    def __init__(self, store: RecordStore, *,
                 snapshot_provider: Callable[[str, str], dict] | None = None):
        """
        Args:
            store: Persistence backend.
            snapshot_provider: ``(session, term) -> dict`` used to fill the
                financial snapshot of a FinancialReport created without one.
        """
        self.store = store
        self.snapshot_provider = snapshot_provider

    # ── Queries ──────────────────────────────────────────────────────────

    def get(self, record_id: str):
        """Return the record or None."""
        return self.store.get_by_id(COLLECTION, record_id)

    def list_by_owner(self, owner_id: str, kind: str | None = None) -> list:
        records = self.store.list_by_owner(COLLECTION, owner_id)
        return [r for r in records if kind is None or r.kind == kind]

    def list_by_period(self, session: str, term: str, kind: str | None = None,
                       status: str | None = None) -> list:
        records = self.store.list_by_period(COLLECTION, session, term)
        return [
            r for r in records
            if (kind is None or r.kind == kind) and (status is None or r.status == status)
        ]

    def list_records(self, kind: str | None = None, status: str | None = None) -> list:
        records = self.store.list_all(COLLECTION)
        return [
            r for r in records
            if (kind is None or r.kind == kind) and (status is None or r.status == status)
        ]

    def list_pending(self, kind: str | None = None) -> list:
        """Records waiting for a reviewer, most recently submitted first."""
        records = self.list_records(kind=kind, status="submitted")
        return sorted(records, key=lambda r: _naive_utc(r.submitted_at), reverse=True)

    def statistics(self, kind: str) -> dict:
        """Per-status counts for one kind, plus amount totals for expenditure requests."""
        model = self._model(kind)
        records = self.list_records(kind=kind)
        stats = {"total": len(records)}
        for status in WORKFLOW_STATUSES:
            stats[status] = sum(1 for r in records if r.status == status)
        if "amount" in model.PAYLOAD_FIELDS:
            stats["total_amount"] = sum(r.amount or 0 for r in records)
            stats["approved_amount"] = sum(r.amount or 0 for r in records if r.status == "approved")
            stats["completed_amount"] = sum(r.amount or 0 for r in records if r.status == "completed")
        return stats

    # ── Create / edit / delete ───────────────────────────────────────────

    def create(self, kind: str, payload: dict, *, actor_role: str | None = None):
        """
        Create a draft record of ``kind``.

        Args:
            kind: expenditure_request | financial_report | exam_officer_report
            payload: owner_id, owner_name, academic_session, term and the
                kind's payload columns.
            actor_role: Caller's role; None for trusted internal callers.

        Raises:
            ValidationError, PermissionDenied
        """
        model = self._model(kind)
        data = dict(payload or {})

        if actor_role is not None and actor_role not in model.AUTHOR_ROLES:
            raise PermissionDenied(data.get("owner_id"), f"create {kind}", actor_role)

        errors: dict[str, str] = {}
        allowed = set(model.PAYLOAD_FIELDS) | set(_META_FIELDS)
        for field in sorted(set(data) - allowed):
            errors[field] = "unknown field"
        for field in ("owner_id", "academic_session", "term"):
            if _is_blank(data.get(field)):
                errors[field] = "required"
        if not errors.get("academic_session") and parse_session(data["academic_session"]) is None:
            errors["academic_session"] = "must look like 2024/2025"
        if not errors.get("term") and data["term"] not in TERMS:
            errors["term"] = f"must be one of: {', '.join(TERMS)}"
        for field in model.REQUIRED_FIELDS:
            if _is_blank(data.get(field)):
                errors[field] = "required"
        errors.update(self._validate_values(model, data, errors))
        if errors:
            raise ValidationError(f"Invalid {kind} payload", details=errors)

        if model is FinancialReport and self.snapshot_provider is not None:
            if all(data.get(f) is None for f in FinancialReport.SNAPSHOT_FIELDS):
                data.update(self.snapshot_provider(data["academic_session"], data["term"]))

        data.setdefault("owner_name", "")
        record = self.store.create(COLLECTION, {"kind": kind, "status": "draft", **data})
        logger.info(
            "Workflow record created",
            extra={"record_id": record.id, "kind": kind, "owner_id": record.owner_id},
        )
        return record

    def edit(self, record_id: str, patch: dict, *, actor_id: str | None = None):
        """
        Change payload fields of a draft or rejected record.

        A rejected record goes back to draft and loses its previous review.

        Raises:
            NotFoundError, PermissionDenied, ValidationError, IllegalTransitionError
        """
        record = self._require(record_id)
        model = type(record)
        if actor_id is not None and actor_id != record.owner_id:
            raise PermissionDenied(actor_id, "edit")
        if record.status not in EDITABLE_STATUSES:
            raise ValidationError(
                f"{model.__name__} {record.id} cannot be edited while {record.status}",
                details={"status": record.status},
            )

        changes = dict(patch or {})
        errors: dict[str, str] = {}
        for field in sorted(changes):
            if field in IMMUTABLE_FIELDS or field in _TRANSITION_FIELDS:
                errors[field] = "read-only"
            elif field not in model.PAYLOAD_FIELDS:
                errors[field] = "unknown field"
        for field in model.REQUIRED_FIELDS:
            if field in changes and _is_blank(changes[field]):
                errors[field] = "required"
        errors.update(self._validate_values(model, changes, errors))
        if errors:
            raise ValidationError(f"Invalid patch for {model.__name__} {record.id}", details=errors)
        if not changes:
            return record

        previous = record.status
        if previous == "rejected":
            changes.update(status="draft", **_CLEARED_ON_REEDIT)

        updated = self.store.compare_and_set(COLLECTION, record.id, previous, changes)
        if updated is None:
            raise self._lost_race(record.id, "edit")
        logger.info(
            "Workflow record edited",
            extra={"record_id": record.id, "kind": record.kind, "fields": sorted(patch or {})},
        )
        return updated

    def delete(self, record_id: str, *, actor_id: str | None = None) -> bool:
        """
        Delete a draft or rejected record. Returns False if it does not exist.

        Raises:
            PermissionDenied, ValidationError
        """
        record = self.get(record_id)
        if record is None:
            return False
        if actor_id is not None and actor_id != record.owner_id:
            raise PermissionDenied(actor_id, "delete")
        if record.status not in EDITABLE_STATUSES:
            raise ValidationError(
                f"{type(record).__name__} {record.id} cannot be deleted while {record.status}",
                details={"status": record.status},
            )
        deleted = self.store.delete(COLLECTION, record.id)
        if deleted:
            logger.info("Workflow record deleted", extra={"record_id": record_id, "kind": record.kind})
        return deleted

    # ── Transitions ──────────────────────────────────────────────────────

    def submit(self, record_id: str, *, actor_id: str | None = None):
        """draft → submitted. Only the owner may submit when ``actor_id`` is given."""
        record = self._require(record_id)
        if actor_id is not None and actor_id != record.owner_id:
            raise PermissionDenied(actor_id, "submit")
        return self._apply(record, "submit", {"submitted_at": _utcnow()})

    def approve(self, record_id: str, reviewer_id: str, reviewer_name: str,
                comment: str | None = None, *, actor_role: str | None = None):
        """submitted → approved, stamping the reviewer."""
        record = self._require(record_id)
        self._check_reviewer(record, "approve", reviewer_id, actor_role)
        return self._apply(record, "approve", {
            "reviewer_id": reviewer_id,
            "reviewer_name": reviewer_name,
            "reviewed_at": _utcnow(),
            "review_comment": (comment or "").strip() or None,
        }, reviewer_id=reviewer_id)

    def reject(self, record_id: str, reviewer_id: str, reviewer_name: str,
               comment: str, *, actor_role: str | None = None):
        """submitted → rejected. A non-empty ``comment`` is mandatory."""
        record = self._require(record_id)
        self._check_reviewer(record, "reject", reviewer_id, actor_role)
        return self._apply(record, "reject", {
            "reviewer_id": reviewer_id,
            "reviewer_name": reviewer_name,
            "reviewed_at": _utcnow(),
            "review_comment": (comment or "").strip(),
        }, reviewer_id=reviewer_id, require_comment=True)

    def complete(self, record_id: str, *, actor_id: str | None = None,
                 actor_role: str | None = None):
        """approved → completed (ExpenditureRequest only)."""
        record = self._require(record_id)
        self._check_reviewer(record, "complete", actor_id, actor_role)
        return self._apply(record, "complete", {"completed_at": _utcnow()})

    # ── Internals ────────────────────────────────────────────────────────

    @staticmethod
    def _model(kind: str):
        model = WORKFLOW_KINDS.get(kind)
        if model is None:
            raise ValidationError(
                f"Unknown workflow kind: {kind}",
                details={"kind": f"must be one of: {', '.join(sorted(WORKFLOW_KINDS))}"},
            )
        return model

    def _require(self, record_id: str):
        record = self.get(record_id)
        if record is None:
            raise NotFoundError(resource="WorkflowRecord", resource_id=record_id)
        return record

    @staticmethod
    def _check_reviewer(record, action: str, actor_id: str | None, actor_role: str | None) -> None:
        if actor_role is not None and actor_role not in type(record).REVIEWER_ROLES:
            raise PermissionDenied(actor_id, action, actor_role)

    def _apply(self, record, action: str, patch: dict, *,
               reviewer_id: str | None = None, require_comment: bool = False):
        validation = validate_transition(record, action)
        if not validation["valid"]:
            raise IllegalTransitionError(record.id, action, record.status, validation["reason"])

        if reviewer_id is not None and _is_blank(reviewer_id):
            raise ValidationError("reviewer_id is required", details={"reviewer_id": "required"})
        if require_comment and _is_blank(patch.get("review_comment")):
            raise ValidationError("A comment is required to reject a record",
                                  details={"comment": "required"})

        previous = record.status
        updated = self.store.compare_and_set(
            COLLECTION, record.id, previous, {"status": validation["to"], **patch},
        )
        if updated is None:
            raise self._lost_race(record.id, action)

        logger.info(
            "Workflow transition %s: %s → %s", action, previous, validation["to"],
            extra={"record_id": record.id, "kind": record.kind, "action": action},
        )
        return updated

    def _lost_race(self, record_id: str, action: str) -> IllegalTransitionError:
        current = self.get(record_id)
        return IllegalTransitionError(
            record_id, action, current.status if current else "deleted",
            "status changed concurrently",
        )

    @staticmethod
    def _validate_values(model, data: dict, existing_errors: dict) -> dict:
        errors = {}
        for field in _INTEGER_FIELDS & set(model.PAYLOAD_FIELDS):
            if field in existing_errors or data.get(field) is None:
                continue
            value = data[field]
            if isinstance(value, bool) or not isinstance(value, int):
                errors[field] = "must be an integer"
            elif value < 0 and field not in _SIGNED_FIELDS:
                errors[field] = "must not be negative"
        if "category" in model.PAYLOAD_FIELDS and data.get("category") is not None \
                and "category" not in existing_errors \
                and data["category"] not in EXPENDITURE_CATEGORIES:
            errors["category"] = f"must be one of: {', '.join(EXPENDITURE_CATEGORIES)}"
        if "priority" in model.PAYLOAD_FIELDS and data.get("priority") is not None \
                and data["priority"] not in EXPENDITURE_PRIORITIES:
            errors["priority"] = f"must be one of: {', '.join(EXPENDITURE_PRIORITIES)}"
        title = data.get("title")
        if isinstance(title, str) and len(title) > _MAX_TITLE_LENGTH:
            errors["title"] = f"must be at most {_MAX_TITLE_LENGTH} characters"
        return errors
