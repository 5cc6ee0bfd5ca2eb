"""
Record Store — persistence boundary for every service in this package.

Services receive a ``RecordStore`` at construction and never touch
``db.session`` directly, so the same workflow and ledger logic runs against
the SQL database in production and against a process-local fake in tests.

Collections:
    workflow_records   ExpenditureRequest | FinancialReport | ExamOfficerReport
    grades             GradeRecord
    payments           PaymentRecord
    notifications      StudentNotification

Contract (both backends):
    - create() assigns id, created_at, updated_at and column defaults
    - lookups return None / [] for "not found", they never raise
    - list results are newest-first by creation time
    - update() always refreshes updated_at (last write wins)
    - compare_and_set() is the only way to change a workflow status; it
      writes only if the stored status still equals the expected one

Usage:
    from app.services.record_store import SqlRecordStore

    store = SqlRecordStore(db.session)
    rec = store.create("payments", {...})
"""

from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import DuplicateKeyError
from app.models.ledger import GradeRecord, PaymentRecord
from app.models.notification import StudentNotification
from app.models.workflow import WORKFLOW_KINDS, WorkflowRecord

logger = logging.getLogger(__name__)


COLLECTIONS = {
    "workflow_records": WorkflowRecord,
    "grades": GradeRecord,
    "payments": PaymentRecord,
    "notifications": StudentNotification,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def base_model(collection: str):
    """Return the model class backing a collection."""
    model = COLLECTIONS.get(collection)
    if model is None:
        raise ValueError(f"Unknown collection: {collection!r}")
    return model


def model_for(collection: str, payload: dict | None = None):
    """Return the concrete class to instantiate for ``payload``.

    Workflow records pick their subclass from the ``kind`` key.
    """
    model = base_model(collection)
    if model is WorkflowRecord:
        kind = (payload or {}).get("kind")
        model = WORKFLOW_KINDS.get(kind)
        if model is None:
            raise ValueError(f"Unknown workflow kind: {kind!r}")
    return model


def _apply_column_defaults(instance) -> None:
    """Fill unset columns with their scalar defaults.

    The SQL backend gets these at flush time anyway; the in-memory backend
    never flushes, so both call this to hand back identical objects.
    """
    for attr in sa_inspect(type(instance)).column_attrs:
        column = attr.columns[0]
        if getattr(instance, attr.key) is None and column.default is not None and column.default.is_scalar:
            setattr(instance, attr.key, column.default.arg)


class RecordStore(ABC):
    """Abstract create/read/update primitives over the four collections."""

    def _build(self, collection: str, payload: dict):
        model = model_for(collection, payload)
        now = _utcnow()
        values = dict(payload)
        values["id"] = _new_id()
        values["created_at"] = now
        values["updated_at"] = now
        instance = model(**values)
        _apply_column_defaults(instance)
        return instance

    @staticmethod
    def owner_field(collection: str) -> str:
        return base_model(collection).OWNER_FIELD

    @abstractmethod
    def create(self, collection: str, payload: dict):
        """Insert a record and return it."""

    @abstractmethod
    def get_by_id(self, collection: str, record_id: str):
        """Return the record or None."""

    @abstractmethod
    def list_by_owner(self, collection: str, owner_id: str,
                      session: str | None = None, term: str | None = None) -> list:
        """Records whose owner/student key equals ``owner_id``, optionally within a period."""

    @abstractmethod
    def list_by_period(self, collection: str, session: str, term: str) -> list:
        """Records for one (academic_session, term)."""

    @abstractmethod
    def list_all(self, collection: str) -> list:
        """Every record in the collection."""

    @abstractmethod
    def find_one(self, collection: str, field: str, value):
        """First record whose ``field`` equals ``value``, or None."""

    @abstractmethod
    def list_periods(self, collection: str) -> set:
        """Distinct (academic_session, term) pairs present in the collection."""

    @abstractmethod
    def update(self, collection: str, record_id: str, patch: dict):
        """Apply ``patch``; return the record or None if missing."""

    @abstractmethod
    def compare_and_set(self, collection: str, record_id: str,
                        expected_status: str, patch: dict):
        """Apply ``patch`` only if ``status`` still equals ``expected_status``.

        Returns the updated record, or None when the record is missing or
        its status moved on.
        """

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> bool:
        """Remove the record; False if it did not exist."""


# ═════════════════════════════════════════════════════════════════════════════
# SQL backend
# ═════════════════════════════════════════════════════════════════════════════


class SqlRecordStore(RecordStore):
    """SQLAlchemy-backed store. Commits after every mutation."""

    def __init__(self, session):
        self.session = session

    def create(self, collection, payload):
        instance = self._build(collection, payload)
        self.session.add(instance)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            logger.warning("Unique constraint hit on %s insert: %s", collection, exc.orig)
            raise DuplicateKeyError(type(instance).__name__, "unique key") from exc
        return instance

    def get_by_id(self, collection, record_id):
        if not record_id:
            return None
        return self.session.get(base_model(collection), record_id)

    def list_by_owner(self, collection, owner_id, session=None, term=None):
        model = base_model(collection)
        stmt = select_newest_first(model).where(getattr(model, model.OWNER_FIELD) == owner_id)
        if session:
            stmt = stmt.where(model.academic_session == session)
        if term:
            stmt = stmt.where(model.term == term)
        return list(self.session.execute(stmt).scalars().all())

    def list_by_period(self, collection, session, term):
        model = base_model(collection)
        stmt = select_newest_first(model).where(
            model.academic_session == session,
            model.term == term,
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_all(self, collection):
        model = base_model(collection)
        return list(self.session.execute(select_newest_first(model)).scalars().all())

    def find_one(self, collection, field, value):
        model = base_model(collection)
        stmt = sa.select(model).where(getattr(model, field) == value).limit(1)
        return self.session.execute(stmt).scalars().first()

    def list_periods(self, collection):
        model = base_model(collection)
        stmt = sa.select(model.academic_session, model.term).distinct()
        return {(row.academic_session, row.term) for row in self.session.execute(stmt)}

    def update(self, collection, record_id, patch):
        instance = self.get_by_id(collection, record_id)
        if instance is None:
            return None
        for key, value in patch.items():
            setattr(instance, key, value)
        instance.updated_at = _utcnow()
        self.session.commit()
        return instance

    def compare_and_set(self, collection, record_id, expected_status, patch):
        instance = self.get_by_id(collection, record_id)
        if instance is None:
            return None
        model = type(instance)
        values = dict(patch)
        values["updated_at"] = _utcnow()
        result = self.session.execute(
            sa.update(model)
            .where(model.id == record_id, model.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.session.rollback()
            return None
        self.session.commit()
        self.session.expire(instance)
        return instance

    def delete(self, collection, record_id):
        instance = self.get_by_id(collection, record_id)
        if instance is None:
            return False
        self.session.delete(instance)
        self.session.commit()
        return True


def select_newest_first(model):
    return sa.select(model).order_by(model.created_at.desc(), model.id.desc())


# ═════════════════════════════════════════════════════════════════════════════
# In-memory backend
# ═════════════════════════════════════════════════════════════════════════════


class InMemoryRecordStore(RecordStore):
    """Process-local store holding transient model instances.

    Mirrors the SQL unique constraints so both backends reject the same
    duplicates. An instance-level lock makes compare_and_set atomic.
    """

    def __init__(self):
        self._records: dict[str, dict[str, object]] = {name: {} for name in COLLECTIONS}
        self._sequence: dict[str, int] = {}
        self._next_seq = 0
        self._lock = threading.RLock()

    def _newest_first(self, records):
        return sorted(records, key=lambda r: (r.created_at, self._sequence[r.id]), reverse=True)

    def _check_unique(self, collection, instance):
        table = base_model(collection).__table__
        key_sets = [
            tuple(col.name for col in constraint.columns)
            for constraint in table.constraints
            if isinstance(constraint, sa.UniqueConstraint)
        ]
        key_sets += [(col.name,) for col in table.columns if col.unique]
        for keys in key_sets:
            value = tuple(getattr(instance, k, None) for k in keys)
            for existing in self._records[collection].values():
                if tuple(getattr(existing, k, None) for k in keys) == value:
                    raise DuplicateKeyError(type(instance).__name__, "+".join(keys), "/".join(map(str, value)))

    def create(self, collection, payload):
        instance = self._build(collection, payload)
        with self._lock:
            self._check_unique(collection, instance)
            self._records[collection][instance.id] = instance
            self._sequence[instance.id] = self._next_seq
            self._next_seq += 1
        return instance

    def get_by_id(self, collection, record_id):
        base_model(collection)
        return self._records[collection].get(record_id)

    def list_by_owner(self, collection, owner_id, session=None, term=None):
        field = self.owner_field(collection)
        matches = [
            r for r in self._records[collection].values()
            if getattr(r, field) == owner_id
            and (not session or r.academic_session == session)
            and (not term or r.term == term)
        ]
        return self._newest_first(matches)

    def list_by_period(self, collection, session, term):
        base_model(collection)
        matches = [
            r for r in self._records[collection].values()
            if r.academic_session == session and r.term == term
        ]
        return self._newest_first(matches)

    def list_all(self, collection):
        base_model(collection)
        return self._newest_first(self._records[collection].values())

    def find_one(self, collection, field, value):
        base_model(collection)
        return next(
            (r for r in self._records[collection].values() if getattr(r, field) == value),
            None,
        )

    def list_periods(self, collection):
        base_model(collection)
        return {(r.academic_session, r.term) for r in self._records[collection].values()}

    def update(self, collection, record_id, patch):
        with self._lock:
            instance = self.get_by_id(collection, record_id)
            if instance is None:
                return None
            for key, value in patch.items():
                setattr(instance, key, value)
            instance.updated_at = _utcnow()
            return instance

    def compare_and_set(self, collection, record_id, expected_status, patch):
        with self._lock:
            instance = self.get_by_id(collection, record_id)
            if instance is None or instance.status != expected_status:
                return None
            return self.update(collection, record_id, patch)

    def delete(self, collection, record_id):
        base_model(collection)
        with self._lock:
            instance = self._records[collection].pop(record_id, None)
            if instance is None:
                return False
            self._sequence.pop(record_id, None)
            return True
