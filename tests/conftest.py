"""
Shared pytest fixtures for the Shambil School Core test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - store: RecordStore, parametrised over the SQL and in-memory backends
    - services: workflow / ledger / notification / identity services over ``store``
    - expenditure, grade_payload, payment_payload: payload factories
"""

import pytest

from app import create_app
from app.models import db as _db
from app.services.record_store import InMemoryRecordStore, SqlRecordStore
from app.services.registry import build_services

SESSION = "2024/2025"
TERM = "First Term"


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Service fixtures ─────────────────────────────────────────────────────


@pytest.fixture(params=["sql", "memory"])
def store(request):
    """Record store; every test using it runs once per backend."""
    if request.param == "sql":
        return SqlRecordStore(_db.session)
    return InMemoryRecordStore()


@pytest.fixture()
def services(store):
    return build_services(store, session_window=3, current_session=SESSION)


@pytest.fixture()
def engine(services):
    return services.workflow


@pytest.fixture()
def ledger(services):
    return services.ledger


# ── Payload factories ────────────────────────────────────────────────────


@pytest.fixture()
def expenditure():
    """Factory for a valid ExpenditureRequest payload."""

    def _make(**overrides):
        payload = {
            "owner_id": "acct-1",
            "owner_name": "Amaka Accountant",
            "academic_session": SESSION,
            "term": TERM,
            "title": "Laboratory equipment",
            "description": "Microscopes for the biology lab",
            "amount": 450000,
            "category": "equipment",
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture()
def grade_payload():
    """Factory for a valid grade payload."""

    def _make(**overrides):
        payload = {
            "student_id": "stu-1",
            "student_name": "David Smith",
            "admission_number": "SPA/2023/001",
            "subject_id": "math",
            "subject_name": "Mathematics",
            "academic_session": SESSION,
            "term": TERM,
            "first_ca": 15,
            "second_ca": 18,
            "exam": 52,
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture()
def payment_payload():
    """Factory for a valid payment payload."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        payload = {
            "student_id": "stu-1",
            "student_name": "David Smith",
            "admission_number": "SPA/2023/001",
            "receipt_number": f"SPA/2024/{counter['n']:04d}",
            "amount": 1000000,
            "payment_method": "Bank Transfer",
            "description": "School Fees Payment - First Term",
            "academic_session": SESSION,
            "term": TERM,
        }
        payload.update(overrides)
        return payload

    return _make
