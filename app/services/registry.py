"""
Service registry — one set of services per Flask app.

``init_services(app)`` builds the record store chosen by
``RECORD_STORE_BACKEND`` and the four services on top of it, and parks them
in ``app.extensions``. Blueprints and CLI commands fetch them with
``get_services()`` inside an app context.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app

from app.models import db
from app.services.identity_resolver import IdentityResolver
from app.services.ledger_aggregator import LedgerAggregator
from app.services.notification import NotificationDeriver
from app.services.record_store import InMemoryRecordStore, RecordStore, SqlRecordStore
from app.services.workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)

EXTENSION_KEY = "school_services"


@dataclass
class Services:
    store: RecordStore
    workflow: WorkflowEngine
    ledger: LedgerAggregator
    notifications: NotificationDeriver
    identity: IdentityResolver


def build_services(store: RecordStore, *, session_window: int = 3,
                   current_session: str | None = None, start_month: int = 9) -> Services:
    """Wire the services over ``store``; usable without a Flask app."""
    ledger = LedgerAggregator(store)
    return Services(
        store=store,
        workflow=WorkflowEngine(store, snapshot_provider=ledger.report_snapshot),
        ledger=ledger,
        notifications=NotificationDeriver(
            store, ledger,
            session_window=session_window,
            current_session=current_session,
            start_month=start_month,
        ),
        identity=IdentityResolver(ledger),
    )


def _make_store(backend: str) -> RecordStore:
    if backend == "sql":
        return SqlRecordStore(db.session)
    if backend == "memory":
        return InMemoryRecordStore()
    raise RuntimeError(f"Unknown RECORD_STORE_BACKEND: {backend!r} (expected 'sql' or 'memory')")


def init_services(app) -> Services:
    backend = app.config.get("RECORD_STORE_BACKEND", "sql")
    services = build_services(
        _make_store(backend),
        session_window=app.config.get("NOTIFICATION_SESSION_WINDOW", 3),
        current_session=app.config.get("CURRENT_ACADEMIC_SESSION"),
        start_month=app.config.get("ACADEMIC_SESSION_START_MONTH", 9),
    )
    app.extensions[EXTENSION_KEY] = services
    logger.info("Services initialised with %s record store", backend)
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
