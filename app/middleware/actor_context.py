"""
Actor Context Middleware — who is calling.

Authentication happens upstream (gateway / SPA session). The caller's
identity arrives in request headers and is copied onto ``flask.g`` for the
blueprints:

    X-User-Id     → g.user_id
    X-User-Name   → g.user_name
    X-User-Role   → g.user_role   (admin | accountant | exam_officer | ...)

A request without these headers is anonymous: reads are served, workflow
writes are refused by the workflow blueprint. Only in-process callers reach
the services with a ``None`` role, which skips role and ownership checks.
"""

import logging

from flask import g, request

logger = logging.getLogger(__name__)

KNOWN_ROLES = frozenset({
    "admin", "accountant", "exam_officer", "teacher", "student", "parent",
})


def _header(name):
    value = (request.headers.get(name) or "").strip()
    return value or None


def init_actor_context(app):
    """Register the actor context middleware as a before_request hook."""

    @app.before_request
    def _actor_context():
        g.user_id = _header("X-User-Id")
        g.user_name = _header("X-User-Name") or ""
        role = _header("X-User-Role")
        g.user_role = role.lower() if role else None

        if g.user_role and g.user_role not in KNOWN_ROLES:
            logger.warning("Unknown role header %r", role, extra={"user_id": g.user_id})
        return None

    logger.info("Actor context middleware installed")
