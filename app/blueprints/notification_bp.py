"""
Shambil School Core
Student Notification Blueprint.

Provides:
    POST /api/v1/students/<id>/notifications/refresh    derive missing notices
    GET  /api/v1/students/<id>/notifications            ?unread_only=true
    POST /api/v1/notifications/<id>/read                mark one read
    POST /api/v1/students/<id>/notifications/read-all   mark all read
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from app.services.registry import get_services
from app.utils.errors import E, api_error, register_service_error_handlers

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification", __name__, url_prefix="/api/v1")
register_service_error_handlers(notification_bp)


def _listing(deriver, student_id, notifications):
    return {
        "items": [n.to_dict() for n in notifications],
        "total": len(notifications),
        "unread_count": deriver.unread_count(student_id),
    }


@notification_bp.route("/students/<student_id>/notifications/refresh", methods=["POST"])
def refresh_notifications(student_id):
    """Create any missing notices from the ledgers and return the full list."""
    deriver = get_services().notifications
    notifications = deriver.refresh(student_id)
    return jsonify(_listing(deriver, student_id, notifications)), 200


@notification_bp.route("/students/<student_id>/notifications", methods=["GET"])
def list_notifications(student_id):
    deriver = get_services().notifications
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    notifications = deriver.list_for_student(student_id, unread_only=unread_only)
    return jsonify(_listing(deriver, student_id, notifications)), 200


@notification_bp.route("/notifications/<notification_id>/read", methods=["POST"])
def mark_read(notification_id):
    notif = get_services().notifications.mark_read(notification_id)
    if notif is None:
        return api_error(E.NOT_FOUND, f"Notification {notification_id} not found")
    return jsonify(notif.to_dict()), 200


@notification_bp.route("/students/<student_id>/notifications/read-all", methods=["POST"])
def mark_all_read(student_id):
    count = get_services().notifications.mark_all_read(student_id)
    return jsonify({"marked_read": count}), 200
