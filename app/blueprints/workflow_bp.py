"""
Approval Workflow Blueprint.

HTTP surface of the workflow engine for expenditure requests, financial
reports and exam officer reports.

Endpoints:
    POST   /api/v1/workflow/<kind>                    create (draft)
    GET    /api/v1/workflow/<kind>                    list; filters owner_id,
                                                      session+term, status
    GET    /api/v1/workflow/<kind>/stats              per-status counts
    GET    /api/v1/workflow/records/<id>              one record + actions
    PATCH  /api/v1/workflow/records/<id>              edit payload
    DELETE /api/v1/workflow/records/<id>              delete draft/rejected
    POST   /api/v1/workflow/records/<id>/<action>     submit|approve|reject|complete
           Body (approve/reject): { "comment": "..." }

Caller identity comes from the actor context middleware (g.user_id,
g.user_name, g.user_role). Writes without an id and role get 401. Owner and
reviewer stamps always come from the caller; role and ownership guards live
in the engine.

Layer contract:
    - Blueprint: parse input, call service, return JSON.
    - Service exceptions are mapped to HTTP by register_service_error_handlers.
"""

import logging

from flask import Blueprint, g, jsonify, request

from app.blueprints import paginate_list
from app.models.workflow import WORKFLOW_KINDS, WORKFLOW_STATUSES, WORKFLOW_TRANSITIONS
from app.services.registry import get_services
from app.services.workflow_engine import available_actions
from app.utils.errors import E, api_error, register_service_error_handlers

logger = logging.getLogger(__name__)

workflow_bp = Blueprint("workflow", __name__, url_prefix="/api/v1/workflow")
register_service_error_handlers(workflow_bp)

_WRITE_METHODS = frozenset({"POST", "PATCH", "DELETE"})


@workflow_bp.before_request
def _require_actor():
    """Writes need a caller id and role; the engine only skips checks for in-process callers."""
    if request.method not in _WRITE_METHODS:
        return None
    if not g.get("user_id") or not g.get("user_role"):
        logger.warning(
            "Anonymous workflow write refused: %s %s", request.method, request.path,
            extra={"user_id": g.get("user_id"), "user_role": g.get("user_role")},
        )
        return api_error(E.UNAUTHORIZED, "X-User-Id and X-User-Role headers are required")
    return None


def _serialize(record):
    data = record.to_dict()
    data["available_actions"] = available_actions(record)
    return data


def _unknown_kind(kind):
    return api_error(
        E.NOT_FOUND, f"Unknown workflow kind '{kind}'",
        details={"valid_kinds": sorted(WORKFLOW_KINDS)},
    )


# ── Collection routes ─────────────────────────────────────────────────────────


@workflow_bp.route("/<kind>", methods=["POST"])
def create_record(kind):
    if kind not in WORKFLOW_KINDS:
        return _unknown_kind(kind)

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body is required")

    # The caller owns what they raise
    data["owner_id"] = g.user_id
    data["owner_name"] = g.get("user_name") or ""

    record = get_services().workflow.create(kind, data, actor_role=g.get("user_role"))
    return jsonify(_serialize(record)), 201


@workflow_bp.route("/<kind>", methods=["GET"])
def list_records(kind):
    if kind not in WORKFLOW_KINDS:
        return _unknown_kind(kind)

    engine = get_services().workflow
    owner_id = request.args.get("owner_id")
    session = request.args.get("session")
    term = request.args.get("term")
    status = request.args.get("status")

    if status and status not in WORKFLOW_STATUSES:
        return api_error(
            E.VALIDATION_INVALID, f"Invalid status '{status}'",
            details={"valid_statuses": list(WORKFLOW_STATUSES)},
        )
    if bool(session) != bool(term):
        return api_error(E.VALIDATION_REQUIRED, "session and term must be given together")

    if session:
        records = engine.list_by_period(session, term, kind=kind, status=status)
    else:
        records = engine.list_records(kind=kind, status=status)
    if owner_id:
        records = [r for r in records if r.owner_id == owner_id]

    page, total = paginate_list(records)
    return jsonify({"items": [_serialize(r) for r in page], "total": total}), 200


@workflow_bp.route("/<kind>/stats", methods=["GET"])
def record_stats(kind):
    if kind not in WORKFLOW_KINDS:
        return _unknown_kind(kind)
    return jsonify(get_services().workflow.statistics(kind)), 200


# ── Single record routes ──────────────────────────────────────────────────────


@workflow_bp.route("/records/<record_id>", methods=["GET"])
def get_record(record_id):
    record = get_services().workflow.get(record_id)
    if record is None:
        return api_error(E.NOT_FOUND, f"Workflow record {record_id} not found")
    return jsonify(_serialize(record)), 200


@workflow_bp.route("/records/<record_id>", methods=["PATCH"])
def edit_record(record_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_INVALID, "JSON object body is required")

    record = get_services().workflow.edit(record_id, data, actor_id=g.get("user_id"))
    return jsonify(_serialize(record)), 200


@workflow_bp.route("/records/<record_id>", methods=["DELETE"])
def delete_record(record_id):
    deleted = get_services().workflow.delete(record_id, actor_id=g.get("user_id"))
    if not deleted:
        return api_error(E.NOT_FOUND, f"Workflow record {record_id} not found")
    return "", 204


@workflow_bp.route("/records/<record_id>/<action>", methods=["POST"])
def transition_record(record_id, action):
    """Apply a workflow action. Returns 409 when the current status forbids it."""
    if action not in WORKFLOW_TRANSITIONS:
        return api_error(
            E.VALIDATION_INVALID, f"Unknown action '{action}'",
            details={"valid_actions": list(WORKFLOW_TRANSITIONS)},
        )

    engine = get_services().workflow
    data = request.get_json(silent=True) or {}
    user_id = g.get("user_id")
    user_role = g.get("user_role")

    if action == "submit":
        record = engine.submit(record_id, actor_id=user_id)
    elif action == "complete":
        record = engine.complete(record_id, actor_id=user_id, actor_role=user_role)
    else:
        # The review is stamped with the caller, never with body fields
        reviewer_name = g.get("user_name") or ""
        if action == "approve":
            record = engine.approve(record_id, user_id, reviewer_name,
                                    data.get("comment"), actor_role=user_role)
        else:
            record = engine.reject(record_id, user_id, reviewer_name,
                                   data.get("comment"), actor_role=user_role)

    return jsonify(_serialize(record)), 200
