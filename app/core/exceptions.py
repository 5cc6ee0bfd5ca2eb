"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and map each to a consistent HTTP status.

Lookups never raise: ``get``/``list`` style calls return ``None`` or an empty
list and the caller branches on absence. ``NotFoundError`` is reserved for
mutating calls that address a specific record.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="ExpenditureRequest", resource_id="ab12")
    raise ValidationError("comment is required", details={"comment": "required"})
"""


class NotFoundError(Exception):
    """Raised when a mutating call targets a record that does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable record name (e.g. "WorkflowRecord", "Notification").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Examples: rejecting without a comment, editing a submitted record,
    a score outside its allowed range.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class IllegalTransitionError(Exception):
    """Raised when a workflow action is attempted from a status that forbids it.

    The record is left untouched. Maps to HTTP 409.
    """

    def __init__(self, record_id: str, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' record {record_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.record_id = record_id
        self.action = action
        self.current_status = current
        self.reason = reason


class DuplicateKeyError(Exception):
    """Raised when an insert would duplicate a unique business key.

    Maps to HTTP 409.

    Args:
        resource: Record name.
        field: The unique field (or field tuple label) that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class PermissionDenied(Exception):
    """Raised when the caller's role or identity may not perform an action.

    Maps to HTTP 403.
    """

    def __init__(self, user_id: str | None, action: str, role: str | None = None):
        role_msg = f" (role={role})" if role else ""
        super().__init__(f"User {user_id} may not '{action}'{role_msg}")
        self.user_id = user_id
        self.action = action
        self.role = role
