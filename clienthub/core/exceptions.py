"""
Portal-wide error taxonomy and exception hierarchy.

Every public service operation reports failures as one of the ``ErrorKind``
values below (see ``clienthub.core.results.ServiceResult``). Inside the
service layer the exception types are raised and then converted once, at
the service boundary, into a failed result.

Usage:
    from clienthub.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Task", resource_id=42, org_id=7)
    raise ValidationError("title is required", details={"title": "required"})
"""


class ErrorKind:
    """Machine-readable failure kinds shared by services and the HTTP layer."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    MODULE_LOCKED = "MODULE_LOCKED"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFLICT = "CONFLICT"
    DATABASE_ERROR = "DATABASE_ERROR"


class DomainError(Exception):
    """Base class for errors raised inside the service layer.

    Args:
        kind: One of the ``ErrorKind`` constants.
        message: Human-readable explanation.
        details: Optional structured payload (field errors, ids).
    """

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, *, kind: str | None = None, details: dict | None = None) -> None:
        if kind is not None:
            self.kind = kind
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DomainError):
    """Raised when a requested row does not exist within the given organization.

    Used for BOTH genuinely missing records AND cross-tenant access attempts,
    so a caller cannot probe for rows belonging to another organization.
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        resource: str,
        resource_id: int | str | None = None,
        org_id: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.org_id = org_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(DomainError):
    """Raised when input is rejected before any persistence attempt.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    kind = ErrorKind.VALIDATION_ERROR

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message, details=details)


class ConflictError(DomainError):
    """Raised when an operation would duplicate a unique value.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    kind = ErrorKind.CONFLICT

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")

