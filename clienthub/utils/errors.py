"""JSON error bodies for the HTTP layer.

    return api_error(ErrorKind.NOT_FOUND, "Task not found")
    return api_result(task_service.move_task(org_id, task_id, status, position))

Body shape: ``{"error": <message>, "code": <ErrorKind>, "details"?: {...}}``.
"""

from __future__ import annotations

from flask import jsonify

from clienthub.core.exceptions import ErrorKind

HTTP_STATUS: dict[str, int] = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.MODULE_LOCKED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.DATABASE_ERROR: 500,
}


def status_for(kind: str) -> int:
    """HTTP status for an error kind; unknown kinds are client errors."""
    return HTTP_STATUS.get(kind, 400)


def api_error(kind: str, message: str, *, status: int | None = None, details: dict | None = None):
    body = {"error": message, "code": kind}
    if details:
        body["details"] = details
    return jsonify(body), status or status_for(kind)


def api_result(result, *, status: int = 200):
    """A ``ServiceResult`` as a response: its data, or the mapped error."""
    if not result.ok:
        return api_error(result.kind, result.message, details=result.details)
    return jsonify(result.data), status
