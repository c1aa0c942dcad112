"""Discriminated result value returned by every public service operation.

Always check ``.ok`` before accessing ``.data``. A failed result carries a
``kind`` (see ``clienthub.core.exceptions.ErrorKind``) and a message. Service
functions never raise across their boundary; the ``service_boundary``
decorator converts domain exceptions and database errors into failures.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from clienthub.core.exceptions import DomainError, ErrorKind

logger = logging.getLogger(__name__)


class ServiceResult:
    """Typed success-or-failure value."""

    __slots__ = ("ok", "data", "kind", "message", "details")

    def __init__(
        self,
        *,
        ok: bool,
        data: Any = None,
        kind: str | None = None,
        message: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.ok = ok
        self.data = data
        self.kind = kind
        self.message = message
        self.details = details

    @classmethod
    def success(cls, data: Any = None) -> "ServiceResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, kind: str, message: str, details: dict | None = None) -> "ServiceResult":
        return cls(ok=False, kind=kind, message=message, details=details or None)

    @classmethod
    def from_error(cls, exc: DomainError) -> "ServiceResult":
        return cls.failure(exc.kind, str(exc), exc.details)

    def __bool__(self) -> bool:
        return self.ok

    def __repr__(self) -> str:
        if self.ok:
            return f"ServiceResult(ok=True, data={self.data!r})"
        return f"ServiceResult(ok=False, kind={self.kind!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "data": self.data}
        body = {"ok": False, "kind": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


def service_boundary(operation: str) -> Callable:
    """Decorator turning raised errors into failed ``ServiceResult`` values.

    DomainError subclasses keep their kind and are logged at INFO (they are
    expected outcomes). SQLAlchemy errors roll back the session and become
    DATABASE_ERROR, logged once here with the traceback.
    """

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> ServiceResult:
            from clienthub.models import db

            try:
                result = fn(*args, **kwargs)
            except DomainError as exc:
                db.session.rollback()
                logger.info("%s rejected: %s (%s)", operation, exc, exc.kind,
                            extra={"error_kind": exc.kind})
                return ServiceResult.from_error(exc)
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception("%s failed: database error", operation,
                                 extra={"error_kind": ErrorKind.DATABASE_ERROR})
                return ServiceResult.failure(ErrorKind.DATABASE_ERROR, f"{operation} failed")
            if isinstance(result, ServiceResult):
                return result
            return ServiceResult.success(result)

        return wrapper

    return decorator
