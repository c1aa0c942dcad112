"""
Identity resolution.

The identity provider is external; ``clienthub.middleware.jwt_auth`` places
the verified identity on ``g.identity`` for the current request. Services
read it through ``get_current_identity`` so tests and CLI code can also
pass an explicit identity.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import g, has_request_context

from clienthub.core.exceptions import ErrorKind
from clienthub.core.results import ServiceResult


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str | None = None

    def to_dict(self) -> dict:
        return {"id": self.user_id, "email": self.email}


def get_current_identity() -> Identity | None:
    """Identity of the current request, or None when unauthenticated."""
    if not has_request_context():
        return None
    return getattr(g, "identity", None)


def resolve_identity(identity: Identity | None = None) -> ServiceResult:
    """Current user id + email, or UNAUTHORIZED."""
    identity = identity or get_current_identity()
    if identity is None:
        return ServiceResult.failure(ErrorKind.UNAUTHORIZED, "Authentication required")
    return ServiceResult.success(identity)
