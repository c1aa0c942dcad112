"""
Access Control Primitives.

Every check is read-only and fails closed: a missing row or a query error
is reported as FORBIDDEN (or MODULE_LOCKED / UNAUTHORIZED), never as allow.

Role resolution for (identity, org):
    super admin flag on the profile  → synthetic "super_admin" (no membership row needed)
    membership row                   → membership.role
    otherwise                        → FORBIDDEN

Usage:
    result = check_module_access(org_id, "tasks")
    if not result.ok:
        return api_error(result.kind, result.message)
    grant = result.data     # AccessGrant
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from clienthub.core.exceptions import ErrorKind
from clienthub.core.results import ServiceResult
from clienthub.models import db
from clienthub.models.organization import (
    ADMIN_ROLES,
    ROLE_SUPER_ADMIN,
    ROLES,
    OrgMembership,
    UserProfile,
)
from clienthub.models.workspace import MODULE_STATE_ENABLED
from clienthub.services.identity import Identity, resolve_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessGrant:
    """Outcome of a successful membership check."""

    identity: Identity
    org_id: int | None
    role: str
    is_super_admin: bool

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    def to_dict(self) -> dict:
        return {
            "user": self.identity.to_dict(),
            "org_id": self.org_id,
            "role": self.role,
            "is_super_admin": self.is_super_admin,
            "is_admin": self.is_admin,
        }


def _forbidden(message="Access denied"):
    return ServiceResult.failure(ErrorKind.FORBIDDEN, message)


def is_super_admin(user_id: str) -> bool:
    """True only when the profile exists and carries the flag."""
    profile = db.session.get(UserProfile, user_id)
    return bool(profile and profile.is_super_admin)


def check_auth(identity: Identity | None = None) -> ServiceResult:
    return resolve_identity(identity)


def check_super_admin(identity: Identity | None = None) -> ServiceResult:
    """Success with an org-less AccessGrant when the caller is a super admin."""
    auth = check_auth(identity)
    if not auth.ok:
        return auth
    try:
        allowed = is_super_admin(auth.data.user_id)
    except SQLAlchemyError:
        logger.exception("Super admin lookup failed; denying",
                         extra={"user_id": auth.data.user_id})
        return _forbidden()
    if not allowed:
        return _forbidden("Super admin access required")
    return ServiceResult.success(AccessGrant(auth.data, None, ROLE_SUPER_ADMIN, True))


def check_membership(org_id: int, identity: Identity | None = None) -> ServiceResult:
    """Success with the caller's role in ``org_id``, or FORBIDDEN."""
    auth = check_auth(identity)
    if not auth.ok:
        return auth
    ident = auth.data
    try:
        if is_super_admin(ident.user_id):
            return ServiceResult.success(AccessGrant(ident, org_id, ROLE_SUPER_ADMIN, True))
        membership = OrgMembership.query.filter_by(org_id=org_id, user_id=ident.user_id).first()
    except SQLAlchemyError:
        logger.exception("Membership lookup failed; denying",
                         extra={"org_id": org_id, "user_id": ident.user_id})
        return _forbidden()

    if membership is None:
        return _forbidden("Not a member of this organization")
    if membership.role not in ROLES:
        logger.error("Unknown role %r on membership %s; denying", membership.role, membership.id,
                     extra={"org_id": org_id, "user_id": ident.user_id})
        return _forbidden()
    return ServiceResult.success(AccessGrant(ident, org_id, membership.role, False))


def check_admin(org_id: int, identity: Identity | None = None) -> ServiceResult:
    """Success only for org_admin or super_admin."""
    result = check_membership(org_id, identity)
    if not result.ok:
        return result
    if not result.data.is_admin:
        return _forbidden("Organization admin access required")
    return result


def check_module_access(org_id: int, module_key: str, identity: Identity | None = None) -> ServiceResult:
    """Membership plus module gate. Super admins bypass module gating."""
    result = check_membership(org_id, identity)
    if not result.ok:
        return result
    grant = result.data
    if grant.is_super_admin:
        return result

    from clienthub.services.module_service import resolve_module_state

    state = resolve_module_state(org_id, module_key)
    if state != MODULE_STATE_ENABLED:
        logger.info("Module %s is %s for org %s", module_key, state, org_id,
                    extra={"org_id": org_id, "module_key": module_key, "user_id": grant.user_id})
        return ServiceResult.failure(
            ErrorKind.MODULE_LOCKED,
            f"Module '{module_key}' is not available",
            details={"module_key": module_key, "state": state},
        )
    return result
