"""
Membership Service: who belongs to which organization, and with what role.

``super_admin`` is a profile flag, never a membership role; role changes
through this service are limited to ``ASSIGNABLE_ROLES``.
"""

import logging

from clienthub.core.exceptions import NotFoundError, ValidationError
from clienthub.core.results import service_boundary
from clienthub.models import db
from clienthub.models.audit import write_audit
from clienthub.models.organization import (
    ASSIGNABLE_ROLES,
    ROLE_ORG_ADMIN,
    OrgMembership,
    UserProfile,
)
from clienthub.modules.registry import ADMIN_MODULES
from clienthub.utils.validation import raise_if_errors, validate_enum

logger = logging.getLogger(__name__)


@service_boundary("get_me")
def get_me(identity):
    """Profile and memberships of ``identity``. Unknown profiles get an empty list.

    Super admins also get the agency navigation in ``admin_modules``.
    """
    profile = db.session.get(UserProfile, identity.user_id)
    is_super_admin = bool(profile and profile.is_super_admin)
    memberships = (
        OrgMembership.query.filter_by(user_id=identity.user_id)
        .order_by(OrgMembership.org_id)
        .all()
    )
    return {
        "user": identity.to_dict(),
        "profile": profile.to_dict() if profile else None,
        "is_super_admin": is_super_admin,
        "admin_modules": [m.to_dict() for m in ADMIN_MODULES] if is_super_admin else [],
        "memberships": [
            {
                "org_id": m.org_id,
                "org_name": m.organization.name,
                "org_slug": m.organization.slug,
                "role": m.role,
            }
            for m in memberships
        ],
    }


@service_boundary("list_members")
def list_members(org_id):
    rows = (
        OrgMembership.query.filter_by(org_id=org_id)
        .order_by(OrgMembership.created_at, OrgMembership.id)
        .all()
    )
    return [m.to_dict() for m in rows]


@service_boundary("change_member_role")
def change_member_role(org_id, user_id, role, actor_id=None):
    raise_if_errors({"role": validate_enum(role, ASSIGNABLE_ROLES, "role")})
    if role is None:
        raise ValidationError("role is required", details={"role": "required"})

    membership = OrgMembership.query.filter_by(org_id=org_id, user_id=user_id).first()
    if membership is None:
        raise NotFoundError("OrgMembership", user_id, org_id)
    if membership.role == role:
        return membership.to_dict()

    # An organization keeps at least one org_admin
    if membership.role == ROLE_ORG_ADMIN:
        admins = OrgMembership.query.filter_by(org_id=org_id, role=ROLE_ORG_ADMIN).count()
        if admins <= 1:
            raise ValidationError("Cannot demote the last organization admin",
                                  details={"role": "last_admin"})

    previous = membership.role
    membership.role = role
    write_audit(entity_type="org_membership", entity_id=membership.id,
                action="membership.role_change", org_id=org_id, user_id=actor_id,
                metadata={"member": user_id, "from": previous, "to": role})
    db.session.commit()
    logger.info("Member %s role %s -> %s", user_id, previous, role,
                extra={"org_id": org_id, "user_id": actor_id})
    return membership.to_dict()
