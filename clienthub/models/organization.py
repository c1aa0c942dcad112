"""
ClientHub Portal
Tenant domain models.

Models:
    - Organization: tenant root (one client workspace).
    - UserProfile: identity-provider user mirrored locally.
    - OrgMembership: user ↔ organization link with a role.
"""

from clienthub.models import db
from clienthub.models.base import iso, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

ONBOARDING_STATUSES = {"pending", "in_progress", "completed", "skipped"}

ROLE_SUPER_ADMIN = "super_admin"
ROLE_ORG_ADMIN = "org_admin"
ROLE_ORG_MEMBER = "org_member"
ROLE_CLIENT = "client"

ROLES = {ROLE_SUPER_ADMIN, ROLE_ORG_ADMIN, ROLE_ORG_MEMBER, ROLE_CLIENT}
ADMIN_ROLES = {ROLE_SUPER_ADMIN, ROLE_ORG_ADMIN}
# super_admin is a platform flag on UserProfile, never granted through a membership
ASSIGNABLE_ROLES = {ROLE_ORG_ADMIN, ROLE_ORG_MEMBER, ROLE_CLIENT}


class Organization(db.Model):
    """Tenant root. ``onboarding_status`` mirrors the onboarding workflow."""

    __tablename__ = "organizations"
    __table_args__ = (
        db.CheckConstraint(
            "onboarding_status IN ('pending','in_progress','completed','skipped')",
            name="ck_org_onboarding_status",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False, index=True)
    settings = db.Column(db.JSON, nullable=False, default=dict)
    onboarding_status = db.Column(db.String(20), nullable=False, default="pending")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    memberships = db.relationship(
        "OrgMembership", back_populates="organization",
        lazy="dynamic", cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "settings": self.settings or {},
            "onboarding_status": self.onboarding_status,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class UserProfile(db.Model):
    """Local profile for an identity-provider user; ``id`` is the provider's subject."""

    __tablename__ = "user_profiles"

    id = db.Column(db.String(64), primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
            "is_super_admin": bool(self.is_super_admin),
            "created_at": iso(self.created_at),
        }


class OrgMembership(db.Model):
    """A user's role inside one organization."""

    __tablename__ = "org_memberships"
    __table_args__ = (
        db.UniqueConstraint("org_id", "user_id", name="uq_membership_org_user"),
        db.CheckConstraint(
            "role IN ('super_admin','org_admin','org_member','client')",
            name="ck_membership_role",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(64), db.ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    role = db.Column(db.String(20), nullable=False, default=ROLE_ORG_MEMBER)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    organization = db.relationship("Organization", back_populates="memberships")
    user = db.relationship("UserProfile")

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "role": self.role,
            "email": self.user.email if self.user else None,
            "full_name": self.user.full_name if self.user else None,
            "created_at": iso(self.created_at),
        }
