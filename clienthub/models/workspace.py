"""
ClientHub Portal
Workspace template models.

Models:
    - WorkspaceTemplate: named bundle of module defaults.
    - TemplateModule: per-template default state / order / config of one module.
    - OrgTemplateAssignment: the (single) template an organization uses.
    - OrgModuleOverride: per-organization deviation from the template default.

Module states are stored as plain strings; the resolution engine validates
them against ``MODULE_STATES`` when reading.
"""

from clienthub.models import db
from clienthub.models.base import OrgScopedModel, iso, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

MODULE_STATE_ENABLED = "enabled"
MODULE_STATE_LOCKED = "locked"
MODULE_STATE_HIDDEN = "hidden"

MODULE_STATES = {MODULE_STATE_ENABLED, MODULE_STATE_LOCKED, MODULE_STATE_HIDDEN}


class WorkspaceTemplate(db.Model):
    """Reusable bundle of module defaults."""

    __tablename__ = "workspace_templates"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    modules = db.relationship(
        "TemplateModule", back_populates="template",
        order_by="TemplateModule.sort_order", cascade="all, delete-orphan",
    )

    def to_dict(self, include_modules=False):
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": bool(self.is_active),
            "created_at": iso(self.created_at),
        }
        if include_modules:
            d["modules"] = [m.to_dict() for m in self.modules]
        return d


class TemplateModule(db.Model):
    """Default state of one module inside a template.

    ``display_name`` / ``description`` / ``icon`` / ``route_path`` are optional
    per-template relabels; when null the static registry metadata is used.
    """

    __tablename__ = "template_modules"
    __table_args__ = (
        db.UniqueConstraint("template_id", "module_key", name="uq_template_module_key"),
        db.CheckConstraint(
            "default_state IN ('enabled','locked','hidden')",
            name="ck_template_module_state",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer, db.ForeignKey("workspace_templates.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    module_key = db.Column(db.String(50), nullable=False)
    default_state = db.Column(db.String(10), nullable=False, default=MODULE_STATE_HIDDEN)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    config = db.Column(db.JSON, nullable=False, default=dict)
    display_name = db.Column(db.String(120), nullable=True)
    description = db.Column(db.String(500), nullable=True)
    icon = db.Column(db.String(60), nullable=True)
    route_path = db.Column(db.String(200), nullable=True)

    template = db.relationship("WorkspaceTemplate", back_populates="modules")

    def to_dict(self):
        return {
            "id": self.id,
            "template_id": self.template_id,
            "module_key": self.module_key,
            "default_state": self.default_state,
            "sort_order": self.sort_order,
            "config": self.config or {},
            "display_name": self.display_name,
            "description": self.description,
            "icon": self.icon,
            "route_path": self.route_path,
        }


class OrgTemplateAssignment(db.Model):
    """One-to-one link organization → template."""

    __tablename__ = "org_template_assignments"

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    # RESTRICT: a template cannot be deleted while an organization uses it
    template_id = db.Column(
        db.Integer, db.ForeignKey("workspace_templates.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    assigned_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    assigned_by = db.Column(db.String(64), nullable=True)

    template = db.relationship("WorkspaceTemplate")

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "template_id": self.template_id,
            "template_name": self.template.name if self.template else None,
            "assigned_at": iso(self.assigned_at),
            "assigned_by": self.assigned_by,
        }


class OrgModuleOverride(OrgScopedModel):
    """Per-organization module exception. A null ``state_override`` keeps the template state."""

    __tablename__ = "org_module_overrides"
    __table_args__ = (
        db.UniqueConstraint("org_id", "module_key", name="uq_override_org_module"),
        db.CheckConstraint(
            "state_override IS NULL OR state_override IN ('enabled','locked','hidden')",
            name="ck_override_state",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    module_key = db.Column(db.String(50), nullable=False)
    state_override = db.Column(db.String(10), nullable=True)
    config_override = db.Column(db.JSON, nullable=False, default=dict)
    updated_by = db.Column(db.String(64), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "module_key": self.module_key,
            "state_override": self.state_override,
            "config_override": self.config_override or {},
            "updated_by": self.updated_by,
            "updated_at": iso(self.updated_at),
        }
