"""
Module Resolution Engine.

Effective module state for an organization:

    state  = override.state_override ?? template_default.default_state ?? "hidden"
    config = {**template_default.config, **override.config_override}   (shallow)

Only keys in the static registry are resolved; template or override rows
for unknown keys are ignored. Output order is template ``sort_order``
ascending, modules without a template row last, ties by registry order.

``resolve_module_entries`` is the pure core (registry + rows in, list out).
``resolve_module_state`` is the per-request hot path: it reads at most one
override row and one template row and never materializes the full list.

Template / override administration lives at the bottom of this module;
callers (admin blueprint) enforce super-admin access first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from sqlalchemy.exc import SQLAlchemyError

from clienthub.core.exceptions import ConflictError, NotFoundError, ValidationError
from clienthub.core.results import service_boundary
from clienthub.models import db
from clienthub.models.audit import write_audit
from clienthub.models.base import utcnow
from clienthub.models.organization import Organization
from clienthub.models.workspace import (
    MODULE_STATE_ENABLED,
    MODULE_STATE_HIDDEN,
    MODULE_STATE_LOCKED,
    MODULE_STATES,
    OrgModuleOverride,
    OrgTemplateAssignment,
    TemplateModule,
    WorkspaceTemplate,
)
from clienthub.modules.registry import MODULE_REGISTRY, ModuleDefinition, get_module, is_valid_module_key

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Value objects
# ═════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ResolvedModule:
    key: str
    display_name: str
    description: str
    icon: str
    route_path: str
    state: str
    default_state: str | None
    has_override: bool
    config: dict = field(default_factory=dict)
    sort_order: int | None = None
    required_permissions: tuple[str, ...] = ()

    @property
    def is_accessible(self) -> bool:
        return self.state == MODULE_STATE_ENABLED

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "description": self.description,
            "icon": self.icon,
            "route_path": self.route_path,
            "state": self.state,
            "default_state": self.default_state,
            "has_override": self.has_override,
            "is_accessible": self.is_accessible,
            "config": dict(self.config),
            "sort_order": self.sort_order,
            "required_permissions": list(self.required_permissions),
        }


class ModuleContext:
    """Lookup helper over one organization's resolved modules."""

    def __init__(self, modules: Iterable[ResolvedModule]):
        self.modules = list(modules)
        self._by_key = {m.key: m for m in self.modules}

    def get(self, key: str) -> ResolvedModule | None:
        return self._by_key.get(key)

    def state(self, key: str) -> str:
        module = self._by_key.get(key)
        return module.state if module else MODULE_STATE_HIDDEN

    def is_enabled(self, key: str) -> bool:
        return self.state(key) == MODULE_STATE_ENABLED

    def is_locked(self, key: str) -> bool:
        return self.state(key) == MODULE_STATE_LOCKED

    def is_hidden(self, key: str) -> bool:
        return self.state(key) == MODULE_STATE_HIDDEN

    def enabled_keys(self) -> set[str]:
        return {m.key for m in self.modules if m.is_accessible}

    def visible(self) -> list[ResolvedModule]:
        """Modules shown in navigation (enabled or locked)."""
        return [m for m in self.modules if m.state != MODULE_STATE_HIDDEN]


# ═════════════════════════════════════════════════════════════════════════════
# Pure resolution
# ═════════════════════════════════════════════════════════════════════════════


def _checked_state(value, source: str, module_key: str) -> str | None:
    """Pass through None and valid states; unknown stored values fail closed to hidden."""
    if value is None or value in MODULE_STATES:
        return value
    logger.error("Unknown module state %r in %s for module %s; treating as hidden",
                 value, source, module_key, extra={"module_key": module_key})
    return MODULE_STATE_HIDDEN


def effective_state(override_state: str | None, template_state: str | None) -> str:
    """Three-way priority: override, then template default, then hidden."""
    for candidate in (override_state, template_state):
        if candidate is not None:
            return candidate
    return MODULE_STATE_HIDDEN


def merge_config(template_config: Mapping | None, override_config: Mapping | None) -> dict:
    """Top-level merge; an override key replaces the template value whole."""
    merged = dict(template_config or {})
    merged.update(override_config or {})
    return merged


def resolve_module(
    definition: ModuleDefinition,
    template_row=None,
    override_row=None,
) -> ResolvedModule:
    """Resolve one registry module from its (optional) template and override rows."""
    template_state = _checked_state(
        getattr(template_row, "default_state", None), "template_modules", definition.key)
    override_state = _checked_state(
        getattr(override_row, "state_override", None), "org_module_overrides", definition.key)

    def _label(attr):
        value = getattr(template_row, attr, None)
        return value if value else getattr(definition, attr)

    return ResolvedModule(
        key=definition.key,
        display_name=_label("display_name"),
        description=_label("description"),
        icon=_label("icon"),
        route_path=_label("route_path"),
        state=effective_state(override_state, template_state),
        default_state=template_state,
        has_override=override_state is not None,
        config=merge_config(
            getattr(template_row, "config", None),
            getattr(override_row, "config_override", None),
        ),
        sort_order=getattr(template_row, "sort_order", None),
        required_permissions=definition.required_permissions,
    )


def resolve_module_entries(
    registry: Iterable[ModuleDefinition],
    template_rows: Mapping[str, object],
    override_rows: Mapping[str, object],
) -> list[ResolvedModule]:
    """Resolve every registry module and order the result for navigation."""
    ranked = []
    for index, definition in enumerate(registry):
        template_row = template_rows.get(definition.key)
        resolved = resolve_module(definition, template_row, override_rows.get(definition.key))
        no_row = template_row is None or resolved.sort_order is None
        ranked.append(((no_row, resolved.sort_order or 0, index), resolved))
    ranked.sort(key=lambda pair: pair[0])
    return [resolved for _, resolved in ranked]


# ═════════════════════════════════════════════════════════════════════════════
# Database-backed resolution
# ═════════════════════════════════════════════════════════════════════════════


def _template_id_for_org(org_id: int) -> int | None:
    assignment = OrgTemplateAssignment.query.filter_by(org_id=org_id).first()
    return assignment.template_id if assignment else None


def load_resolved_modules(org_id: int, registry=MODULE_REGISTRY) -> list[ResolvedModule]:
    """Resolve all modules for ``org_id``. Raises on database errors."""
    template_id = _template_id_for_org(org_id)
    template_rows = {}
    if template_id is not None:
        template_rows = {
            row.module_key: row
            for row in TemplateModule.query.filter_by(template_id=template_id).all()
        }
    override_rows = {
        row.module_key: row
        for row in OrgModuleOverride.query_for_org(org_id).all()
    }
    return resolve_module_entries(registry, template_rows, override_rows)


@service_boundary("resolve_modules")
def resolve_modules(org_id: int, registry=MODULE_REGISTRY):
    """ServiceResult wrapping the ordered ``ResolvedModule`` list."""
    return load_resolved_modules(org_id, registry)


def resolve_module_state(org_id: int, module_key: str, registry=MODULE_REGISTRY) -> str:
    """Effective state of one module via two point lookups. Fails closed to hidden."""
    definition = get_module(module_key, registry)
    if definition is None:
        return MODULE_STATE_HIDDEN
    try:
        override_row = OrgModuleOverride.query_for_org(org_id).filter_by(module_key=module_key).first()
        template_row = None
        template_id = _template_id_for_org(org_id)
        if template_id is not None:
            template_row = TemplateModule.query.filter_by(
                template_id=template_id, module_key=module_key,
            ).first()
    except SQLAlchemyError:
        logger.exception("Module state lookup failed; treating %s as hidden", module_key,
                         extra={"org_id": org_id, "module_key": module_key})
        return MODULE_STATE_HIDDEN
    return resolve_module(definition, template_row, override_row).state


def get_module_context(org_id: int, registry=MODULE_REGISTRY) -> ModuleContext:
    return ModuleContext(load_resolved_modules(org_id, registry))


def get_enabled_module_keys(org_id: int, registry=MODULE_REGISTRY) -> set[str]:
    """Keys currently resolving to enabled. Raises on database errors."""
    return get_module_context(org_id, registry).enabled_keys()


# ═════════════════════════════════════════════════════════════════════════════
# Administration (super admin)
# ═════════════════════════════════════════════════════════════════════════════


def _validate_module_key(module_key: str):
    if not isinstance(module_key, str) or not is_valid_module_key(module_key):
        raise ValidationError(f"Unknown module: {module_key}", details={"module_key": "unknown"})


def _validate_state(value, field_name: str, allow_none: bool = False):
    if value is None and allow_none:
        return
    if not isinstance(value, str) or value not in MODULE_STATES:
        raise ValidationError(
            f"Invalid {field_name}: {value!r}. Allowed: {sorted(MODULE_STATES)}",
            details={field_name: "invalid"},
        )


def _validate_config(value, field_name: str):
    if value is not None and not isinstance(value, dict):
        raise ValidationError(f"{field_name} must be an object", details={field_name: "invalid"})


def list_templates(active_only: bool = False) -> list[dict]:
    """Return all templates with their module rows."""
    query = WorkspaceTemplate.query.order_by(WorkspaceTemplate.name)
    if active_only:
        query = query.filter_by(is_active=True)
    return [t.to_dict(include_modules=True) for t in query.all()]


@service_boundary("create_template")
def create_template(data: dict, actor_id: str | None = None):
    """Create a template, optionally with module rows ``[{module_key, default_state, ...}]``."""
    name = data.get("name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if len(name) > 120:
        raise ValidationError("name exceeds maximum length of 120 characters", details={"name": "too_long"})
    if WorkspaceTemplate.query.filter_by(name=name).first():
        raise ConflictError("WorkspaceTemplate", "name", name)

    modules = data.get("modules") or []
    if not isinstance(modules, list) or not all(isinstance(m, dict) for m in modules):
        raise ValidationError("modules must be a list of objects", details={"modules": "invalid"})
    seen = set()
    for entry in modules:
        key = entry.get("module_key")
        _validate_module_key(key)
        if key in seen:
            raise ValidationError(f"Duplicate module: {key}", details={"module_key": "duplicate"})
        seen.add(key)
        _validate_state(entry.get("default_state", MODULE_STATE_HIDDEN), "default_state")
        _validate_config(entry.get("config"), "config")

    template = WorkspaceTemplate(
        name=name,
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(template)
    db.session.flush()
    for index, entry in enumerate(modules):
        db.session.add(TemplateModule(
            template_id=template.id,
            module_key=entry["module_key"],
            default_state=entry.get("default_state", MODULE_STATE_HIDDEN),
            sort_order=entry.get("sort_order", index),
            config=entry.get("config") or {},
        ))
    write_audit(entity_type="template", entity_id=template.id, action="template.create",
                user_id=actor_id, metadata={"name": name, "modules": sorted(seen)})
    db.session.commit()
    logger.info("Created workspace template %s (id=%s)", name, template.id)
    return template.to_dict(include_modules=True)


_TEMPLATE_MODULE_FIELDS = ("default_state", "sort_order", "config",
                           "display_name", "description", "icon", "route_path")


@service_boundary("upsert_template_module")
def upsert_template_module(template_id: int, module_key: str, data: dict, actor_id: str | None = None):
    """Create or update one template module row."""
    template = db.session.get(WorkspaceTemplate, template_id)
    if template is None:
        raise NotFoundError("WorkspaceTemplate", template_id)
    _validate_module_key(module_key)
    if "default_state" in data:
        _validate_state(data["default_state"], "default_state")
    if "sort_order" in data and not isinstance(data["sort_order"], int):
        raise ValidationError("sort_order must be an integer", details={"sort_order": "invalid"})
    _validate_config(data.get("config"), "config")

    row = TemplateModule.query.filter_by(template_id=template_id, module_key=module_key).first()
    if row is None:
        row = TemplateModule(template_id=template_id, module_key=module_key,
                             default_state=MODULE_STATE_HIDDEN, sort_order=len(template.modules),
                             config={})
        db.session.add(row)
    for field_name in _TEMPLATE_MODULE_FIELDS:
        if field_name in data:
            value = data[field_name]
            if field_name == "config" and value is None:
                value = {}
            setattr(row, field_name, value)
    db.session.flush()
    write_audit(entity_type="template", entity_id=template_id, action="template.module_upsert",
                user_id=actor_id, metadata={"module_key": module_key, **{
                    k: data[k] for k in _TEMPLATE_MODULE_FIELDS if k in data}})
    db.session.commit()
    return row.to_dict()


@service_boundary("assign_template")
def assign_template(org_id: int, template_id: int, actor_id: str | None = None):
    """Point ``org_id`` at ``template_id``, replacing any previous assignment."""
    if db.session.get(Organization, org_id) is None:
        raise NotFoundError("Organization", org_id)
    template = db.session.get(WorkspaceTemplate, template_id)
    if template is None:
        raise NotFoundError("WorkspaceTemplate", template_id)
    if not template.is_active:
        raise ValidationError("Template is not active", details={"template_id": "inactive"})

    assignment = OrgTemplateAssignment.query.filter_by(org_id=org_id).first()
    previous = assignment.template_id if assignment else None
    if assignment is None:
        assignment = OrgTemplateAssignment(org_id=org_id, template_id=template_id, assigned_by=actor_id)
        db.session.add(assignment)
    else:
        assignment.template_id = template_id
        assignment.assigned_by = actor_id
        assignment.assigned_at = utcnow()
    db.session.flush()
    write_audit(entity_type="organization", entity_id=org_id, action="template.assign",
                org_id=org_id, user_id=actor_id,
                metadata={"template_id": template_id, "previous_template_id": previous})
    db.session.commit()
    logger.info("Assigned template %s to org %s", template.name, org_id, extra={"org_id": org_id})
    return OrgTemplateAssignment.query.filter_by(org_id=org_id).first().to_dict()


@service_boundary("set_module_override")
def set_module_override(org_id: int, module_key: str, data: dict, actor_id: str | None = None):
    """Create or update the org's override for one module."""
    if db.session.get(Organization, org_id) is None:
        raise NotFoundError("Organization", org_id)
    _validate_module_key(module_key)
    if "state_override" in data:
        _validate_state(data["state_override"], "state_override", allow_none=True)
    _validate_config(data.get("config_override"), "config_override")

    row = OrgModuleOverride.query_for_org(org_id).filter_by(module_key=module_key).first()
    if row is None:
        row = OrgModuleOverride(org_id=org_id, module_key=module_key, config_override={})
        db.session.add(row)
    if "state_override" in data:
        row.state_override = data["state_override"]
    if "config_override" in data:
        row.config_override = data["config_override"] or {}
    row.updated_by = actor_id
    db.session.flush()
    write_audit(entity_type="module_override", entity_id=row.id, action="module_override.set",
                org_id=org_id, user_id=actor_id,
                metadata={"module_key": module_key, "state_override": row.state_override,
                          "config_override": row.config_override})
    db.session.commit()
    logger.info("Module override %s=%s for org %s", module_key, row.state_override, org_id,
                extra={"org_id": org_id, "module_key": module_key})
    return row.to_dict()


@service_boundary("clear_module_override")
def clear_module_override(org_id: int, module_key: str, actor_id: str | None = None):
    """Delete the override so the module falls back to the template default."""
    _validate_module_key(module_key)
    row = OrgModuleOverride.query_for_org(org_id).filter_by(module_key=module_key).first()
    if row is None:
        raise NotFoundError("OrgModuleOverride", module_key)
    db.session.delete(row)
    write_audit(entity_type="module_override", entity_id=module_key, action="module_override.clear",
                org_id=org_id, user_id=actor_id, metadata={"module_key": module_key})
    db.session.commit()
    return {"org_id": org_id, "module_key": module_key, "cleared": True}


# ═════════════════════════════════════════════════════════════════════════════
# Default templates
# ═════════════════════════════════════════════════════════════════════════════

# name → (description, [(module_key, default_state), ...] in sort order)
DEFAULT_TEMPLATES = {
    "standard-client-portal": (
        "Projects, tasks and documents for a typical client engagement",
        [
            ("dashboard", MODULE_STATE_ENABLED),
            ("projects", MODULE_STATE_ENABLED),
            ("tasks", MODULE_STATE_ENABLED),
            ("documents", MODULE_STATE_ENABLED),
            ("workflows", MODULE_STATE_LOCKED),
            ("analytics", MODULE_STATE_LOCKED),
            ("outreach", MODULE_STATE_HIDDEN),
            ("settings", MODULE_STATE_ENABLED),
        ],
    ),
    "outreach-only": (
        "Outreach campaigns and their analytics",
        [
            ("dashboard", MODULE_STATE_ENABLED),
            ("outreach", MODULE_STATE_ENABLED),
            ("analytics", MODULE_STATE_ENABLED),
            ("projects", MODULE_STATE_LOCKED),
            ("settings", MODULE_STATE_ENABLED),
        ],
    ),
    "full-stack-agency": (
        "Every module enabled",
        [(definition.key, MODULE_STATE_ENABLED) for definition in MODULE_REGISTRY],
    ),
}


def seed_default_templates() -> int:
    """Create missing default templates. Returns the number created; caller commits."""
    created = 0
    for name, (description, modules) in DEFAULT_TEMPLATES.items():
        if WorkspaceTemplate.query.filter_by(name=name).first():
            continue
        template = WorkspaceTemplate(name=name, description=description, is_active=True)
        db.session.add(template)
        db.session.flush()
        for index, (module_key, state) in enumerate(modules):
            db.session.add(TemplateModule(template_id=template.id, module_key=module_key,
                                          default_state=state, sort_order=index, config={}))
        created += 1
    return created
