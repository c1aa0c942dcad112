"""
Static module registry.

The registry is the universe of module keys the portal knows about and the
source of UI metadata (name, icon, route) when a template row does not
relabel a module. It is immutable configuration loaded once at import time
and passed explicitly into ``clienthub.services.module_service``.

Usage:
    from clienthub.modules.registry import MODULE_REGISTRY, module_key_for_route

    module_key_for_route("/projects/12")   # -> "projects"
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModuleDefinition:
    key: str
    display_name: str
    description: str
    icon: str
    route_path: str
    required_permissions: tuple[str, ...] = ()
    admin_only: bool = False

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "display_name": self.display_name,
            "description": self.description,
            "icon": self.icon,
            "route_path": self.route_path,
            "required_permissions": list(self.required_permissions),
            "admin_only": self.admin_only,
        }


# Declaration order is the tie-breaker when resolved modules share a sort_order.
MODULE_REGISTRY: tuple[ModuleDefinition, ...] = (
    ModuleDefinition("dashboard", "Dashboard", "Overview and analytics", "LayoutDashboard", "/dashboard"),
    ModuleDefinition("projects", "Projects", "Project management", "FolderKanban", "/projects"),
    ModuleDefinition("tasks", "Tasks", "Task tracking and management", "CheckSquare", "/tasks"),
    ModuleDefinition("workflows", "Workflows", "Automation workflows", "GitBranch", "/workflows",
                     required_permissions=("workflows:read",)),
    ModuleDefinition("outreach", "Outreach", "Campaign management", "Send", "/outreach",
                     required_permissions=("outreach:read",)),
    ModuleDefinition("documents", "Documents", "File storage and sharing", "FileText", "/documents"),
    ModuleDefinition("analytics", "Analytics", "Reports and insights", "BarChart3", "/analytics",
                     required_permissions=("analytics:read",)),
    ModuleDefinition("settings", "Settings", "Workspace settings", "Settings", "/settings"),
)

# Super-admin navigation; never gated by templates.
ADMIN_MODULES: tuple[ModuleDefinition, ...] = (
    ModuleDefinition("admin-dashboard", "Admin Overview", "Agency-wide overview", "LayoutDashboard",
                     "/admin", admin_only=True),
    ModuleDefinition("admin-organizations", "Clients", "Client directory", "Building2",
                     "/admin/organizations", admin_only=True),
    ModuleDefinition("admin-templates", "Templates", "Workspace templates", "Layout",
                     "/admin/templates", admin_only=True),
    ModuleDefinition("admin-users", "Users", "User management", "Users",
                     "/admin/users", admin_only=True),
    ModuleDefinition("admin-audit", "Audit Logs", "Security audit logs", "ScrollText",
                     "/admin/audit-logs", admin_only=True),
)


def registry_keys(registry=MODULE_REGISTRY) -> tuple[str, ...]:
    return tuple(m.key for m in registry)


def get_module(key: str, registry=MODULE_REGISTRY) -> ModuleDefinition | None:
    for module in registry:
        if module.key == key:
            return module
    return None


def is_valid_module_key(key: str, registry=MODULE_REGISTRY) -> bool:
    return get_module(key, registry) is not None


def module_key_for_route(path: str, registry=MODULE_REGISTRY) -> str | None:
    """Map a URL path to the module that owns it, by first path segment."""
    segments = [s for s in (path or "").split("/") if s]
    if not segments:
        return None
    first = "/" + segments[0]
    for module in registry:
        if module.route_path == first:
            return module.key
    return None
