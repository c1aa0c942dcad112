"""
Admin API tests: templates, template assignment, module overrides, member
roles and the onboarding reminder, with their audit trail.
"""

import pytest

from clienthub.models.audit import AuditLog
from clienthub.models.email import EmailLog
from clienthub.models.organization import OrgMembership
from clienthub.models.workspace import OrgModuleOverride, OrgTemplateAssignment, WorkspaceTemplate
from clienthub.services.module_service import (
    DEFAULT_TEMPLATES,
    resolve_module_state,
    seed_default_templates,
)

ADMIN = "/api/v1/admin"


@pytest.fixture()
def root(make_user, auth_headers):
    """Super admin request headers."""
    return auth_headers(make_user("root-1", email="root@agency.test", super_admin=True))


def _actions():
    return [a.action for a in AuditLog.query.order_by(AuditLog.id).all()]


class TestAdminGate:

    @pytest.mark.parametrize("method,path", [
        ("get", "/templates"),
        ("post", "/templates"),
        ("put", "/orgs/1/template"),
        ("put", "/orgs/1/modules/tasks"),
        ("delete", "/orgs/1/modules/tasks"),
    ])
    def test_org_admin_is_not_super_admin(self, client, workspace, auth_headers, method, path):
        """Org admins are refused every admin endpoint."""
        call = getattr(client, method)
        kwargs = {"headers": auth_headers(workspace["admin"])}
        if method in ("post", "put"):
            kwargs["json"] = {}
        res = call(ADMIN + path, **kwargs)
        assert res.status_code == 403

    def test_anonymous_is_401(self, client):
        """No token → UNAUTHORIZED."""
        assert client.get(ADMIN + "/templates").status_code == 401


class TestTemplates:

    def test_create_with_modules(self, client, root):
        """POST creates the template and its module rows in order."""
        res = client.post(ADMIN + "/templates", headers=root, json={
            "name": "retainer",
            "description": "Monthly retainer clients",
            "modules": [
                {"module_key": "projects", "default_state": "enabled"},
                {"module_key": "analytics", "default_state": "locked", "config": {"range": "90d"}},
            ],
        })
        assert res.status_code == 201
        body = res.get_json()
        assert [(m["module_key"], m["default_state"], m["sort_order"]) for m in body["modules"]] == [
            ("projects", "enabled", 0), ("analytics", "locked", 1),
        ]
        assert body["modules"][1]["config"] == {"range": "90d"}
        assert _actions() == ["template.create"]

    def test_duplicate_name_conflict(self, client, root):
        """Template names are unique → 409."""
        client.post(ADMIN + "/templates", headers=root, json={"name": "retainer"})
        res = client.post(ADMIN + "/templates", headers=root, json={"name": "retainer"})
        assert res.status_code == 409
        assert res.get_json()["code"] == "CONFLICT"

    @pytest.mark.parametrize("body", [
        {},
        {"name": "t", "modules": [{"module_key": "crm"}]},
        {"name": "t", "modules": [{"module_key": "tasks", "default_state": "visible"}]},
        {"name": "t", "modules": [{"module_key": "tasks"}, {"module_key": "tasks"}]},
        {"name": "t", "modules": [{"module_key": "tasks", "config": "wide"}]},
        {"name": ["t"]},
        {"name": "t", "modules": "tasks"},
        {"name": "t", "modules": [{"module_key": ["tasks"]}]},
        {"name": "t", "modules": [{"module_key": "tasks", "default_state": ["enabled"]}]},
    ])
    def test_create_validation(self, client, root, body):
        """Bad names, keys, states, duplicates and configs → 400; nothing stored."""
        res = client.post(ADMIN + "/templates", headers=root, json=body)
        assert res.status_code == 400
        assert WorkspaceTemplate.query.count() == 0

    def test_list_active_only(self, client, root, make_template):
        """?active=1 hides inactive templates."""
        make_template("live")
        make_template("retired", is_active=False)
        names = [t["name"] for t in client.get(ADMIN + "/templates", headers=root).get_json()]
        assert names == ["live", "retired"]
        active = client.get(ADMIN + "/templates?active=1", headers=root).get_json()
        assert [t["name"] for t in active] == ["live"]

    def test_upsert_module_changes_resolution(self, client, root, workspace):
        """Template edits apply to every assigned org on the next resolution."""
        org, template = workspace["org"], workspace["template"]
        assert resolve_module_state(org.id, "documents") == "locked"

        res = client.put(f"{ADMIN}/templates/{template.id}/modules/documents", headers=root,
                         json={"default_state": "enabled", "display_name": "Files"})
        assert res.status_code == 200
        assert res.get_json()["display_name"] == "Files"
        assert resolve_module_state(org.id, "documents") == "enabled"
        assert "template.module_upsert" in _actions()

    def test_upsert_adds_missing_module(self, client, root, workspace):
        """Upserting a key the template lacks creates the row at the end."""
        template = workspace["template"]
        res = client.put(f"{ADMIN}/templates/{template.id}/modules/analytics", headers=root,
                         json={"default_state": "locked"})
        assert res.status_code == 200
        assert res.get_json()["sort_order"] == 4

    def test_upsert_unknown_template(self, client, root):
        """Missing template → 404."""
        res = client.put(f"{ADMIN}/templates/999/modules/tasks", headers=root,
                         json={"default_state": "enabled"})
        assert res.status_code == 404


class TestAssignment:

    def test_assign_and_reassign(self, client, root, workspace, make_template):
        """Assignment replaces the previous template and is audited."""
        org = workspace["org"]
        outreach = make_template("outreach-only", {"outreach": "enabled", "tasks": "hidden"})

        res = client.put(f"{ADMIN}/orgs/{org.id}/template", headers=root,
                         json={"template_id": outreach.id})
        assert res.status_code == 200
        assert res.get_json()["template_name"] == "outreach-only"
        assert res.get_json()["assigned_by"] == "root-1"
        assert OrgTemplateAssignment.query.filter_by(org_id=org.id).count() == 1
        assert resolve_module_state(org.id, "tasks") == "hidden"

        audit = AuditLog.query.filter_by(action="template.assign").one()
        assert audit.meta == {"template_id": outreach.id,
                              "previous_template_id": workspace["template"].id}

    @pytest.mark.parametrize("template_id", [None, "3", True])
    def test_template_id_must_be_int(self, client, root, workspace, template_id):
        """Non-integer template ids → 400."""
        res = client.put(f"{ADMIN}/orgs/{workspace['org'].id}/template", headers=root,
                         json={"template_id": template_id})
        assert res.status_code == 400

    def test_inactive_template_rejected(self, client, root, workspace, make_template):
        """Inactive templates cannot be assigned."""
        retired = make_template("retired", is_active=False)
        res = client.put(f"{ADMIN}/orgs/{workspace['org'].id}/template", headers=root,
                         json={"template_id": retired.id})
        assert res.status_code == 400

    def test_unknown_org_or_template(self, client, root, workspace):
        """Missing org or template → 404."""
        res = client.put(f"{ADMIN}/orgs/999/template", headers=root,
                         json={"template_id": workspace["template"].id})
        assert res.status_code == 404
        res = client.put(f"{ADMIN}/orgs/{workspace['org'].id}/template", headers=root,
                         json={"template_id": 999})
        assert res.status_code == 404


class TestOverrides:

    def test_set_and_clear(self, client, root, workspace):
        """Override documents → enabled, then clear back to the template default."""
        org = workspace["org"]
        url = f"{ADMIN}/orgs/{org.id}/modules/documents"

        res = client.put(url, headers=root, json={"state_override": "enabled",
                                                  "config_override": {"quota_mb": 500}})
        assert res.status_code == 200
        assert res.get_json()["state_override"] == "enabled"
        assert resolve_module_state(org.id, "documents") == "enabled"

        res = client.delete(url, headers=root)
        assert res.get_json() == {"org_id": org.id, "module_key": "documents", "cleared": True}
        assert resolve_module_state(org.id, "documents") == "locked"
        assert OrgModuleOverride.query_for_org(org.id).count() == 0
        assert _actions() == ["module_override.set", "module_override.clear"]

    def test_config_only_override_keeps_template_state(self, client, root, workspace):
        """A null state_override changes config only."""
        org = workspace["org"]
        client.put(f"{ADMIN}/orgs/{org.id}/modules/tasks", headers=root,
                   json={"state_override": None, "config_override": {"wip_limit": 5}})
        modules = client.get(f"/api/v1/orgs/{org.id}/modules", headers=root).get_json()["modules"]
        tasks = next(m for m in modules if m["key"] == "tasks")
        assert tasks["state"] == "enabled"
        assert tasks["has_override"] is False
        assert tasks["config"] == {"wip_limit": 5}

    @pytest.mark.parametrize("key,body", [
        ("crm", {"state_override": "enabled"}),
        ("tasks", {"state_override": "on"}),
        ("tasks", {"state_override": ["enabled"]}),
        ("tasks", {"state_override": {}}),
        ("tasks", {"config_override": [1, 2]}),
    ])
    def test_override_validation(self, client, root, workspace, key, body):
        """Unknown keys, non-string or unknown states and non-object configs → 400."""
        res = client.put(f"{ADMIN}/orgs/{workspace['org'].id}/modules/{key}", headers=root, json=body)
        assert res.status_code == 400

    def test_clear_missing_override(self, client, root, workspace):
        """Clearing a non-existent override → 404."""
        res = client.delete(f"{ADMIN}/orgs/{workspace['org'].id}/modules/tasks", headers=root)
        assert res.status_code == 404


class TestMemberRoles:

    def test_promote_member(self, client, workspace, auth_headers):
        """Org admins change roles; the change is audited."""
        org = workspace["org"]
        res = client.put(f"/api/v1/orgs/{org.id}/members/member-1",
                         headers=auth_headers(workspace["admin"]), json={"role": "org_admin"})
        assert res.status_code == 200
        assert res.get_json()["role"] == "org_admin"
        audit = AuditLog.query.filter_by(action="membership.role_change").one()
        assert audit.meta == {"member": "member-1", "from": "org_member", "to": "org_admin"}

    def test_last_admin_cannot_be_demoted(self, client, workspace, auth_headers):
        """An organization always keeps one org_admin."""
        org = workspace["org"]
        res = client.put(f"/api/v1/orgs/{org.id}/members/admin-1",
                         headers=auth_headers(workspace["admin"]), json={"role": "org_member"})
        assert res.status_code == 400
        assert OrgMembership.query.filter_by(user_id="admin-1").one().role == "org_admin"

    @pytest.mark.parametrize("role", [None, "super_admin", "owner", ["org_admin"]])
    def test_invalid_roles(self, client, workspace, auth_headers, role):
        """super_admin is never assignable through memberships."""
        res = client.put(f"/api/v1/orgs/{workspace['org'].id}/members/member-1",
                         headers=auth_headers(workspace["admin"]), json={"role": role})
        assert res.status_code == 400

    def test_unknown_member(self, client, workspace, auth_headers):
        """Users outside the org → 404."""
        res = client.put(f"/api/v1/orgs/{workspace['org'].id}/members/ghost",
                         headers=auth_headers(workspace["admin"]), json={"role": "client"})
        assert res.status_code == 404


class TestReminderEndpoint:

    def test_send_reminder(self, client, root, workspace):
        """Super admins can nudge a user about unfinished onboarding."""
        res = client.post(f"{ADMIN}/orgs/{workspace['org'].id}/onboarding/reminder",
                          headers=root, json={"user_id": "member-1"})
        assert res.status_code == 200
        assert res.get_json()["sent"] is True
        assert EmailLog.query.filter_by(template_name="onboarding_reminder").count() == 1

    def test_user_id_required(self, client, root, workspace):
        """Missing user_id → 400."""
        res = client.post(f"{ADMIN}/orgs/{workspace['org'].id}/onboarding/reminder",
                          headers=root, json={})
        assert res.status_code == 400


class TestSeedTemplates:

    def test_seed_is_idempotent(self):
        """Seeding twice creates the defaults once."""
        from clienthub.models import db

        assert seed_default_templates() == len(DEFAULT_TEMPLATES)
        db.session.commit()
        assert seed_default_templates() == 0
        names = {t.name for t in WorkspaceTemplate.query.all()}
        assert names == set(DEFAULT_TEMPLATES)

    def test_seed_cli(self, app):
        """flask seed-templates runs the seeding."""
        runner = app.test_cli_runner()
        result = runner.invoke(args=["seed-templates"])
        assert result.exit_code == 0
        assert WorkspaceTemplate.query.count() == len(DEFAULT_TEMPLATES)
