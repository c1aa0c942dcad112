"""
Access control tests: identity, membership, role and module gates over HTTP,
plus the service-level checks they are built on.
"""

import datetime
from unittest.mock import patch

import jwt as pyjwt
import pytest
from sqlalchemy.exc import OperationalError

from clienthub.models import db
from clienthub.models.organization import ROLE_CLIENT
from clienthub.models.workspace import OrgModuleOverride
from clienthub.services import access_service
from clienthub.services.identity import Identity


def _base(org):
    return f"/api/v1/orgs/{org.id}"


class TestAuthentication:

    def test_missing_token_is_401(self, client, workspace):
        """No Authorization header → UNAUTHORIZED."""
        res = client.get(f"{_base(workspace['org'])}/modules")
        assert res.status_code == 401
        assert res.get_json()["code"] == "UNAUTHORIZED"

    def test_garbage_token_is_401(self, client, workspace):
        """Unverifiable tokens are treated as anonymous."""
        res = client.get(f"{_base(workspace['org'])}/modules",
                         headers={"Authorization": "Bearer not.a.token"})
        assert res.status_code == 401

    def test_expired_token_is_401(self, app, client, workspace):
        """Expired tokens are rejected."""
        token = pyjwt.encode(
            {"sub": "member-1", "exp": datetime.datetime(2000, 1, 1, tzinfo=datetime.timezone.utc)},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        res = client.get(f"{_base(workspace['org'])}/modules",
                         headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_me_lists_memberships(self, client, workspace, auth_headers):
        """/me returns the profile and every membership."""
        res = client.get("/api/v1/me", headers=auth_headers(workspace["admin"]))
        assert res.status_code == 200
        body = res.get_json()
        assert body["user"]["id"] == "admin-1"
        assert body["is_super_admin"] is False
        assert body["admin_modules"] == []
        assert body["memberships"] == [{
            "org_id": workspace["org"].id,
            "org_name": "Acme Corp",
            "org_slug": "acme-corp",
            "role": "org_admin",
        }]

    def test_me_super_admin_navigation(self, client, make_user, auth_headers):
        """Super admins get the agency navigation entries, all admin-only."""
        root = make_user("root-1", super_admin=True)
        body = client.get("/api/v1/me", headers=auth_headers(root)).get_json()
        assert body["is_super_admin"] is True
        assert body["memberships"] == []
        nav = body["admin_modules"]
        assert nav[0]["route_path"] == "/admin"
        assert "admin-templates" in [m["key"] for m in nav]
        assert all(m["admin_only"] for m in nav)


class TestMembership:

    def test_non_member_forbidden(self, client, workspace, make_user, auth_headers):
        """Authenticated outsiders get FORBIDDEN, not the module list."""
        outsider = make_user("outsider-1")
        res = client.get(f"{_base(workspace['org'])}/modules", headers=auth_headers(outsider))
        assert res.status_code == 403
        assert res.get_json()["code"] == "FORBIDDEN"

    def test_member_sees_modules(self, client, workspace, auth_headers):
        """Members get the resolved module list with their role."""
        res = client.get(f"{_base(workspace['org'])}/modules", headers=auth_headers(workspace["member"]))
        assert res.status_code == 200
        body = res.get_json()
        assert body["role"] == "org_member"
        states = {m["key"]: m["state"] for m in body["modules"]}
        assert states["tasks"] == "enabled"
        assert states["documents"] == "locked"
        assert states["analytics"] == "hidden"

    def test_single_module_state(self, client, workspace, auth_headers):
        """Per-module endpoint reports state and accessibility."""
        headers = auth_headers(workspace["member"])
        res = client.get(f"{_base(workspace['org'])}/modules/documents", headers=headers)
        assert res.get_json() == {
            "org_id": workspace["org"].id, "module_key": "documents",
            "state": "locked", "is_accessible": False,
        }
        res = client.get(f"{_base(workspace['org'])}/modules/crm", headers=headers)
        assert res.status_code == 404

    def test_membership_in_other_org_does_not_carry(self, client, workspace, make_org, auth_headers):
        """A member of org A is an outsider to org B."""
        other = make_org("Other Co")
        res = client.get(f"{_base(other)}/modules", headers=auth_headers(workspace["admin"]))
        assert res.status_code == 403


class TestRoles:

    def test_member_cannot_list_members(self, client, workspace, auth_headers):
        """Member-management endpoints require org admin."""
        res = client.get(f"{_base(workspace['org'])}/members", headers=auth_headers(workspace["member"]))
        assert res.status_code == 403

    def test_admin_lists_members(self, client, workspace, auth_headers):
        """Org admins see every membership."""
        res = client.get(f"{_base(workspace['org'])}/members", headers=auth_headers(workspace["admin"]))
        assert res.status_code == 200
        assert {m["user_id"] for m in res.get_json()} == {"admin-1", "member-1"}

    def test_member_cannot_skip_onboarding(self, client, workspace, auth_headers):
        """Skip is admin-only."""
        res = client.post(f"{_base(workspace['org'])}/onboarding/skip",
                          headers=auth_headers(workspace["member"]))
        assert res.status_code == 403

    def test_client_role_is_a_member(self, client, workspace, make_user, add_member, auth_headers):
        """The client role passes membership checks but not admin checks."""
        guest = make_user("client-1")
        add_member(workspace["org"], guest, ROLE_CLIENT)
        headers = auth_headers(guest)
        assert client.get(f"{_base(workspace['org'])}/modules", headers=headers).status_code == 200
        assert client.get(f"{_base(workspace['org'])}/members", headers=headers).status_code == 403


class TestModuleGate:

    def test_locked_module_returns_module_locked(self, client, workspace, auth_headers):
        """Locked modules refuse with MODULE_LOCKED and the resolved state."""
        db.session.add(OrgModuleOverride(org_id=workspace["org"].id, module_key="projects",
                                         state_override="locked", config_override={}))
        db.session.commit()
        res = client.get(f"{_base(workspace['org'])}/projects", headers=auth_headers(workspace["member"]))
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "MODULE_LOCKED"
        assert body["details"] == {"module_key": "projects", "state": "locked"}

    def test_hidden_module_also_locked(self, client, make_org, make_user, add_member, auth_headers):
        """An org without a template has every module hidden."""
        org = make_org("Bare")
        user = make_user("bare-1")
        add_member(org, user)
        res = client.get(f"{_base(org)}/tasks", headers=auth_headers(user))
        assert res.status_code == 403
        assert res.get_json()["details"]["state"] == "hidden"

    def test_enabled_module_allows(self, client, workspace, auth_headers):
        """Enabled modules pass through to the handler."""
        res = client.get(f"{_base(workspace['org'])}/tasks", headers=auth_headers(workspace["member"]))
        assert res.status_code == 200
        assert res.get_json() == []

    def test_super_admin_bypasses_membership_and_modules(self, client, workspace, make_user, auth_headers):
        """Super admins need no membership and ignore module state."""
        root = make_user("root-1", super_admin=True)
        db.session.add(OrgModuleOverride(org_id=workspace["org"].id, module_key="tasks",
                                         state_override="hidden", config_override={}))
        db.session.commit()
        headers = auth_headers(root)
        assert client.get(f"{_base(workspace['org'])}/tasks", headers=headers).status_code == 200
        assert client.get(f"{_base(workspace['org'])}/members", headers=headers).status_code == 200


class TestServiceChecks:

    def test_check_membership_lookup_error_denies(self, workspace):
        """Database errors during the lookup fail closed."""
        identity = Identity("member-1")
        with patch.object(access_service, "is_super_admin",
                          side_effect=OperationalError("SELECT", {}, Exception("down"))):
            result = access_service.check_membership(workspace["org"].id, identity)
        assert not result.ok
        assert result.kind == "FORBIDDEN"

    def test_check_admin_grant(self, workspace):
        """org_admin produces an admin grant bound to the org."""
        result = access_service.check_admin(workspace["org"].id, Identity("admin-1"))
        assert result.ok
        assert result.data.role == "org_admin"
        assert result.data.is_admin
        assert result.data.org_id == workspace["org"].id

    def test_no_identity_outside_request(self, workspace):
        """Without a request there is no ambient identity."""
        assert access_service.check_auth().kind == "UNAUTHORIZED"

    @pytest.mark.parametrize("user_id,expected", [("admin-1", True), ("ghost", False)])
    def test_is_super_admin_requires_flag(self, workspace, user_id, expected):
        """Only profiles carrying the flag are super admins."""
        if expected:
            profile = db.session.get(access_service.UserProfile, user_id)
            profile.is_super_admin = True
            db.session.commit()
        assert access_service.is_super_admin(user_id) is expected
