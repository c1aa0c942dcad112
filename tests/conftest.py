"""
Shared pytest fixtures for the ClientHub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_org / make_user / add_member / make_template / assign_template: ORM factories
    - auth_headers: Bearer header for a user, signed with the test secret
    - workspace: org on a projects+tasks template with an admin and a member
"""

import pytest

from clienthub import create_app
from clienthub.models import db as _db
from clienthub.models.onboarding import WORKFLOW_PENDING, OnboardingWorkflow
from clienthub.models.organization import (
    ROLE_ORG_ADMIN,
    ROLE_ORG_MEMBER,
    Organization,
    OrgMembership,
    UserProfile,
)
from clienthub.models.workspace import (
    OrgTemplateAssignment,
    TemplateModule,
    WorkspaceTemplate,
)
from clienthub.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── ORM factories ────────────────────────────────────────────────────────


@pytest.fixture()
def make_org():
    def _make(name="Acme Corp", slug=None, with_workflow=True):
        org = Organization(name=name, slug=slug or name.lower().replace(" ", "-"), settings={})
        _db.session.add(org)
        _db.session.flush()
        if with_workflow:
            _db.session.add(OnboardingWorkflow(org_id=org.id, status=WORKFLOW_PENDING, completed_steps=[]))
        _db.session.commit()
        return org
    return _make


@pytest.fixture()
def make_user():
    def _make(user_id="user-1", email=None, full_name=None, super_admin=False):
        user = UserProfile(
            id=user_id,
            email=email or f"{user_id}@example.com",
            full_name=full_name,
            is_super_admin=super_admin,
        )
        _db.session.add(user)
        _db.session.commit()
        return user
    return _make


@pytest.fixture()
def add_member():
    def _add(org, user, role=ROLE_ORG_MEMBER):
        membership = OrgMembership(org_id=org.id, user_id=user.id, role=role)
        _db.session.add(membership)
        _db.session.commit()
        return membership
    return _add


@pytest.fixture()
def make_template():
    """``modules`` maps key → state, or key → dict of TemplateModule columns."""
    def _make(name="standard", modules=None, is_active=True):
        template = WorkspaceTemplate(name=name, is_active=is_active)
        _db.session.add(template)
        _db.session.flush()
        for index, (key, spec) in enumerate((modules or {}).items()):
            columns = {"default_state": spec} if isinstance(spec, str) else dict(spec)
            columns.setdefault("sort_order", index)
            columns.setdefault("config", {})
            _db.session.add(TemplateModule(template_id=template.id, module_key=key, **columns))
        _db.session.commit()
        return template
    return _make


@pytest.fixture()
def assign_template():
    def _assign(org, template):
        assignment = OrgTemplateAssignment(org_id=org.id, template_id=template.id)
        _db.session.add(assignment)
        _db.session.commit()
        return assignment
    return _assign


@pytest.fixture()
def auth_headers():
    def _headers(user):
        token = generate_access_token(user.id, user.email)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def workspace(make_org, make_user, add_member, make_template, assign_template):
    """Org on a template with dashboard/projects/tasks enabled and documents locked."""
    org = make_org()
    template = make_template("standard-client-portal", {
        "dashboard": "enabled",
        "projects": "enabled",
        "tasks": "enabled",
        "documents": "locked",
    })
    assign_template(org, template)
    admin = make_user("admin-1", full_name="Ada Admin")
    member = make_user("member-1", full_name="Max Member")
    add_member(org, admin, ROLE_ORG_ADMIN)
    add_member(org, member, ROLE_ORG_MEMBER)
    return {"org": org, "template": template, "admin": admin, "member": member}
