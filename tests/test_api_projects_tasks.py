"""
Projects & Tasks API tests: CRUD, validation, tenant isolation, board view,
assignment e-mails and the first-project / first-task onboarding events.
"""

import pytest

from clienthub.models import db
from clienthub.models.email import EmailLog
from clienthub.models.onboarding import OnboardingEvent
from clienthub.models.project import Task


@pytest.fixture()
def api(client, workspace, auth_headers):
    """Small request helper bound to the workspace org and a member token."""
    base = f"/api/v1/orgs/{workspace['org'].id}"

    class _Api:
        headers = auth_headers(workspace["member"])

        def get(self, path, **kw):
            return client.get(base + path, headers=self.headers, **kw)

        def post(self, path, body=None):
            return client.post(base + path, json=body or {}, headers=self.headers)

        def put(self, path, body):
            return client.put(base + path, json=body, headers=self.headers)

        def delete(self, path):
            return client.delete(base + path, headers=self.headers)

    return _Api()


def _event_types(org):
    return [e.event_type for e in OnboardingEvent.query_for_org(org.id).all()]


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════


class TestProjects:

    def test_create_and_get(self, api):
        """POST returns 201 with defaults; GET returns the same row."""
        res = api.post("/projects", {"name": "Website Redesign", "start_date": "2026-01-15"})
        assert res.status_code == 201
        project = res.get_json()
        assert project["status"] == "planning"
        assert project["start_date"] == "2026-01-15"
        assert project["created_by"] == "member-1"

        res = api.get(f"/projects/{project['id']}")
        assert res.status_code == 200
        assert res.get_json()["name"] == "Website Redesign"

    def test_first_project_records_event_once(self, api, workspace):
        """Only the first project emits first_project_created."""
        api.post("/projects", {"name": "One"})
        api.post("/projects", {"name": "Two"})
        assert _event_types(workspace["org"]).count("first_project_created") == 1

    def test_list_newest_first_and_filter(self, api):
        """List is newest first; ?status filters."""
        api.post("/projects", {"name": "Old"})
        api.post("/projects", {"name": "New", "status": "active"})
        names = [p["name"] for p in api.get("/projects").get_json()]
        assert names == ["New", "Old"]
        active = api.get("/projects", query_string={"status": "active"}).get_json()
        assert [p["name"] for p in active] == ["New"]

    @pytest.mark.parametrize("body,field", [
        ({}, "name"),
        ({"name": "   "}, "name"),
        ({"name": "x" * 101}, "name"),
        ({"name": "ok", "status": "paused"}, "status"),
        ({"name": "ok", "status": ["active"]}, "status"),
        ({"name": "ok", "end_date": "15/01/2026"}, "end_date"),
    ])
    def test_validation(self, api, body, field):
        """Invalid fields → 400 with per-field details."""
        res = api.post("/projects", body)
        assert res.status_code == 400
        assert field in res.get_json()["details"]

    def test_update(self, api):
        """PUT changes only the given fields."""
        pid = api.post("/projects", {"name": "P", "description": "d"}).get_json()["id"]
        res = api.put(f"/projects/{pid}", {"status": "on_hold"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "on_hold"
        assert res.get_json()["description"] == "d"

    def test_delete_detaches_tasks(self, api):
        """Deleting a project keeps its tasks with project_id cleared."""
        pid = api.post("/projects", {"name": "P"}).get_json()["id"]
        tid = api.post("/tasks", {"title": "T", "project_id": pid}).get_json()["id"]

        res = api.delete(f"/projects/{pid}")
        assert res.get_json() == {"id": pid, "deleted": True}
        assert api.get(f"/projects/{pid}").status_code == 404
        assert db.session.get(Task, tid).project_id is None

    def test_other_org_project_is_404(self, api, make_org):
        """Rows from another organization are reported as not found."""
        from clienthub.services.project_service import create_project

        other = make_org("Other Co")
        foreign = create_project(other.id, {"name": "Secret"}).data
        assert api.get(f"/projects/{foreign['id']}").status_code == 404
        assert api.put(f"/projects/{foreign['id']}", {"name": "Mine"}).status_code == 404
        assert api.delete(f"/projects/{foreign['id']}").status_code == 404

    def test_non_object_body(self, client, workspace, auth_headers):
        """A JSON array body is rejected."""
        res = client.post(f"/api/v1/orgs/{workspace['org'].id}/projects", json=["x"],
                          headers=auth_headers(workspace["member"]))
        assert res.status_code == 400

    def test_non_json_content_type(self, client, workspace, auth_headers):
        """Non-JSON bodies are refused with 415."""
        res = client.post(f"/api/v1/orgs/{workspace['org'].id}/projects", data="name=x",
                          content_type="text/plain",
                          headers=auth_headers(workspace["member"]))
        assert res.status_code == 415


# ═════════════════════════════════════════════════════════════════════════════
# Tasks
# ═════════════════════════════════════════════════════════════════════════════


class TestTasks:

    def test_create_defaults(self, api, workspace):
        """New task: todo, medium, appended, first_task_created recorded."""
        res = api.post("/tasks", {"title": "Kickoff call"})
        assert res.status_code == 201
        task = res.get_json()
        assert (task["status"], task["priority"], task["sort_order"]) == ("todo", "medium", 0)
        assert "first_task_created" in _event_types(workspace["org"])

    @pytest.mark.parametrize("body,field", [
        ({}, "title"),
        ({"title": "x" * 201}, "title"),
        ({"title": "ok", "status": "blocked"}, "status"),
        ({"title": "ok", "priority": "asap"}, "priority"),
        ({"title": "ok", "priority": ["high"]}, "priority"),
        ({"title": "ok", "status": {}}, "status"),
        ({"title": "ok", "project_id": [1]}, "project_id"),
        ({"title": "ok", "due_date": "tomorrow"}, "due_date"),
        ({"title": "ok", "project_id": 424242}, "project_id"),
        ({"title": "ok", "assignee_id": "stranger"}, "assignee_id"),
    ])
    def test_validation(self, api, body, field):
        """Invalid fields → 400 with per-field details."""
        res = api.post("/tasks", body)
        assert res.status_code == 400
        assert field in res.get_json()["details"]

    def test_project_from_other_org_rejected(self, api, make_org):
        """project_id must belong to the same organization."""
        from clienthub.services.project_service import create_project

        other = make_org("Other Co")
        foreign = create_project(other.id, {"name": "Secret"}).data
        res = api.post("/tasks", {"title": "T", "project_id": foreign["id"]})
        assert res.status_code == 400

    def test_list_filters(self, api):
        """?project_id and ?status narrow the list."""
        pid = api.post("/projects", {"name": "P"}).get_json()["id"]
        api.post("/tasks", {"title": "In project", "project_id": pid})
        api.post("/tasks", {"title": "Loose", "status": "done"})

        by_project = api.get("/tasks", query_string={"project_id": pid}).get_json()
        assert [t["title"] for t in by_project] == ["In project"]
        done = api.get("/tasks", query_string={"status": "done"}).get_json()
        assert [t["title"] for t in done] == ["Loose"]

    def test_board_has_every_column(self, api):
        """Board returns one column per status in fixed order."""
        api.post("/tasks", {"title": "A"})
        api.post("/tasks", {"title": "B", "status": "review"})
        api.post("/tasks", {"title": "C"})

        columns = api.get("/tasks/board").get_json()["columns"]
        assert [c["status"] for c in columns] == ["todo", "in_progress", "review", "done", "archived"]
        assert [t["title"] for t in columns[0]["tasks"]] == ["A", "C"]
        assert [t["title"] for t in columns[2]["tasks"]] == ["B"]

    def test_get_update_delete(self, api):
        """Single-task round trip through the API."""
        tid = api.post("/tasks", {"title": "T"}).get_json()["id"]
        res = api.put(f"/tasks/{tid}", {"title": "T2", "due_date": "2026-03-01"})
        assert res.get_json()["title"] == "T2"
        assert res.get_json()["due_date"] == "2026-03-01"
        assert api.get(f"/tasks/{tid}").get_json()["title"] == "T2"
        assert api.delete(f"/tasks/{tid}").status_code == 200
        assert api.get(f"/tasks/{tid}").status_code == 404

    def test_assignment_emails_assignee(self, api, workspace):
        """Assigning someone else sends task_assigned; self-assignment does not."""
        api.post("/tasks", {"title": "Mine", "assignee_id": "member-1"})
        api.post("/tasks", {"title": "Theirs", "assignee_id": "admin-1"})

        emails = EmailLog.query.filter_by(template_name="task_assigned").all()
        assert len(emails) == 1
        assert emails[0].recipient_email == workspace["admin"].email
        assert emails[0].category == "task"
        assert "Theirs" in emails[0].subject

    def test_reassignment_emails_new_assignee(self, api):
        """Changing the assignee on update notifies the new one."""
        tid = api.post("/tasks", {"title": "T"}).get_json()["id"]
        api.put(f"/tasks/{tid}", {"assignee_id": "admin-1"})
        api.put(f"/tasks/{tid}", {"description": "more detail"})
        assert EmailLog.query.filter_by(template_name="task_assigned").count() == 1

    def test_tasks_module_locked(self, api, workspace):
        """Overriding tasks to locked blocks every task endpoint."""
        from clienthub.services.module_service import set_module_override

        set_module_override(workspace["org"].id, "tasks", {"state_override": "locked"})
        res = api.get("/tasks")
        assert res.status_code == 403
        assert res.get_json()["code"] == "MODULE_LOCKED"


# ═════════════════════════════════════════════════════════════════════════════
# Onboarding endpoints
# ═════════════════════════════════════════════════════════════════════════════


class TestOnboardingEndpoints:

    def test_record_event_and_status(self, api):
        """POST /events returns 201; GET reflects the progress."""
        res = api.post("/onboarding/events", {"event_type": "profile_completed"})
        assert res.status_code == 201
        assert res.get_json()["event_type"] == "profile_completed"

        body = api.get("/onboarding").get_json()
        assert body["workflow"]["status"] == "in_progress"
        assert [s["key"] for s in body["steps"]] == ["profile", "first_project", "first_task"]
        assert body["progress"]["current_step"] == "first_project"

    @pytest.mark.parametrize("body", [{}, {"event_type": "onboarding_completed"},
                                      {"event_type": "onboarding_skipped"},
                                      {"event_type": ["profile_completed"]}, {"event_type": {"a": 1}}])
    def test_rejected_events(self, api, body):
        """Missing, non-string and workflow-owned event types are refused."""
        assert api.post("/onboarding/events", body).status_code == 400

    def test_unknown_event_type(self, api):
        """Unknown types are a validation error."""
        res = api.post("/onboarding/events", {"event_type": "made_coffee"})
        assert res.status_code == 400

    def test_admin_skip(self, client, workspace, auth_headers):
        """Org admins can skip."""
        res = client.post(f"/api/v1/orgs/{workspace['org'].id}/onboarding/skip",
                          headers=auth_headers(workspace["admin"]))
        assert res.status_code == 200
        assert res.get_json()["status"] == "skipped"

    def test_full_walkthrough_completes(self, api):
        """Profile + first project + first task completes onboarding."""
        api.post("/onboarding/events", {"event_type": "profile_completed"})
        api.post("/projects", {"name": "P"})
        api.post("/tasks", {"title": "T"})
        body = api.get("/onboarding").get_json()
        assert body["workflow"]["status"] == "completed"
        assert body["progress"]["percent_complete"] == 100
