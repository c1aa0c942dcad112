"""
Task Service: organization-scoped tasks and the kanban reordering protocol.

Task position is (status, sort_order). Every write that changes a position
locks the affected (org_id, status) partitions with ``SELECT ... FOR UPDATE``,
renumbers them to 0..N-1 and commits once, so a move is applied entirely or
not at all.

    move_task(org_id, task_id, "done", 0)
"""

from __future__ import annotations

import logging

from clienthub.core.exceptions import NotFoundError, ValidationError
from clienthub.core.results import service_boundary
from clienthub.models import db
from clienthub.models.organization import OrgMembership, UserProfile
from clienthub.models.project import TASK_PRIORITIES, TASK_STATUSES, Project, Task
from clienthub.onboarding.steps import EVENT_FIRST_TASK_CREATED
from clienthub.services import onboarding_service
from clienthub.services.email_service import EmailService, app_url
from clienthub.utils.validation import (
    parse_date_input,
    raise_if_errors,
    validate_enum,
    validate_length,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Partition helpers
# ═════════════════════════════════════════════════════════════════════════════


def _locked_partition(org_id: int, status: str, *, exclude_id: int | None = None) -> list[Task]:
    """Rows of one (org_id, status) column in board order, locked for update."""
    query = Task.query_for_org(org_id).filter(Task.status == status)
    if exclude_id is not None:
        query = query.filter(Task.id != exclude_id)
    return query.order_by(Task.sort_order, Task.id).with_for_update().all()


def _renumber(rows: list[Task]) -> None:
    for index, row in enumerate(rows):
        if row.sort_order != index:
            row.sort_order = index


def _get_scoped(org_id: int, task_id: int, *, lock: bool = False) -> Task:
    query = Task.query_for_org(org_id).filter_by(id=task_id)
    if lock:
        query = query.with_for_update()
    task = query.first()
    if task is None:
        raise NotFoundError("Task", task_id, org_id)
    return task


def _place(task: Task, org_id: int, new_status: str, new_position: int | None) -> None:
    """Move ``task`` into ``new_status`` at ``new_position`` (None appends). No commit.

    Positions past the end of the target column are clamped to the end.
    """
    old_status = task.status
    target = _locked_partition(org_id, new_status, exclude_id=task.id)
    if old_status != new_status:
        vacated = _locked_partition(org_id, old_status, exclude_id=task.id)
        _renumber(vacated)

    position = len(target) if new_position is None else min(new_position, len(target))
    target.insert(position, task)
    task.status = new_status
    _renumber(target)


def _validate_position(value):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("position must be an integer", details={"position": "invalid"})
    if value < 0:
        raise ValidationError("position must be >= 0", details={"position": "negative"})
    return value


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════


def _validate(org_id: int, data: dict, *, partial: bool) -> dict:
    errors = {}
    if not partial or "title" in data:
        errors["title"] = validate_length(data.get("title"), 200, "title", min_len=1)
    if "description" in data:
        errors["description"] = validate_length(data.get("description"), 2000, "description")
    if "status" in data:
        errors["status"] = validate_enum(data.get("status"), TASK_STATUSES, "status")
    if "priority" in data:
        errors["priority"] = validate_enum(data.get("priority"), TASK_PRIORITIES, "priority")

    cleaned = {}
    if "due_date" in data:
        try:
            cleaned["due_date"] = parse_date_input(data.get("due_date"))
        except ValueError as exc:
            errors["due_date"] = str(exc)
    project_id = data.get("project_id")
    if project_id is not None:
        if isinstance(project_id, bool) or not isinstance(project_id, int):
            errors["project_id"] = "project_id must be an integer"
        elif Project.query_for_org(org_id).filter_by(id=project_id).first() is None:
            errors["project_id"] = "Project not found in this organization"
    if data.get("assignee_id"):
        member = OrgMembership.query.filter_by(org_id=org_id, user_id=str(data["assignee_id"])).first()
        if member is None:
            errors["assignee_id"] = "Assignee is not a member of this organization"
    raise_if_errors(errors)
    return cleaned


def _notify_assignee(task: Task, actor_id: str | None) -> None:
    """task_assigned email; skipped when the actor assigns themself."""
    if not task.assignee_id or task.assignee_id == actor_id:
        return
    profile = db.session.get(UserProfile, task.assignee_id)
    if profile is None:
        return
    actor = db.session.get(UserProfile, actor_id) if actor_id else None
    EmailService.send_from_template(
        to_email=profile.email,
        to_name=profile.full_name,
        template_name="task_assigned",
        context={
            "name": profile.full_name or profile.email,
            "assigned_by": (actor.full_name or actor.email) if actor else "Someone",
            "task_title": task.title,
            "task_description": task.description or "",
            "task_url": app_url(f"/tasks/{task.id}"),
        },
        category="task",
        org_id=task.org_id,
    )


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


@service_boundary("list_tasks")
def list_tasks(org_id: int, project_id: int | None = None, status: str | None = None):
    query = Task.query_for_org(org_id)
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    if status:
        query = query.filter(Task.status == status)
    return [t.to_dict() for t in query.order_by(Task.status, Task.sort_order, Task.id).all()]


@service_boundary("get_task")
def get_task(org_id: int, task_id: int):
    return _get_scoped(org_id, task_id).to_dict()


@service_boundary("get_board")
def get_board(org_id: int, project_id: int | None = None):
    """Tasks grouped into one column per status, each in sort_order."""
    query = Task.query_for_org(org_id)
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    board = {status: [] for status in TASK_STATUSES}
    for task in query.order_by(Task.sort_order, Task.id).all():
        board.setdefault(task.status, []).append(task.to_dict())
    return {"columns": [{"status": status, "tasks": board[status]} for status in TASK_STATUSES]}


# ═════════════════════════════════════════════════════════════════════════════
# Commands
# ═════════════════════════════════════════════════════════════════════════════


@service_boundary("create_task")
def create_task(org_id: int, data: dict, user_id: str | None = None):
    """Create a task at the end of its status column."""
    cleaned = _validate(org_id, data, partial=False)
    is_first = Task.query_for_org(org_id).first() is None
    status = data.get("status") or "todo"

    column = _locked_partition(org_id, status)
    task = Task(
        org_id=org_id,
        project_id=data.get("project_id"),
        title=data["title"].strip(),
        description=data.get("description"),
        status=status,
        priority=data.get("priority") or "medium",
        sort_order=len(column),
        due_date=cleaned.get("due_date"),
        assignee_id=str(data["assignee_id"]) if data.get("assignee_id") else None,
        created_by=user_id,
    )
    db.session.add(task)
    db.session.flush()
    _notify_assignee(task, user_id)
    db.session.commit()
    logger.info("Created task %s in %s", task.id, status, extra={"org_id": org_id, "user_id": user_id})

    payload = task.to_dict()
    if is_first:
        onboarding_service.record_event(EVENT_FIRST_TASK_CREATED, user_id, org_id, {"task_id": task.id})
    return payload


@service_boundary("update_task")
def update_task(org_id: int, task_id: int, data: dict, user_id: str | None = None):
    """Update fields; a status change appends the task to the end of its new column."""
    cleaned = _validate(org_id, data, partial=True)
    task = _get_scoped(org_id, task_id, lock=True)
    previous_assignee = task.assignee_id

    if "title" in data:
        task.title = data["title"].strip()
    for field in ("description", "priority", "project_id"):
        if field in data:
            setattr(task, field, data[field])
    if "due_date" in cleaned:
        task.due_date = cleaned["due_date"]
    if "assignee_id" in data:
        task.assignee_id = str(data["assignee_id"]) if data["assignee_id"] else None

    new_status = data.get("status")
    if new_status and new_status != task.status:
        _place(task, org_id, new_status, None)

    if task.assignee_id != previous_assignee:
        _notify_assignee(task, user_id)
    db.session.commit()
    return task.to_dict()


@service_boundary("delete_task")
def delete_task(org_id: int, task_id: int):
    """Delete a task and close the gap it leaves in its column."""
    task = _get_scoped(org_id, task_id, lock=True)
    rest = _locked_partition(org_id, task.status, exclude_id=task.id)
    db.session.delete(task)
    _renumber(rest)
    db.session.commit()
    logger.info("Deleted task %s", task_id, extra={"org_id": org_id})
    return {"id": task_id, "deleted": True}


@service_boundary("move_task")
def move_task(org_id: int, task_id: int, new_status: str, new_position: int):
    """Move a task to ``new_position`` of the ``new_status`` column in one transaction.

    Same column: tasks between the old and new position shift by one.
    Other column: the old column closes its gap and the new column opens a
    slot at ``new_position``. Both columns end as 0..N-1.
    """
    raise_if_errors({"status": validate_enum(new_status, TASK_STATUSES, "status")})
    if new_status is None:
        raise ValidationError("status is required", details={"status": "required"})
    position = _validate_position(new_position)
    if position is None:
        raise ValidationError("position is required", details={"position": "required"})

    task = _get_scoped(org_id, task_id, lock=True)
    old = (task.status, task.sort_order)
    if old == (new_status, position):
        return task.to_dict()

    _place(task, org_id, new_status, position)
    db.session.commit()
    logger.info(
        "Moved task %s from %s/%s to %s/%s", task_id, old[0], old[1], task.status, task.sort_order,
        extra={"org_id": org_id},
    )
    return task.to_dict()
