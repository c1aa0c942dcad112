"""
Project Service: organization-scoped project CRUD.

Callers gate access with ``check_module_access(org_id, "projects")`` first.
Rows outside ``org_id`` are reported as NOT_FOUND.
"""

import logging

from clienthub.core.exceptions import NotFoundError
from clienthub.core.results import service_boundary
from clienthub.models import db
from clienthub.models.project import PROJECT_STATUSES, Project
from clienthub.onboarding.steps import EVENT_FIRST_PROJECT_CREATED
from clienthub.services import onboarding_service
from clienthub.utils.validation import (
    parse_date_input,
    raise_if_errors,
    validate_enum,
    validate_length,
)

logger = logging.getLogger(__name__)


def _get_scoped(org_id, project_id):
    project = Project.query_for_org(org_id).filter_by(id=project_id).first()
    if project is None:
        raise NotFoundError("Project", project_id, org_id)
    return project


def _validate(data, *, partial):
    errors = {}
    if not partial or "name" in data:
        errors["name"] = validate_length(data.get("name"), 100, "name", min_len=1)
    if "description" in data:
        errors["description"] = validate_length(data.get("description"), 1000, "description")
    if "status" in data:
        errors["status"] = validate_enum(data.get("status"), PROJECT_STATUSES, "status")
    dates = {}
    for field in ("start_date", "end_date"):
        if field in data:
            try:
                dates[field] = parse_date_input(data.get(field))
            except ValueError as exc:
                errors[field] = str(exc)
    raise_if_errors(errors)
    return dates


@service_boundary("list_projects")
def list_projects(org_id, status=None):
    query = Project.query_for_org(org_id)
    if status:
        query = query.filter_by(status=status)
    return [p.to_dict() for p in query.order_by(Project.created_at.desc(), Project.id.desc()).all()]


@service_boundary("get_project")
def get_project(org_id, project_id):
    return _get_scoped(org_id, project_id).to_dict()


@service_boundary("create_project")
def create_project(org_id, data, user_id=None):
    dates = _validate(data, partial=False)
    is_first = Project.query_for_org(org_id).first() is None
    project = Project(
        org_id=org_id,
        name=data["name"].strip(),
        description=data.get("description"),
        status=data.get("status") or "planning",
        start_date=dates.get("start_date"),
        end_date=dates.get("end_date"),
        created_by=user_id,
    )
    db.session.add(project)
    db.session.commit()
    logger.info("Created project %s", project.id, extra={"org_id": org_id, "user_id": user_id})

    payload = project.to_dict()
    if is_first:
        onboarding_service.record_event(EVENT_FIRST_PROJECT_CREATED, user_id, org_id,
                                        {"project_id": project.id})
    return payload


@service_boundary("update_project")
def update_project(org_id, project_id, data):
    dates = _validate(data, partial=True)
    project = _get_scoped(org_id, project_id)
    if "name" in data:
        project.name = data["name"].strip()
    for field in ("description", "status"):
        if field in data:
            setattr(project, field, data[field])
    for field, value in dates.items():
        setattr(project, field, value)
    db.session.commit()
    return project.to_dict()


@service_boundary("delete_project")
def delete_project(org_id, project_id):
    """Delete a project; its tasks stay on the board with ``project_id`` cleared."""
    project = _get_scoped(org_id, project_id)
    for task in project.tasks:
        task.project_id = None
    db.session.delete(project)
    db.session.commit()
    logger.info("Deleted project %s", project_id, extra={"org_id": org_id})
    return {"id": project_id, "deleted": True}
