"""
Tasks Blueprint: gated by the ``tasks`` module.

  GET    /api/v1/orgs/<org_id>/tasks                 ?project_id=&status=
  POST   /api/v1/orgs/<org_id>/tasks
  GET    /api/v1/orgs/<org_id>/tasks/board           ?project_id=
  GET    /api/v1/orgs/<org_id>/tasks/<task_id>
  PUT    /api/v1/orgs/<org_id>/tasks/<task_id>
  DELETE /api/v1/orgs/<org_id>/tasks/<task_id>
  POST   /api/v1/orgs/<org_id>/tasks/<task_id>/move  {"status": "done", "position": 0}
"""

from flask import Blueprint, g, request

from clienthub.blueprints import json_body, query_int
from clienthub.core.exceptions import ErrorKind
from clienthub.middleware.access_required import require_module
from clienthub.services import task_service as svc
from clienthub.utils.errors import api_error, api_result

tasks_bp = Blueprint("tasks", __name__, url_prefix="/api/v1/orgs/<int:org_id>/tasks")


@tasks_bp.route("", methods=["GET"])
@require_module("tasks")
def list_tasks(org_id):
    return api_result(svc.list_tasks(
        org_id, project_id=query_int("project_id"), status=request.args.get("status"),
    ))


@tasks_bp.route("", methods=["POST"])
@require_module("tasks")
def create_task(org_id):
    data = json_body()
    if data is None:
        return api_error(ErrorKind.VALIDATION_ERROR, "Request body must be a JSON object")
    return api_result(svc.create_task(org_id, data, user_id=g.grant.user_id), status=201)


@tasks_bp.route("/board", methods=["GET"])
@require_module("tasks")
def board(org_id):
    return api_result(svc.get_board(org_id, project_id=query_int("project_id")))


@tasks_bp.route("/<int:task_id>", methods=["GET"])
@require_module("tasks")
def get_task(org_id, task_id):
    return api_result(svc.get_task(org_id, task_id))


@tasks_bp.route("/<int:task_id>", methods=["PUT"])
@require_module("tasks")
def update_task(org_id, task_id):
    data = json_body()
    if data is None:
        return api_error(ErrorKind.VALIDATION_ERROR, "Request body must be a JSON object")
    return api_result(svc.update_task(org_id, task_id, data, user_id=g.grant.user_id))


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@require_module("tasks")
def delete_task(org_id, task_id):
    return api_result(svc.delete_task(org_id, task_id))


@tasks_bp.route("/<int:task_id>/move", methods=["POST"])
@require_module("tasks")
def move_task(org_id, task_id):
    """Kanban drag-and-drop: new column and zero-based position."""
    data = json_body()
    if data is None:
        return api_error(ErrorKind.VALIDATION_ERROR, "Request body must be a JSON object")
    return api_result(svc.move_task(org_id, task_id, data.get("status"), data.get("position")))
