"""
Projects Blueprint: gated by the ``projects`` module.

  GET    /api/v1/orgs/<org_id>/projects
  POST   /api/v1/orgs/<org_id>/projects
  GET    /api/v1/orgs/<org_id>/projects/<project_id>
  PUT    /api/v1/orgs/<org_id>/projects/<project_id>
  DELETE /api/v1/orgs/<org_id>/projects/<project_id>
"""

from flask import Blueprint, g, request

from clienthub.blueprints import json_body
from clienthub.core.exceptions import ErrorKind
from clienthub.middleware.access_required import require_module
from clienthub.services import project_service as svc
from clienthub.utils.errors import api_error, api_result

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1/orgs/<int:org_id>/projects")


@projects_bp.route("", methods=["GET"])
@require_module("projects")
def list_projects(org_id):
    return api_result(svc.list_projects(org_id, status=request.args.get("status")))


@projects_bp.route("", methods=["POST"])
@require_module("projects")
def create_project(org_id):
    data = json_body()
    if data is None:
        return api_error(ErrorKind.VALIDATION_ERROR, "Request body must be a JSON object")
    return api_result(svc.create_project(org_id, data, user_id=g.grant.user_id), status=201)


@projects_bp.route("/<int:project_id>", methods=["GET"])
@require_module("projects")
def get_project(org_id, project_id):
    return api_result(svc.get_project(org_id, project_id))


@projects_bp.route("/<int:project_id>", methods=["PUT"])
@require_module("projects")
def update_project(org_id, project_id):
    data = json_body()
    if data is None:
        return api_error(ErrorKind.VALIDATION_ERROR, "Request body must be a JSON object")
    return api_result(svc.update_project(org_id, project_id, data))


@projects_bp.route("/<int:project_id>", methods=["DELETE"])
@require_module("projects")
def delete_project(org_id, project_id):
    return api_result(svc.delete_project(org_id, project_id))
