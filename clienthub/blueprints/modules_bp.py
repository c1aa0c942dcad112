"""
Modules & Members Blueprint: what an organization can see, and who is in it.

Endpoints:
    GET  /api/v1/orgs/<org_id>/modules              : resolved module list
    GET  /api/v1/orgs/<org_id>/modules/<module_key> : effective state of one module
    GET  /api/v1/orgs/<org_id>/members              : members (org admin)
    PUT  /api/v1/orgs/<org_id>/members/<user_id>    : change role (org admin)
"""

from flask import Blueprint, g, jsonify

from clienthub.blueprints import json_body
from clienthub.core.exceptions import ErrorKind
from clienthub.middleware.access_required import require_membership, require_org_admin
from clienthub.models.workspace import MODULE_STATE_ENABLED
from clienthub.modules.registry import get_module
from clienthub.services import membership_service, module_service
from clienthub.utils.errors import api_error, api_result

modules_bp = Blueprint("modules", __name__, url_prefix="/api/v1/orgs/<int:org_id>")


@modules_bp.route("/modules", methods=["GET"])
@require_membership
def list_modules(org_id):
    result = module_service.resolve_modules(org_id)
    if not result.ok:
        return api_result(result)
    return jsonify({
        "org_id": org_id,
        "role": g.grant.role,
        "modules": [m.to_dict() for m in result.data],
    }), 200


@modules_bp.route("/modules/<module_key>", methods=["GET"])
@require_membership
def module_state(org_id, module_key):
    if get_module(module_key) is None:
        return api_error(ErrorKind.NOT_FOUND, f"Unknown module: {module_key}")
    state = module_service.resolve_module_state(org_id, module_key)
    return jsonify({
        "org_id": org_id,
        "module_key": module_key,
        "state": state,
        "is_accessible": state == MODULE_STATE_ENABLED,
    }), 200


@modules_bp.route("/members", methods=["GET"])
@require_org_admin
def list_members(org_id):
    return api_result(membership_service.list_members(org_id))


@modules_bp.route("/members/<user_id>", methods=["PUT"])
@require_org_admin
def change_member_role(org_id, user_id):
    data = json_body()
    if data is None:
        return api_error(ErrorKind.VALIDATION_ERROR, "Request body must be a JSON object")
    return api_result(membership_service.change_member_role(
        org_id, user_id, data.get("role"), actor_id=g.grant.user_id,
    ))
