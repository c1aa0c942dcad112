"""
Admin Blueprint: super admin workspace administration.

  GET    /api/v1/admin/templates                              → templates with modules
  POST   /api/v1/admin/templates                              → create template
  PUT    /api/v1/admin/templates/<id>/modules/<module_key>    → upsert template module
  PUT    /api/v1/admin/orgs/<org_id>/template                 → assign template
  PUT    /api/v1/admin/orgs/<org_id>/modules/<module_key>     → set module override
  DELETE /api/v1/admin/orgs/<org_id>/modules/<module_key>     → clear module override
  POST   /api/v1/admin/orgs/<org_id>/onboarding/reminder      → email a reminder to one user
"""

from flask import Blueprint, g, jsonify, request

from clienthub.blueprints import json_body
from clienthub.core.exceptions import ErrorKind
from clienthub.middleware.access_required import require_super_admin
from clienthub.services import module_service
from clienthub.services import onboarding_service
from clienthub.utils.errors import api_error, api_result

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


def _body():
    data = json_body()
    if data is None:
        return None, api_error(ErrorKind.VALIDATION_ERROR, "Request body must be a JSON object")
    return data, None


# ═════════════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════════════


@admin_bp.route("/templates", methods=["GET"])
@require_super_admin
def list_templates():
    active_only = request.args.get("active") in ("1", "true")
    return jsonify(module_service.list_templates(active_only=active_only)), 200


@admin_bp.route("/templates", methods=["POST"])
@require_super_admin
def create_template():
    data, err = _body()
    if err:
        return err
    return api_result(module_service.create_template(data, actor_id=g.grant.user_id), status=201)


@admin_bp.route("/templates/<int:template_id>/modules/<module_key>", methods=["PUT"])
@require_super_admin
def upsert_template_module(template_id, module_key):
    data, err = _body()
    if err:
        return err
    return api_result(module_service.upsert_template_module(
        template_id, module_key, data, actor_id=g.grant.user_id,
    ))


# ═════════════════════════════════════════════════════════════════════════════
# Organization workspace
# ═════════════════════════════════════════════════════════════════════════════


@admin_bp.route("/orgs/<int:org_id>/template", methods=["PUT"])
@require_super_admin
def assign_template(org_id):
    data, err = _body()
    if err:
        return err
    template_id = data.get("template_id")
    if not isinstance(template_id, int) or isinstance(template_id, bool):
        return api_error(ErrorKind.VALIDATION_ERROR, "template_id must be an integer",
                         details={"template_id": "invalid"})
    return api_result(module_service.assign_template(org_id, template_id, actor_id=g.grant.user_id))


@admin_bp.route("/orgs/<int:org_id>/modules/<module_key>", methods=["PUT"])
@require_super_admin
def set_module_override(org_id, module_key):
    data, err = _body()
    if err:
        return err
    return api_result(module_service.set_module_override(
        org_id, module_key, data, actor_id=g.grant.user_id,
    ))


@admin_bp.route("/orgs/<int:org_id>/modules/<module_key>", methods=["DELETE"])
@require_super_admin
def clear_module_override(org_id, module_key):
    return api_result(module_service.clear_module_override(org_id, module_key, actor_id=g.grant.user_id))


@admin_bp.route("/orgs/<int:org_id>/onboarding/reminder", methods=["POST"])
@require_super_admin
def send_reminder(org_id):
    data, err = _body()
    if err:
        return err
    user_id = data.get("user_id")
    if not user_id:
        return api_error(ErrorKind.VALIDATION_ERROR, "user_id is required", details={"user_id": "required"})
    return api_result(onboarding_service.send_onboarding_reminder(org_id, str(user_id)))
