"""
Identity blueprint.

Endpoints:
    GET /api/v1/me: caller identity, profile and organization memberships
"""

from flask import Blueprint, g

from clienthub.middleware.access_required import require_auth
from clienthub.services import membership_service
from clienthub.utils.errors import api_result

identity_bp = Blueprint("identity", __name__, url_prefix="/api/v1")


@identity_bp.route("/me", methods=["GET"])
@require_auth
def me():
    return api_result(membership_service.get_me(g.identity))
