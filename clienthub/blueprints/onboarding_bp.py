"""
Onboarding Blueprint: progress read model, event intake and skip.

  GET  /api/v1/orgs/<org_id>/onboarding         → steps + progress for the caller's role
  POST /api/v1/orgs/<org_id>/onboarding/events  → record one onboarding event
  POST /api/v1/orgs/<org_id>/onboarding/skip    → mark onboarding skipped (org admin)
"""

from flask import Blueprint, g

from clienthub.blueprints import json_body
from clienthub.core.exceptions import ErrorKind
from clienthub.middleware.access_required import require_membership, require_org_admin
from clienthub.onboarding.steps import EVENT_ONBOARDING_COMPLETED, EVENT_ONBOARDING_SKIPPED
from clienthub.services import onboarding_service as svc
from clienthub.utils.errors import api_error, api_result

onboarding_bp = Blueprint("onboarding", __name__, url_prefix="/api/v1/orgs/<int:org_id>/onboarding")

# Written by the workflow itself, never accepted from clients
SYSTEM_EVENTS = frozenset({EVENT_ONBOARDING_SKIPPED, EVENT_ONBOARDING_COMPLETED})


@onboarding_bp.route("", methods=["GET"])
@require_membership
def status(org_id):
    """Workflow summary, applicable steps and progress."""
    return api_result(svc.get_onboarding_status(org_id, is_admin=g.grant.is_admin))


@onboarding_bp.route("/events", methods=["POST"])
@require_membership
def record_event(org_id):
    """Record an event: ``{"event_type": "...", "metadata": {...}}``."""
    data = json_body()
    if data is None:
        return api_error(ErrorKind.VALIDATION_ERROR, "Request body must be a JSON object")
    event_type = data.get("event_type")
    if not event_type:
        return api_error(ErrorKind.VALIDATION_ERROR, "event_type is required", details={"event_type": "required"})
    if not isinstance(event_type, str):
        return api_error(ErrorKind.VALIDATION_ERROR, "event_type must be a string", details={"event_type": "invalid"})
    if event_type in SYSTEM_EVENTS:
        return api_error(ErrorKind.VALIDATION_ERROR, f"{event_type} cannot be recorded directly",
                         details={"event_type": "reserved"})
    result = svc.record_event(event_type, g.grant.user_id, org_id, data.get("metadata"))
    return api_result(result, status=201)


@onboarding_bp.route("/skip", methods=["POST"])
@require_org_admin
def skip(org_id):
    return api_result(svc.skip_onboarding(org_id, g.grant.user_id))
