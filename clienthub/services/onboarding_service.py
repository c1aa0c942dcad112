"""
Onboarding Engine: event ingestion and workflow state machine.

States per organization: pending → in_progress → completed | skipped.
completed and skipped are terminal; nothing here moves a workflow out of them.

The event log (``onboarding_events``) is the source of truth. The workflow
row and ``Organization.onboarding_status`` are a cache recomputed from the
full event history on every event, so re-delivered events and module
changes never corrupt them and a failed recompute is repaired by the next.

    record_event("profile_completed", user_id, org_id)   # insert + recompute
    skip_onboarding(org_id, user_id)                      # terminal override
    get_onboarding_status(org_id, is_admin=True)          # read model for the wizard
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from clienthub.core.exceptions import ErrorKind, NotFoundError, ValidationError
from clienthub.core.results import ServiceResult, service_boundary
from clienthub.models import db
from clienthub.models.audit import write_audit
from clienthub.models.base import utcnow
from clienthub.models.onboarding import (
    WORKFLOW_COMPLETED,
    WORKFLOW_IN_PROGRESS,
    WORKFLOW_PENDING,
    WORKFLOW_SKIPPED,
    OnboardingEvent,
    OnboardingWorkflow,
)
from clienthub.models.organization import Organization, UserProfile
from clienthub.modules.registry import MODULE_REGISTRY
from clienthub.onboarding.steps import (
    EVENT_ONBOARDING_SKIPPED,
    ONBOARDING_EVENT_TYPES,
    ONBOARDING_STEPS,
    compute_progress,
    get_applicable_steps,
    round_percent,
    step_status,
)
from clienthub.services.email_service import EmailService, app_url
from clienthub.services.module_service import get_enabled_module_keys

logger = logging.getLogger(__name__)

# Workflow status → Organization.onboarding_status
_ORG_MIRROR = {
    WORKFLOW_PENDING: "pending",
    WORKFLOW_IN_PROGRESS: "in_progress",
    WORKFLOW_COMPLETED: "completed",
    WORKFLOW_SKIPPED: "completed",
}


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════


def ensure_workflow(org_id: int, *, lock: bool = False) -> OnboardingWorkflow:
    """Return the org's workflow row, creating it in ``pending`` when missing (no commit)."""
    query = OnboardingWorkflow.query_for_org(org_id)
    if lock:
        query = query.with_for_update()
    workflow = query.first()
    if workflow is None:
        workflow = OnboardingWorkflow(org_id=org_id, status=WORKFLOW_PENDING, completed_steps=[])
        db.session.add(workflow)
        db.session.flush()
    return workflow


def completed_event_types(org_id: int) -> set[str]:
    rows = (
        db.session.query(OnboardingEvent.event_type)
        .filter(OnboardingEvent.org_id == org_id)
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def _org_steps(org_id: int, is_admin: bool, registry, catalog):
    enabled = get_enabled_module_keys(org_id, registry)
    return get_applicable_steps(catalog, enabled, is_admin)


# ═════════════════════════════════════════════════════════════════════════════
# Event recording
# ═════════════════════════════════════════════════════════════════════════════


def record_event(
    event_type: str,
    user_id: str | None,
    org_id: int,
    metadata: dict | None = None,
    *,
    registry=MODULE_REGISTRY,
    catalog=ONBOARDING_STEPS,
) -> ServiceResult:
    """Append one event, then recompute progress (best-effort).

    A failed insert is DATABASE_ERROR. A failed recompute is logged only:
    the event is already committed.
    """
    if not isinstance(event_type, str) or event_type not in ONBOARDING_EVENT_TYPES:
        return ServiceResult.failure(
            ErrorKind.VALIDATION_ERROR,
            f"Unknown onboarding event type: {event_type!r}",
            details={"event_type": "invalid"},
        )
    if metadata is not None and not isinstance(metadata, dict):
        return ServiceResult.failure(ErrorKind.VALIDATION_ERROR, "metadata must be an object",
                                     details={"metadata": "invalid"})

    extra = {"org_id": org_id, "user_id": user_id, "event_type": event_type}
    try:
        if db.session.get(Organization, org_id) is None:
            return ServiceResult.failure(ErrorKind.NOT_FOUND, f"Organization id={org_id} not found")
        event = OnboardingEvent(org_id=org_id, user_id=user_id, event_type=event_type,
                                meta=metadata or {})
        db.session.add(event)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to record onboarding event", extra=extra)
        return ServiceResult.failure(ErrorKind.DATABASE_ERROR, "Failed to record onboarding event")

    payload = event.to_dict()
    logger.info("Onboarding event %s recorded", event_type, extra=extra)
    update_progress(org_id, registry=registry, catalog=catalog)
    return ServiceResult.success(payload)


def update_progress(org_id: int, *, registry=MODULE_REGISTRY, catalog=ONBOARDING_STEPS):
    """Recompute the workflow from the full event history.

    Returns the computed ``Progress`` or None when recomputation failed.
    Org-level recomputation derives steps as an admin; ``invite_team`` is
    optional, so this never changes whether required steps are satisfied.
    """
    try:
        workflow = ensure_workflow(org_id, lock=True)
        events = completed_event_types(org_id)
        steps = _org_steps(org_id, True, registry, catalog)
        progress = compute_progress(steps, events)

        workflow.current_step = progress.current_step.key if progress.current_step else None
        workflow.completed_steps = list(progress.completed_keys)

        just_completed = False
        if not workflow.is_terminal:
            now = utcnow()
            if workflow.started_at is None and events:
                workflow.started_at = now
                workflow.status = WORKFLOW_IN_PROGRESS
            if progress.is_complete:
                workflow.status = WORKFLOW_COMPLETED
                workflow.completed_at = now
                workflow.started_at = workflow.started_at or now
                just_completed = True

        org = db.session.get(Organization, org_id)
        if org is not None:
            org.onboarding_status = _ORG_MIRROR[workflow.status]
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Onboarding progress recompute failed", extra={"org_id": org_id})
        return None

    if just_completed:
        logger.info("Onboarding completed", extra={"org_id": org_id})
        notify_onboarding_complete(org_id)
    return progress


# ═════════════════════════════════════════════════════════════════════════════
# Skip
# ═════════════════════════════════════════════════════════════════════════════


@service_boundary("skip_onboarding")
def skip_onboarding(org_id: int, user_id: str | None = None):
    """Force the workflow to ``skipped`` without evaluating steps.

    Skipping an already skipped workflow is a no-op success; skipping a
    completed one is rejected.
    """
    org = db.session.get(Organization, org_id)
    if org is None:
        raise NotFoundError("Organization", org_id)

    workflow = ensure_workflow(org_id, lock=True)
    if workflow.status == WORKFLOW_SKIPPED:
        return workflow.to_dict()
    if workflow.status == WORKFLOW_COMPLETED:
        raise ValidationError("Onboarding is already completed", details={"status": workflow.status})

    if user_id:
        db.session.add(OnboardingEvent(org_id=org_id, user_id=user_id,
                                       event_type=EVENT_ONBOARDING_SKIPPED, meta={}))
    now = utcnow()
    previous = workflow.status
    workflow.status = WORKFLOW_SKIPPED
    workflow.completed_at = now
    org.onboarding_status = _ORG_MIRROR[WORKFLOW_SKIPPED]
    write_audit(entity_type="organization", entity_id=org_id, action="onboarding.skip",
                org_id=org_id, user_id=user_id, metadata={"previous_status": previous})
    db.session.commit()
    logger.info("Onboarding skipped (was %s)", previous, extra={"org_id": org_id, "user_id": user_id})
    return workflow.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Read model
# ═════════════════════════════════════════════════════════════════════════════


@service_boundary("get_onboarding_status")
def get_onboarding_status(org_id: int, is_admin: bool = True, *,
                          registry=MODULE_REGISTRY, catalog=ONBOARDING_STEPS):
    """Workflow summary, applicable steps with status, and progress counters."""
    if db.session.get(Organization, org_id) is None:
        raise NotFoundError("Organization", org_id)

    workflow = OnboardingWorkflow.query_for_org(org_id).first()
    steps = _org_steps(org_id, is_admin, registry, catalog)
    progress = compute_progress(steps, completed_event_types(org_id))

    return {
        "workflow": workflow.to_dict() if workflow else None,
        "steps": [
            {**step.to_dict(), "status": step_status(step, progress)}
            for step in steps
        ],
        "progress": progress.to_dict(),
    }


# ═════════════════════════════════════════════════════════════════════════════
# Email side effects (fire-and-log)
# ═════════════════════════════════════════════════════════════════════════════


def notify_onboarding_complete(org_id: int) -> int:
    """Email every super admin. Returns the number of emails logged; never raises."""
    try:
        org = db.session.get(Organization, org_id)
        if org is None:
            return 0
        admins = UserProfile.query.filter_by(is_super_admin=True).all()
        for admin in admins:
            EmailService.send_from_template(
                to_email=admin.email,
                to_name=admin.full_name,
                template_name="admin_notification",
                context={
                    "subject": f"{org.name} completed onboarding",
                    "message": (f'The organization "{org.name}" has completed their onboarding '
                                "process and is now fully set up."),
                    "action_url": app_url(f"/admin/organizations/{org_id}"),
                    "action_label": "View Organization",
                },
                category="admin",
                org_id=org_id,
            )
        db.session.commit()
        return len(admins)
    except Exception:
        db.session.rollback()
        logger.exception("Onboarding completion notification failed", extra={"org_id": org_id})
        return 0


@service_boundary("send_onboarding_reminder")
def send_onboarding_reminder(org_id: int, user_id: str, *,
                             registry=MODULE_REGISTRY, catalog=ONBOARDING_STEPS):
    """Remind one user of the next step. No email when onboarding is finished."""
    profile = db.session.get(UserProfile, user_id)
    if profile is None:
        raise NotFoundError("UserProfile", user_id)
    org = db.session.get(Organization, org_id)
    if org is None:
        raise NotFoundError("Organization", org_id)

    workflow = OnboardingWorkflow.query_for_org(org_id).first()
    steps = _org_steps(org_id, True, registry, catalog)
    progress = compute_progress(steps, completed_event_types(org_id))
    if progress.is_complete or (workflow is not None and workflow.is_terminal):
        return {"sent": False, "reason": "onboarding_finished"}

    result = EmailService.deliver(
        to_email=profile.email,
        to_name=profile.full_name,
        template_name="onboarding_reminder",
        context={
            "name": profile.full_name or profile.email,
            "org_name": org.name,
            "current_step": progress.current_step.title if progress.current_step else "Continue setup",
            "percent": round_percent(progress.completed_steps, progress.total_steps),
            "dashboard_url": app_url("/onboarding"),
        },
        category="onboarding",
        org_id=org_id,
    )
    db.session.commit()
    if not result.ok:
        return {"sent": False, "reason": result.message}
    return {"sent": True, "email_id": result.data["id"]}
