"""
ClientHub Portal
Onboarding models.

Models:
    - OnboardingEvent: append-only log of onboarding milestones (source of truth).
    - OnboardingWorkflow: per-organization denormalized status, repairable by replaying events.
"""

from clienthub.models import db
from clienthub.models.base import OrgScopedModel, iso, utcnow

WORKFLOW_PENDING = "pending"
WORKFLOW_IN_PROGRESS = "in_progress"
WORKFLOW_COMPLETED = "completed"
WORKFLOW_SKIPPED = "skipped"

WORKFLOW_STATUSES = {WORKFLOW_PENDING, WORKFLOW_IN_PROGRESS, WORKFLOW_COMPLETED, WORKFLOW_SKIPPED}
TERMINAL_WORKFLOW_STATUSES = {WORKFLOW_COMPLETED, WORKFLOW_SKIPPED}


class OnboardingEvent(OrgScopedModel):
    """Immutable event row. Never updated or deleted by the application."""

    __tablename__ = "onboarding_events"
    __table_args__ = (
        db.Index("ix_onboarding_events_org_type", "org_id", "event_type"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    event_type = db.Column(db.String(50), nullable=False)
    # "metadata" is reserved on declarative classes
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "metadata": self.meta or {},
            "created_at": iso(self.created_at),
        }


class OnboardingWorkflow(OrgScopedModel):
    """One row per organization tracking the onboarding state machine."""

    __tablename__ = "onboarding_workflows"
    __table_args__ = (
        db.UniqueConstraint("org_id", name="uq_onboarding_workflow_org"),
        db.CheckConstraint(
            "status IN ('pending','in_progress','completed','skipped')",
            name="ck_onboarding_workflow_status",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(20), nullable=False, default=WORKFLOW_PENDING)
    current_step = db.Column(db.String(50), nullable=True)
    completed_steps = db.Column(db.JSON, nullable=False, default=list)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_terminal(self):
        return self.status in TERMINAL_WORKFLOW_STATUSES

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "status": self.status,
            "current_step": self.current_step,
            "completed_steps": list(self.completed_steps or []),
            "started_at": iso(self.started_at),
            "completed_at": iso(self.completed_at),
        }
