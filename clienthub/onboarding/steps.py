"""
Onboarding step catalog and progress engine.

Pure functions over immutable data: no database access, no Flask context.
``clienthub.services.onboarding_service`` feeds them the enabled module keys
and the set of recorded event types for an organization.

Step derivation:
    get_applicable_steps(ONBOARDING_STEPS, {"projects", "tasks"}, is_admin=True)

Progress:
    compute_progress(steps, {"profile_completed", "first_project_created"})

A step is complete when every one of its ``required_events`` has been
recorded at least once. Only non-optional steps gate completion. The scan
is in declared ``order``; ties are never broken by key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

# ── Event types ──────────────────────────────────────────────────────────────

EVENT_PROFILE_COMPLETED = "profile_completed"
EVENT_AVATAR_UPLOADED = "avatar_uploaded"
EVENT_NOTIFICATION_PREFERENCES_SET = "notification_preferences_set"
EVENT_FIRST_PROJECT_CREATED = "first_project_created"
EVENT_FIRST_TASK_CREATED = "first_task_created"
EVENT_FIRST_DOCUMENT_UPLOADED = "first_document_uploaded"
EVENT_TEAM_MEMBER_INVITED = "team_member_invited"
EVENT_TEAM_MEMBER_JOINED = "team_member_joined"
EVENT_INTEGRATION_CONNECTED = "integration_connected"
EVENT_WORKFLOWS_EXPLORED = "workflows_explored"
EVENT_OUTREACH_CAMPAIGN_CREATED = "outreach_campaign_created"
EVENT_ANALYTICS_DASHBOARD_VIEWED = "analytics_dashboard_viewed"
EVENT_ONBOARDING_SKIPPED = "onboarding_skipped"
EVENT_ONBOARDING_COMPLETED = "onboarding_completed"

ONBOARDING_EVENT_TYPES = frozenset({
    EVENT_PROFILE_COMPLETED,
    EVENT_AVATAR_UPLOADED,
    EVENT_NOTIFICATION_PREFERENCES_SET,
    EVENT_FIRST_PROJECT_CREATED,
    EVENT_FIRST_TASK_CREATED,
    EVENT_FIRST_DOCUMENT_UPLOADED,
    EVENT_TEAM_MEMBER_INVITED,
    EVENT_TEAM_MEMBER_JOINED,
    EVENT_INTEGRATION_CONNECTED,
    EVENT_WORKFLOWS_EXPLORED,
    EVENT_OUTREACH_CAMPAIGN_CREATED,
    EVENT_ANALYTICS_DASHBOARD_VIEWED,
    EVENT_ONBOARDING_SKIPPED,
    EVENT_ONBOARDING_COMPLETED,
})

# The only step hidden from non-admin members
ADMIN_ONLY_STEP_KEY = "invite_team"

STEP_COMPLETED = "completed"
STEP_CURRENT = "current"
STEP_PENDING = "pending"


# ── Value objects ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class OnboardingStep:
    key: str
    title: str
    description: str
    module: str | None
    required_events: tuple[str, ...]
    order: int
    is_optional: bool = False

    def is_satisfied_by(self, completed_event_types) -> bool:
        return all(event in completed_event_types for event in self.required_events)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "title": self.title,
            "description": self.description,
            "module": self.module,
            "required_events": list(self.required_events),
            "order": self.order,
            "is_optional": self.is_optional,
        }


@dataclass(frozen=True)
class Progress:
    completed_steps: int
    total_steps: int
    required_completed: int
    required_total: int
    percent_complete: int
    is_complete: bool
    current_step: OnboardingStep | None
    next_step: OnboardingStep | None
    completed_keys: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "completed_steps": self.completed_steps,
            "total_steps": self.total_steps,
            "required_completed": self.required_completed,
            "required_total": self.required_total,
            "percent_complete": self.percent_complete,
            "is_complete": self.is_complete,
            "current_step": self.current_step.key if self.current_step else None,
            "next_step": self.next_step.key if self.next_step else None,
            "completed_keys": list(self.completed_keys),
        }


ONBOARDING_STEPS: tuple[OnboardingStep, ...] = (
    OnboardingStep(
        key="profile",
        title="Complete Your Profile",
        description="Add your name and profile picture",
        module=None,
        required_events=(EVENT_PROFILE_COMPLETED,),
        order=1,
    ),
    OnboardingStep(
        key="first_project",
        title="Create Your First Project",
        description="Set up a project to organize your work",
        module="projects",
        required_events=(EVENT_FIRST_PROJECT_CREATED,),
        order=2,
    ),
    OnboardingStep(
        key="first_task",
        title="Add Your First Task",
        description="Break down work into manageable tasks",
        module="tasks",
        required_events=(EVENT_FIRST_TASK_CREATED,),
        order=3,
    ),
    OnboardingStep(
        key="first_document",
        title="Upload a Document",
        description="Store important files in your workspace",
        module="documents",
        required_events=(EVENT_FIRST_DOCUMENT_UPLOADED,),
        order=4,
        is_optional=True,
    ),
    OnboardingStep(
        key=ADMIN_ONLY_STEP_KEY,
        title="Invite Your Team",
        description="Add team members to collaborate",
        module=None,
        required_events=(EVENT_TEAM_MEMBER_INVITED,),
        order=5,
        is_optional=True,
    ),
    OnboardingStep(
        key="explore_workflows",
        title="Explore Workflows",
        description="Learn how to automate your processes",
        module="workflows",
        required_events=(EVENT_WORKFLOWS_EXPLORED,),
        order=6,
        is_optional=True,
    ),
    OnboardingStep(
        key="first_campaign",
        title="Create an Outreach Campaign",
        description="Start your first outreach campaign",
        module="outreach",
        required_events=(EVENT_OUTREACH_CAMPAIGN_CREATED,),
        order=7,
        is_optional=True,
    ),
    OnboardingStep(
        key="view_analytics",
        title="View Analytics",
        description="Explore your performance metrics",
        module="analytics",
        required_events=(EVENT_ANALYTICS_DASHBOARD_VIEWED,),
        order=8,
        is_optional=True,
    ),
)


# ═════════════════════════════════════════════════════════════════════════════
# Step derivation
# ═════════════════════════════════════════════════════════════════════════════


def get_applicable_steps(
    catalog: Iterable[OnboardingStep],
    enabled_module_keys: Iterable[str],
    is_admin: bool,
) -> list[OnboardingStep]:
    """Filter the catalog by enabled modules and role, sorted by ``order``.

    ``sorted`` is stable, so steps sharing an order keep catalog order.
    """
    enabled = set(enabled_module_keys)
    steps = [
        step for step in catalog
        if (step.module is None or step.module in enabled)
        and (is_admin or step.key != ADMIN_ONLY_STEP_KEY)
    ]
    return sorted(steps, key=lambda s: s.order)


# ═════════════════════════════════════════════════════════════════════════════
# Progress
# ═════════════════════════════════════════════════════════════════════════════


def round_percent(done: int, total: int) -> int:
    """Nearest integer percent, halves rounded up; an empty denominator is 100%."""
    if total == 0:
        return 100
    return (200 * done + total) // (2 * total)


def compute_progress(steps: Iterable[OnboardingStep], completed_event_types: Iterable[str]) -> Progress:
    """Single ordered pass over ``steps`` (already in declared order)."""
    events = frozenset(completed_event_types)
    steps = list(steps)

    completed_keys = []
    required_total = required_completed = 0
    current_step = next_step = None

    for step in steps:
        done = step.is_satisfied_by(events)
        if not step.is_optional:
            required_total += 1
            if done:
                required_completed += 1
        if done:
            completed_keys.append(step.key)
        elif current_step is None:
            current_step = step
        elif next_step is None:
            next_step = step

    return Progress(
        completed_steps=len(completed_keys),
        total_steps=len(steps),
        required_completed=required_completed,
        required_total=required_total,
        percent_complete=round_percent(required_completed, required_total),
        is_complete=required_completed >= required_total,
        current_step=current_step,
        next_step=next_step,
        completed_keys=tuple(completed_keys),
    )


def step_status(step: OnboardingStep, progress: Progress) -> str:
    """completed | current | pending for one step of a computed ``Progress``."""
    if step.key in progress.completed_keys:
        return STEP_COMPLETED
    if progress.current_step is not None and progress.current_step.key == step.key:
        return STEP_CURRENT
    return STEP_PENDING
