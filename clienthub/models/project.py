"""
ClientHub Portal
Project & task models.

Task position is the pair (status, sort_order); within each (org_id, status)
partition sort_order is kept as the dense sequence 0..N-1 by
``clienthub.services.task_service``. No unique constraint covers it because
shifting a partition passes through transient duplicates inside the
transaction.
"""

from clienthub.models import db
from clienthub.models.base import OrgScopedModel, iso, org_composite_index, utcnow

# ── Constants ────────────────────────────────────────────────────────────────

PROJECT_STATUSES = {"planning", "active", "on_hold", "completed", "cancelled"}
TASK_STATUSES = ("todo", "in_progress", "review", "done", "archived")
TASK_PRIORITIES = {"low", "medium", "high", "urgent"}


class Project(OrgScopedModel):
    __tablename__ = "projects"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('planning','active','on_hold','completed','cancelled')",
            name="ck_project_status",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="planning")
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    tasks = db.relationship("Task", back_populates="project", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }


class Task(OrgScopedModel):
    __tablename__ = "tasks"
    __table_args__ = (
        org_composite_index("tasks", "status", "sort_order"),
        db.CheckConstraint(
            "status IN ('todo','in_progress','review','done','archived')",
            name="ck_task_status",
        ),
        db.CheckConstraint(
            "priority IN ('low','medium','high','urgent')",
            name="ck_task_priority",
        ),
        db.CheckConstraint("sort_order >= 0", name="ck_task_sort_order"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="todo")
    priority = db.Column(db.String(10), nullable=False, default="medium")
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    due_date = db.Column(db.Date, nullable=True)
    assignee_id = db.Column(db.String(64), nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = db.relationship("Project", back_populates="tasks")

    def to_dict(self):
        return {
            "id": self.id,
            "org_id": self.org_id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "sort_order": self.sort_order,
            "due_date": iso(self.due_date),
            "assignee_id": self.assignee_id,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
