"""initial_schema

Organizations, profiles and memberships; workspace templates and module
overrides; onboarding events and workflows; projects and tasks; audit and
email logs.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "organizations" not in existing_tables:
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=120), nullable=False),
            sa.Column("settings", sa.JSON(), nullable=False),
            sa.Column("onboarding_status", sa.String(length=20), nullable=False, server_default="pending"),
            _ts("created_at"),
            _ts("updated_at"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
            sa.CheckConstraint(
                "onboarding_status IN ('pending','in_progress','completed','skipped')",
                name="ck_org_onboarding_status",
            ),
        )
        op.create_index("ix_organizations_slug", "organizations", ["slug"])

    if "user_profiles" not in existing_tables:
        op.create_table(
            "user_profiles",
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("avatar_url", sa.String(length=500), nullable=True),
            sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
            _ts("created_at"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_user_profiles_email", "user_profiles", ["email"])

    if "org_memberships" not in existing_tables:
        op.create_table(
            "org_memberships",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("org_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="org_member"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["user_profiles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("org_id", "user_id", name="uq_membership_org_user"),
            sa.CheckConstraint(
                "role IN ('super_admin','org_admin','org_member','client')",
                name="ck_membership_role",
            ),
        )
        op.create_index("ix_org_memberships_org_id", "org_memberships", ["org_id"])
        op.create_index("ix_org_memberships_user_id", "org_memberships", ["user_id"])

    if "workspace_templates" not in existing_tables:
        op.create_table(
            "workspace_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _ts("created_at"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "template_modules" not in existing_tables:
        op.create_table(
            "template_modules",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=False),
            sa.Column("module_key", sa.String(length=50), nullable=False),
            sa.Column("default_state", sa.String(length=10), nullable=False, server_default="hidden"),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("config", sa.JSON(), nullable=False),
            sa.Column("display_name", sa.String(length=120), nullable=True),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("icon", sa.String(length=60), nullable=True),
            sa.Column("route_path", sa.String(length=200), nullable=True),
            sa.ForeignKeyConstraint(["template_id"], ["workspace_templates.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("template_id", "module_key", name="uq_template_module_key"),
            sa.CheckConstraint(
                "default_state IN ('enabled','locked','hidden')",
                name="ck_template_module_state",
            ),
        )
        op.create_index("ix_template_modules_template_id", "template_modules", ["template_id"])

    if "org_template_assignments" not in existing_tables:
        op.create_table(
            "org_template_assignments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("org_id", sa.Integer(), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=False),
            _ts("assigned_at"),
            sa.Column("assigned_by", sa.String(length=64), nullable=True),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_id"], ["workspace_templates.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("org_id"),
        )
        op.create_index("ix_org_template_assignments_template_id",
                        "org_template_assignments", ["template_id"])

    if "org_module_overrides" not in existing_tables:
        op.create_table(
            "org_module_overrides",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("org_id", sa.Integer(), nullable=False),
            sa.Column("module_key", sa.String(length=50), nullable=False),
            sa.Column("state_override", sa.String(length=10), nullable=True),
            sa.Column("config_override", sa.JSON(), nullable=False),
            sa.Column("updated_by", sa.String(length=64), nullable=True),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("org_id", "module_key", name="uq_override_org_module"),
            sa.CheckConstraint(
                "state_override IS NULL OR state_override IN ('enabled','locked','hidden')",
                name="ck_override_state",
            ),
        )
        op.create_index("ix_org_module_overrides_org_id", "org_module_overrides", ["org_id"])

    if "onboarding_events" not in existing_tables:
        op.create_table(
            "onboarding_events",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("org_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=True),
            sa.Column("event_type", sa.String(length=50), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=False),
            _ts("created_at", nullable=False),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_onboarding_events_org_id", "onboarding_events", ["org_id"])
        op.create_index("ix_onboarding_events_user_id", "onboarding_events", ["user_id"])
        op.create_index("ix_onboarding_events_org_type", "onboarding_events", ["org_id", "event_type"])

    if "onboarding_workflows" not in existing_tables:
        op.create_table(
            "onboarding_workflows",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("org_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("current_step", sa.String(length=50), nullable=True),
            sa.Column("completed_steps", sa.JSON(), nullable=False),
            _ts("started_at"),
            _ts("completed_at"),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("org_id", name="uq_onboarding_workflow_org"),
            sa.CheckConstraint(
                "status IN ('pending','in_progress','completed','skipped')",
                name="ck_onboarding_workflow_status",
            ),
        )
        op.create_index("ix_onboarding_workflows_org_id", "onboarding_workflows", ["org_id"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("org_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="planning"),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "status IN ('planning','active','on_hold','completed','cancelled')",
                name="ck_project_status",
            ),
        )
        op.create_index("ix_projects_org_id", "projects", ["org_id"])

    if "tasks" not in existing_tables:
        op.create_table(
            "tasks",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("org_id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="todo"),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("assignee_id", sa.String(length=64), nullable=True),
            sa.Column("created_by", sa.String(length=64), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "status IN ('todo','in_progress','review','done','archived')",
                name="ck_task_status",
            ),
            sa.CheckConstraint("priority IN ('low','medium','high','urgent')", name="ck_task_priority"),
            sa.CheckConstraint("sort_order >= 0", name="ck_task_sort_order"),
        )
        op.create_index("ix_tasks_org_id", "tasks", ["org_id"])
        op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
        op.create_index("ix_tasks_org_status_sort_order", "tasks", ["org_id", "status", "sort_order"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("org_id", sa.Integer(), nullable=True),
            sa.Column("user_id", sa.String(length=64), nullable=True),
            sa.Column("entity_type", sa.String(length=40), nullable=False),
            sa.Column("entity_id", sa.String(length=64), nullable=False),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=False),
            sa.Column("ip_address", sa.String(length=64), nullable=True),
            _ts("created_at", nullable=False),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
        op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_org_created", "audit_logs", ["org_id", "created_at"])

    if "email_logs" not in existing_tables:
        op.create_table(
            "email_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_email", sa.String(length=255), nullable=False),
            sa.Column("recipient_name", sa.String(length=150), nullable=True),
            sa.Column("subject", sa.String(length=500), nullable=False),
            sa.Column("template_name", sa.String(length=100), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("org_id", sa.Integer(), nullable=True),
            _ts("sent_at"),
            _ts("created_at"),
            sa.ForeignKeyConstraint(["org_id"], ["organizations.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_email_logs_recipient_email", "email_logs", ["recipient_email"])
        op.create_index("ix_email_logs_org_id", "email_logs", ["org_id"])


def downgrade():
    for table in (
        "email_logs", "audit_logs", "tasks", "projects",
        "onboarding_workflows", "onboarding_events",
        "org_module_overrides", "org_template_assignments",
        "template_modules", "workspace_templates",
        "org_memberships", "user_profiles", "organizations",
    ):
        op.drop_table(table)
