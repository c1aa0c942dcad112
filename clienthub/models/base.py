"""
OrgScopedModel: Abstract base class for organization-scoped models.

All models that belong to a single organization inherit from this instead
of db.Model directly. This adds:
  - org_id FK column with index
  - query_for_org(org_id) classmethod
  - org_composite_index() helper for __table_args__
"""

from datetime import datetime, timezone

from clienthub.models import db


def utcnow():
    return datetime.now(timezone.utc)


def iso(value):
    return value.isoformat() if value else None


class OrgScopedModel(db.Model):
    """Abstract base for organization-scoped tables."""
    __abstract__ = True

    org_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    @classmethod
    def query_for_org(cls, org_id):
        """Return a query filtered by org_id."""
        return cls.query.filter_by(org_id=org_id)


def org_composite_index(table_name, *extra_cols):
    """Build an (org_id, ...) composite index for use in __table_args__."""
    name = f"ix_{table_name}_org_{'_'.join(extra_cols)}"
    return db.Index(name, "org_id", *extra_cols)
