"""
Append-only audit trail for contract provisioning and administrative changes.

Rows are written inside the caller's transaction (``flush`` only) so an
audit entry exists exactly when the change it describes was committed.
"""

from flask import has_request_context, request

from clienthub.models import db
from clienthub.models.base import iso, utcnow

AUDIT_ACTIONS = frozenset({
    "org_created_from_contract",
    "template.create",
    "template.module_upsert",
    "template.assign",
    "module_override.set",
    "module_override.clear",
    "membership.role_change",
    "onboarding.skip",
})


class AuditLog(db.Model):
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_org_created", "org_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    # Nullable so the trail survives organization deletion
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="SET NULL"), nullable=True)
    user_id = db.Column(db.String(64), nullable=True, index=True,
                        comment="Acting identity; null for contract webhooks")
    entity_type = db.Column(db.String(40), nullable=False)
    entity_id = db.Column(db.String(64), nullable=False)
    action = db.Column(db.String(60), nullable=False, index=True)
    meta = db.Column("metadata", db.JSON, nullable=False, default=dict)
    ip_address = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "metadata": self.meta or {},
            "ip_address": self.ip_address,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}/{self.entity_id}>"


def write_audit(*, entity_type: str, entity_id, action: str, org_id: int | None = None,
                user_id: str | None = None, metadata: dict | None = None) -> AuditLog:
    """Add one audit row to the current session and flush it."""
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action: {action}")
    row = AuditLog(
        org_id=org_id,
        user_id=user_id,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        meta=metadata or {},
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(row)
    db.session.flush()
    return row
