from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class NumberingSequence(db.Model):
    """
    Atomic per-tenant document sequences.

    One row per (tenant_id, kind). `counter` holds the last number issued
    and only ever moves forward: deleting or voiding the document that used
    a number never hands it out again.

    `pattern` is the clinic's template, e.g. "HH/INV/0000" or "REC-0000-year".
    """
    __tablename__ = "numbering_sequences"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "kind", name="uq_numbering_sequences_tenant_kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False, index=True)
    pattern = db.Column(db.String(64), nullable=False)
    counter = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "kind": self.kind,
            "pattern": self.pattern,
            "counter": self.counter,
            "updated_at": to_utc_z(self.updated_at),
        }


class AuditLogEntry(db.Model):
    """
    Append-only clinic activity log (feeds the Clinic Logs view).

    CATEGORIES: clinical, financial, admin, system

    IMMUTABLE: Entries are never updated or deleted. They are written inside
    the same DB transaction as the change they describe.
    """
    __tablename__ = "audit_log_entries"
    __table_args__ = (
        db.Index("ix_audit_log_tenant_occurred", "tenant_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    actor = db.Column(db.String(120), nullable=False)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(16), nullable=False, index=True)

    entity_type = db.Column(db.String(64), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)

    details = db.Column(db.Text, nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "actor": self.actor,
            "actor_user_id": self.actor_user_id,
            "action": self.action,
            "category": self.category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details,
            "reason": self.reason,
        }
