# Overview: Append-only clinic audit log; written inside the caller's transaction.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import AuditLogEntry, User
"""
Audit Log Invariants (authoritative)

- Append-only: no updates or deletes of existing entries.
- No domain/business logic here.
- Entries are written inside the same DB transaction as the change they record
  (flush only, never commit).
- occurred_at is business time; defaults to DB now().
"""

CATEGORY_CLINICAL = "clinical"
CATEGORY_FINANCIAL = "financial"
CATEGORY_ADMIN = "admin"
CATEGORY_SYSTEM = "system"
AUDIT_CATEGORIES = (CATEGORY_CLINICAL, CATEGORY_FINANCIAL, CATEGORY_ADMIN, CATEGORY_SYSTEM)

SYSTEM_ACTOR = "System"


def actor_name(user: User | None) -> str:
    if user is None:
        return SYSTEM_ACTOR
    return user.display_name or user.username


def append_audit_entry(
    *,
    tenant_id: int,
    action: str,
    category: str,
    actor: User | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    details: Optional[str] = None,
    reason: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> AuditLogEntry:
    """
    Append one audit entry.

    - No commit; the caller's transaction decides whether it persists.
    """
    if category not in AUDIT_CATEGORIES:
        raise ValueError(f"Unknown audit category: {category}")

    entry = AuditLogEntry(
        tenant_id=tenant_id,
        actor=actor_name(actor),
        actor_user_id=actor.id if actor is not None else None,
        action=action,
        category=category,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        reason=reason,
        occurred_at=occurred_at,  # if None, db default applies
    )
    db.session.add(entry)
    db.session.flush()  # ensures entry.id is assigned without committing
    return entry


def list_audit_entries(
    tenant_id: int,
    *,
    category: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 200,
    offset: int = 0,
) -> tuple[list[AuditLogEntry], int]:
    """Tenant's audit entries, newest first."""
    query = db.session.query(AuditLogEntry).filter(AuditLogEntry.tenant_id == tenant_id)
    if category:
        query = query.filter(AuditLogEntry.category == category)
    if entity_type:
        query = query.filter(AuditLogEntry.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLogEntry.entity_id == entity_id)

    total = query.count()

    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    rows = (
        query.order_by(AuditLogEntry.occurred_at.desc(), AuditLogEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total
