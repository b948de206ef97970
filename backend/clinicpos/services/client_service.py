# Overview: Minimal registered-client records that sales can reference.

from __future__ import annotations

from ..extensions import db
from ..models import Client, User
from .audit_service import append_audit_entry, CATEGORY_CLINICAL
from .concurrency import begin_write, run_with_retry
from .numbering_service import issue, KIND_CLIENT
from .tenant_service import require_active_tenant, scoped_query


def list_clients(tenant_id: int, search: str | None = None) -> list[Client]:
    query = scoped_query(Client, tenant_id)
    if search:
        query = query.filter(Client.name.ilike(f"%{search.strip()}%"))
    return query.order_by(Client.name.asc()).all()


def create_client(tenant_id: int, patch: dict, actor: User | None = None) -> Client:
    """Register a client; client_number comes from the tenant's client sequence."""
    def _op():
        begin_write()
        require_active_tenant(tenant_id)

        client = Client(tenant_id=tenant_id, client_number=issue(tenant_id, KIND_CLIENT), **patch)
        db.session.add(client)
        db.session.flush()

        append_audit_entry(
            tenant_id=tenant_id,
            action="Created Client",
            category=CATEGORY_CLINICAL,
            actor=actor,
            entity_type="client",
            entity_id=client.id,
            details=f"{client.client_number} {client.name}",
        )

        db.session.commit()
        return client

    return run_with_retry(_op)
