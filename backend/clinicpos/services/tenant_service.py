"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services and routes.
Every request is scoped to one clinic (tenant) and cross-tenant access is
denied at the data-access boundary, not filtered after the fact.

SECURITY INVARIANTS:
1. Every authenticated request has g.tenant_id set
2. Every query touching tenant-owned data goes through scoped_query
3. An id that exists in another tenant behaves exactly like a missing id
4. Cross-tenant lookups are logged

USAGE:
    from clinicpos.services.tenant_service import scoped_query, get_scoped_or_404

    items = scoped_query(InventoryItem, tenant_id).all()
    sale = get_scoped_or_404(Sale, sale_id, tenant_id, label="Sale")
"""

from flask import current_app, g

from ..extensions import db
from ..errors import NotFoundError
from ..models import Tenant


class TenantAccessError(NotFoundError):
    """Raised when tenant context is missing, inactive, or crossed."""
    pass


def get_current_tenant_id() -> int:
    """
    Get current tenant_id from Flask g context.

    SECURITY: Raises TenantAccessError if tenant_id not set.
    """
    tenant_id = getattr(g, "tenant_id", None)
    if tenant_id is None:
        raise TenantAccessError("Tenant context not established")
    return tenant_id


def require_active_tenant(tenant_id: int) -> Tenant:
    """
    Validate that a tenant exists and is active.

    Raises:
        TenantAccessError if tenant doesn't exist or is inactive
    """
    tenant = db.session.query(Tenant).filter_by(id=tenant_id).first()

    if not tenant:
        raise TenantAccessError("Tenant not found")

    if not tenant.is_active:
        raise TenantAccessError("Tenant is not active")

    return tenant


def scoped_query(model, tenant_id: int | None = None):
    """
    Create a base query scoped to a tenant via the model's tenant_id column.

    Args:
        model: SQLAlchemy model class (must have tenant_id column)
        tenant_id: Tenant ID (defaults to g.tenant_id)
    """
    if tenant_id is None:
        tenant_id = get_current_tenant_id()
    return db.session.query(model).filter(model.tenant_id == tenant_id)


def get_scoped_or_404(model, entity_id, tenant_id: int | None = None, *, label: str | None = None, lock: bool = False):
    """
    Fetch one tenant-owned row by id.

    Raises NotFoundError when the row does not exist or belongs to another
    tenant. Both cases produce the same message so existence in another
    clinic is never revealed.
    """
    if tenant_id is None:
        tenant_id = get_current_tenant_id()

    label = label or model.__name__
    query = scoped_query(model, tenant_id).filter(model.id == entity_id)
    if lock:
        query = query.with_for_update()
    obj = query.first()
    if obj is None:
        _log_cross_tenant_probe(model, entity_id, tenant_id)
        raise NotFoundError(f"{label} not found")
    return obj


def _log_cross_tenant_probe(model, entity_id, tenant_id: int) -> None:
    owner = db.session.query(model.tenant_id).filter(model.id == entity_id).scalar()
    if owner is not None and owner != tenant_id:
        current_app.logger.warning(
            "Cross-tenant access denied: %s %s belongs to tenant %s, requested by tenant %s",
            model.__tablename__, entity_id, owner, tenant_id,
        )


def create_tenant(
    name: str,
    code: str | None = None,
    *,
    tax_rate_bps: int = 0,
    currency: str = "NGN",
    allow_oversell: bool = False,
) -> Tenant:
    """
    Create a clinic with its numbering sequences at default patterns.

    Raises ValueError on a blank name, a negative tax rate, or a code
    already in use.
    """
    from .numbering_service import ensure_sequences

    name = (name or "").strip()
    if not name:
        raise ValueError("Tenant name is required")
    if tax_rate_bps < 0:
        raise ValueError("tax_rate_bps must be >= 0")
    if code and db.session.query(Tenant).filter_by(code=code).first():
        raise ValueError(f"Tenant with code '{code}' already exists")

    tenant = Tenant(
        name=name,
        code=code,
        tax_rate_bps=tax_rate_bps,
        currency=currency,
        allow_oversell=allow_oversell,
        is_active=True,
    )
    db.session.add(tenant)
    db.session.flush()
    ensure_sequences(tenant.id)
    db.session.commit()
    return tenant
