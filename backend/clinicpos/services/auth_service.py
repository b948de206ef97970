# Overview: Clinic staff accounts used for attribution and role checks.

"""
User Service with Multi-Tenant Support

Credentials are verified by the upstream identity provider; a User row only
records who acted and in which role.

MULTI-TENANT: Users belong to exactly one tenant. Username uniqueness is
tenant-scoped.
"""

from ..extensions import db
from ..models import User
from ..permissions import ROLES, ROLE_RECEPTIONIST
from .tenant_service import require_active_tenant


def create_user(
    tenant_id: int,
    username: str,
    display_name: str | None = None,
    role: str = ROLE_RECEPTIONIST,
    email: str | None = None,
) -> User:
    """
    Create a staff user in a tenant.

    Raises:
        ValueError: unknown role, blank username, or username taken in the tenant
        TenantAccessError: tenant missing or inactive
    """
    require_active_tenant(tenant_id)

    username = (username or "").strip()
    if not username:
        raise ValueError("Username is required")
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}. Must be one of {list(ROLES)}")

    existing = db.session.query(User).filter_by(tenant_id=tenant_id, username=username).first()
    if existing:
        raise ValueError("Username already exists in this tenant")

    user = User(
        tenant_id=tenant_id,
        username=username,
        display_name=(display_name or username).strip(),
        email=email,
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user
