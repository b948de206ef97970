from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Client(db.Model):
    """
    Registered clinic client (pet owner).

    Only the fields a sale snapshots are kept here; the full client record
    lives with the practice-management side. client_number comes from the
    tenant's `client` numbering sequence.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "client_number", name="uq_clients_tenant_number"),
        db.Index("ix_clients_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    client_number = db.Column(db.String(64), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "client_number": self.client_number,
            "name": self.name,
            "address": self.address,
            "email": self.email,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }
