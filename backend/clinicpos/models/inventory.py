from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ITEM_TYPE_PRODUCT = "Product"
ITEM_TYPE_SERVICE = "Service"
ITEM_TYPES = (ITEM_TYPE_PRODUCT, ITEM_TYPE_SERVICE)

ITEM_CATEGORIES = ("Medicine", "Food", "Supply", "Service")


class InventoryItem(db.Model):
    """
    Stocked product or billable service.

    MULTI-TENANT: Items are scoped to tenants via tenant_id.
    SKUs are unique within a tenant: UniqueConstraint("tenant_id", "sku").

    STOCK:
    - stock is the authoritative on-hand count for Product items.
    - Service items always carry stock=0; sales never touch it.
    - Every change to stock is mirrored by a StockMovement row written in the
      same DB transaction.

    Prices are stored in cents.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "sku", name="uq_inventory_items_tenant_sku"),
        db.Index("ix_inventory_items_tenant_name", "tenant_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, default="Supply")
    type = db.Column(db.String(16), nullable=False, default=ITEM_TYPE_PRODUCT)

    stock = db.Column(db.Integer, nullable=False, default=0)

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    retail_price_cents = db.Column(db.Integer, nullable=False, default=0)
    wholesale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    # Display concern only: items at or below this level are listed as low stock
    reorder_level = db.Column(db.Integer, nullable=False, default=0)

    expiry_date = db.Column(db.Date, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    tenant = db.relationship("Tenant", backref=db.backref("inventory_items", lazy=True))

    @property
    def is_product(self) -> bool:
        return self.type == ITEM_TYPE_PRODUCT

    @property
    def is_low_stock(self) -> bool:
        return self.is_product and self.stock <= self.reorder_level

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} name={self.name!r} tenant_id={self.tenant_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "type": self.type,
            "stock": self.stock,
            "purchase_price_cents": self.purchase_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "reorder_level": self.reorder_level,
            "is_low_stock": self.is_low_stock,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only record of every change to InventoryItem.stock.

    TYPES:
    - OPENING: stock given when the item was created
    - ADJUST_ADD: manual relative correction
    - ADJUST_SET: manual absolute overwrite (quantity_delta = new - old)
    - SALE: debit caused by a sale reaching Paid (sale_id/sale_line_id set)
    - SALE_VOID: credit reversing a SALE movement (reverses_movement_id set)

    IMMUTABLE: Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_item_occurred", "inventory_item_id", "occurred_at"),
        db.Index("ix_stock_movements_sale_type", "sale_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity_delta = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    sale_line_id = db.Column(db.Integer, db.ForeignKey("sale_lines.id"), nullable=True)
    reverses_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    inventory_item = db.relationship("InventoryItem", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "inventory_item_id": self.inventory_item_id,
            "type": self.type,
            "quantity_delta": self.quantity_delta,
            "stock_after": self.stock_after,
            "sale_id": self.sale_id,
            "sale_line_id": self.sale_line_id,
            "reverses_movement_id": self.reverses_movement_id,
            "actor_user_id": self.actor_user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }
