from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SALE_STATUS_DRAFT = "Draft"
SALE_STATUS_PENDING = "Pending"
SALE_STATUS_PAID = "Paid"
SALE_STATUS_VOID = "Void"
SALE_STATUSES = (SALE_STATUS_DRAFT, SALE_STATUS_PENDING, SALE_STATUS_PAID, SALE_STATUS_VOID)

PAYMENT_METHODS = ("Cash", "Card", "Transfer", "Credit")


class Sale(db.Model):
    """
    Sale aggregate root: invoice while unpaid, receipt once paid.

    Totals (subtotal/tax/total) are always recomputed server-side from the
    lines, discount and the tenant tax rate snapshot; client-submitted totals
    are never stored.

    NUMBERING:
    - invoice_number: assigned on the first save out of Draft
    - receipt_number: assigned on the first transition into Paid
    Neither is ever reassigned once set.

    CONCURRENCY: version_id_col gives optimistic locking on concurrent edits.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "invoice_number", name="uq_sales_tenant_invoice"),
        db.UniqueConstraint("tenant_id", "receipt_number", name="uq_sales_tenant_receipt"),
        db.Index("ix_sales_tenant_status_date", "tenant_id", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Registered client, or walk-in name snapshot
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    client_name = db.Column(db.String(255), nullable=False, default="Walk-in Client")
    client_address = db.Column(db.String(255), nullable=True)
    client_email = db.Column(db.String(255), nullable=True)
    client_phone = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_DRAFT, index=True)

    # Amounts in cents
    discount_cents = db.Column(db.BigInteger, nullable=False, default=0)
    subtotal_cents = db.Column(db.BigInteger, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.BigInteger, nullable=False, default=0)
    total_cents = db.Column(db.BigInteger, nullable=False, default=0)
    amount_paid_cents = db.Column(db.BigInteger, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="UNPAID", index=True)  # UNPAID, PARTIAL, PAID, OVERPAID

    invoice_number = db.Column(db.String(64), nullable=True, index=True)
    receipt_number = db.Column(db.String(64), nullable=True, index=True)

    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Void audit trail
    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleLine.position",
    )
    payments = db.relationship(
        "Payment",
        backref="sale",
        lazy=True,
        order_by="Payment.id",
    )
    client = db.relationship("Client")

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def balance_due_cents(self) -> int:
        return max(0, self.total_cents - self.amount_paid_cents)

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "sale_date": to_utc_z(self.sale_date),
            "client_id": self.client_id,
            "client_name": self.client_name,
            "client_address": self.client_address,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "status": self.status,
            "discount_cents": self.discount_cents,
            "subtotal_cents": self.subtotal_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "balance_due_cents": self.balance_due_cents,
            "payment_status": self.payment_status,
            "invoice_number": self.invoice_number,
            "receipt_number": self.receipt_number,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class SaleLine(db.Model):
    """Line item on a sale. name/sku/unit price are snapshots taken at sale time."""
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "inventory_item_id", name="uq_sale_lines_sale_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    item_type = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.BigInteger, nullable=False)
    line_total_cents = db.Column(db.BigInteger, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "inventory_item_id": self.inventory_item_id,
            "name": self.name,
            "sku": self.sku,
            "item_type": self.item_type,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """
    Funds received against a sale.

    IMMUTABLE: Payments are append-only. A correction is a new Payment,
    never an update of an old one.

    METHODS: Cash, Card, Transfer, Credit
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey("tenants.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.BigInteger, nullable=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
