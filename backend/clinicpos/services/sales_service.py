# Overview: Reconciliation service; records, pays and voids sales against inventory, numbering and audit.

"""
Sales Service - one transaction per sale mutation

record_sale / add_payment / delete_sale each run inside a single DB
transaction: the numbering counter increments, the stock debits or credits,
the sale row and its audit entry commit together or not at all.

- Totals are always recomputed here from lines, discount and the tenant tax
  rate; client totals never reach the database.
- Stock is debited only on the transition into Paid, one SALE movement per
  Product line, so voiding can credit back exactly what was taken.
- Invoice number: first save out of Draft. Receipt number: first transition
  into Paid. Neither is ever reassigned.
- Paid sales are edit-locked: only payment appends and voiding remain.
- Concurrency failures surface as ConcurrencyConflictError; there is no
  automatic server-side retry.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import ConfirmationRequiredError, ConcurrencyConflictError, InvalidTransitionError
from ..models import Sale, SaleLine, Payment, InventoryItem, Client, Tenant, User
from ..models.sales import (
    SALE_STATUS_DRAFT,
    SALE_STATUS_PENDING,
    SALE_STATUS_PAID,
    SALE_STATUS_VOID,
    SALE_STATUSES,
    PAYMENT_METHODS,
)
from ..time_utils import utcnow
from ..validation import ValidationError, coerce_int, enforce_money
from .audit_service import append_audit_entry, CATEGORY_FINANCIAL
from .billing_service import (
    SaleDraft,
    SaleTotals,
    PricedLine,
    RECORDABLE_STATUSES,
    WALK_IN_CLIENT_NAME,
    compute_totals,
    derive_payment_status,
    ensure_transition,
    format_cents,
)
from .concurrency import begin_write, run_with_retry
from .inventory_service import InsufficientStockError, debit, credit_sale_reversal
from .numbering_service import issue, KIND_INVOICE, KIND_RECEIPT
from .tenant_service import require_active_tenant, get_scoped_or_404, scoped_query


MAX_VOID_REASON_LENGTH = 255


# =============================================================================
# LOOKUPS
# =============================================================================

def get_sale(tenant_id: int, sale_id: int) -> Sale:
    return get_scoped_or_404(Sale, sale_id, tenant_id, label="Sale")


def list_sales(tenant_id: int, *, status: str | None = None, limit: int | None = None) -> list[Sale]:
    """Newest first, capped at SALES_LIST_LIMIT."""
    cap = current_app.config.get("SALES_LIST_LIMIT", 500)
    if limit is None or limit > cap:
        limit = cap
    if limit < 1:
        limit = 1

    query = scoped_query(Sale, tenant_id)
    if status:
        if status not in SALE_STATUSES:
            raise ValidationError(f"status must be one of {list(SALE_STATUSES)}")
        query = query.filter(Sale.status == status)

    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()


# =============================================================================
# PRICING
# =============================================================================

def _resolve_items(tenant_id: int, draft: SaleDraft, sale: Sale | None) -> dict[int, InventoryItem]:
    on_sale = {line.inventory_item_id for line in sale.lines} if sale is not None else set()
    items: dict[int, InventoryItem] = {}
    for line in draft.lines:
        item = get_scoped_or_404(InventoryItem, line.inventory_item_id, tenant_id, label="Inventory item")
        if not item.is_active and item.id not in on_sale:
            raise ValidationError(f"'{item.name}' is no longer active")
        items[item.id] = item
    return items


def _price_lines(draft: SaleDraft, items: dict[int, InventoryItem], sale: Sale | None) -> list[PricedLine]:
    """
    Unit price is the item's retail price when the line first enters the
    sale; lines already on the sale keep their snapshot.
    """
    snapshots = {line.inventory_item_id: line.unit_price_cents for line in sale.lines} if sale is not None else {}
    priced = []
    for line in draft.lines:
        price = snapshots.get(line.inventory_item_id, items[line.inventory_item_id].retail_price_cents)
        priced.append(PricedLine(
            inventory_item_id=line.inventory_item_id,
            quantity=line.quantity,
            unit_price_cents=price,
        ))
    return priced


def preview_totals(tenant_id: int, draft: SaleDraft, sale_id: int | None = None) -> tuple[SaleTotals, list[PricedLine]]:
    """Server-side totals for a cart without persisting anything."""
    tenant = require_active_tenant(tenant_id)
    sale = get_sale(tenant_id, sale_id) if sale_id is not None else None
    items = _resolve_items(tenant_id, draft, sale)
    priced = _price_lines(draft, items, sale)
    tax_rate = sale.tax_rate_bps if sale is not None and sale.status != SALE_STATUS_DRAFT else tenant.tax_rate_bps
    return compute_totals(priced, draft.discount_cents, tax_rate), priced


# =============================================================================
# INTERNAL STEPS (run inside the caller's transaction)
# =============================================================================

def _apply_lines(sale: Sale, priced: list[PricedLine], items: dict[int, InventoryItem]) -> None:
    """
    Make sale.lines match `priced`. Existing lines are updated in place so
    (sale_id, inventory_item_id) stays unique across the flush.
    """
    existing = {line.inventory_item_id: line for line in sale.lines}
    wanted = {line.inventory_item_id for line in priced}

    for item_id, line in existing.items():
        if item_id not in wanted:
            sale.lines.remove(line)

    for position, entry in enumerate(priced):
        line = existing.get(entry.inventory_item_id)
        if line is None:
            item = items[entry.inventory_item_id]
            line = SaleLine(
                inventory_item_id=item.id,
                name=item.name,
                sku=item.sku,
                item_type=item.type,
            )
            sale.lines.append(line)
        line.position = position
        line.quantity = entry.quantity
        line.unit_price_cents = entry.unit_price_cents
        line.line_total_cents = entry.line_total_cents


def _apply_client(tenant_id: int, sale: Sale, draft: SaleDraft) -> None:
    if draft.client_id is not None:
        client = get_scoped_or_404(Client, draft.client_id, tenant_id, label="Client")
        sale.client_id = client.id
        sale.client_name = client.name
        sale.client_address = client.address
        sale.client_email = client.email
        sale.client_phone = client.phone
    else:
        sale.client_id = None
        sale.client_name = draft.client_name or WALK_IN_CLIENT_NAME
        sale.client_address = draft.client_address
        sale.client_email = draft.client_email
        sale.client_phone = draft.client_phone


def _check_stock(sale: Sale, allow_oversell: bool) -> None:
    """All shortages are reported at once, before any debit runs."""
    if allow_oversell:
        return
    short = []
    for line in sale.lines:
        item = db.session.get(InventoryItem, line.inventory_item_id)
        if item.is_product and item.stock < line.quantity:
            short.append({
                "inventory_item_id": item.id,
                "name": item.name,
                "requested_quantity": line.quantity,
                "on_hand": item.stock,
            })
    if short:
        names = ", ".join(f"{entry['name']} (Only {entry['on_hand']} left)" for entry in short)
        raise InsufficientStockError(f"Low stock: {names}", details={"items": short})


def _mark_paid(tenant_id: int, sale: Sale, actor: User | None, allow_oversell: bool) -> None:
    """Pending/Draft/new -> Paid: debit stock, assign the receipt number."""
    _check_stock(sale, allow_oversell)

    for line in sale.lines:
        debit(
            tenant_id,
            line.inventory_item_id,
            line.quantity,
            allow_oversell=allow_oversell,
            sale_id=sale.id,
            sale_line_id=line.id,
            actor=actor,
        )

    if sale.receipt_number is None:
        sale.receipt_number = issue(tenant_id, KIND_RECEIPT)
    sale.status = SALE_STATUS_PAID
    sale.paid_at = utcnow()


def _append_payment(tenant_id: int, sale: Sale, method: str, amount_cents: int, actor: User | None) -> Payment:
    payment = Payment(
        tenant_id=tenant_id,
        method=method,
        amount_cents=amount_cents,
        created_by_user_id=actor.id if actor is not None else None,
    )
    sale.payments.append(payment)
    sale.amount_paid_cents = (sale.amount_paid_cents or 0) + amount_cents
    return payment


def _resolve_oversell(tenant: Tenant, requested: bool) -> bool:
    if requested and not tenant.allow_oversell:
        raise ValidationError("Overselling is disabled for this clinic")
    return requested


# =============================================================================
# RECORD SALE
# =============================================================================

def record_sale(
    tenant_id: int,
    draft: SaleDraft,
    target_status: str,
    actor: User | None = None,
    *,
    sale_id: int | None = None,
) -> Sale:
    """
    Create (sale_id=None) or edit a sale and move it to `target_status`.

    Steps, all in one transaction:
    1. validate cart, transition and tendered payment
    2. recompute totals from lines, discount and tax rate
    3. on the first move into Paid: debit Product stock, assign receipt number
    4. on the first save out of Draft: assign invoice number
    5. persist sale, lines and any tendered payment
    6. append a financial audit entry

    A Paid request whose cumulative payments fall short of the total raises
    ConfirmationRequiredError unless draft.confirm_underpayment is set, in
    which case the sale is saved Pending with the partial payment.
    """
    if target_status not in RECORDABLE_STATUSES:
        raise ValidationError(f"target_status must be one of {list(RECORDABLE_STATUSES)}")
    if not draft.lines:
        raise ValidationError("Cart is empty")
    if target_status == SALE_STATUS_DRAFT and draft.pay_amount_cents:
        raise ValidationError("Draft sales cannot take payments")
    if draft.pay_method not in PAYMENT_METHODS:
        raise ValidationError(f"pay_method must be one of {list(PAYMENT_METHODS)}")

    def _op():
        begin_write()
        tenant = require_active_tenant(tenant_id)
        allow_oversell = _resolve_oversell(tenant, draft.allow_oversell)

        sale = None
        previous = None
        if sale_id is not None:
            sale = get_scoped_or_404(Sale, sale_id, tenant_id, label="Sale", lock=True)
            previous = sale.status
            if draft.expected_version is not None and draft.expected_version != sale.version_id:
                raise ConcurrencyConflictError(
                    "Sale was modified by someone else; reload and retry",
                    details={"expected_version": draft.expected_version, "current_version": sale.version_id},
                )

        ensure_transition(previous, target_status)

        items = _resolve_items(tenant_id, draft, sale)
        priced = _price_lines(draft, items, sale)
        tax_rate = tenant.tax_rate_bps if sale is None or previous == SALE_STATUS_DRAFT else sale.tax_rate_bps
        totals = compute_totals(priced, draft.discount_cents, tax_rate)

        already_paid = sale.amount_paid_cents if sale is not None else 0
        tendered = draft.pay_amount_cents or 0
        effective = target_status

        if target_status == SALE_STATUS_PAID and already_paid < totals.total_cents:
            if draft.pay_amount_cents is None:
                raise ValidationError("pay_amount_cents is required to mark the sale Paid")
            if draft.pay_amount_cents == 0:
                raise ValidationError("Amount tendered must be greater than zero")
            if already_paid + tendered < totals.total_cents:
                if not draft.confirm_underpayment:
                    raise ConfirmationRequiredError(
                        f"Amount tendered ({format_cents(tendered)}) is less than the amount due "
                        f"({format_cents(totals.total_cents - already_paid)})",
                        confirmation="confirm_underpayment",
                        details={
                            "total_cents": totals.total_cents,
                            "amount_paid_cents": already_paid,
                            "tendered_cents": tendered,
                        },
                    )
                effective = SALE_STATUS_PENDING
        elif target_status == SALE_STATUS_PENDING and tendered and already_paid + tendered >= totals.total_cents:
            # Fully paid on save: same outcome as add_payment covering the balance
            effective = SALE_STATUS_PAID

        if (
            effective == SALE_STATUS_PENDING
            and previous != SALE_STATUS_PENDING
            and draft.is_walk_in
            and not draft.confirm_walk_in_invoice
        ):
            raise ConfirmationRequiredError(
                "Saving an unpaid invoice for a walk-in client",
                confirmation="confirm_walk_in_invoice",
            )

        if sale is None:
            sale = Sale(
                tenant_id=tenant_id,
                status=SALE_STATUS_DRAFT,
                sale_date=draft.sale_date or utcnow(),
                created_by_user_id=actor.id if actor is not None else None,
                amount_paid_cents=0,
            )
            db.session.add(sale)
        elif draft.sale_date is not None:
            sale.sale_date = draft.sale_date

        _apply_client(tenant_id, sale, draft)
        _apply_lines(sale, priced, items)
        sale.notes = draft.notes
        sale.discount_cents = totals.discount_cents
        sale.subtotal_cents = totals.subtotal_cents
        sale.tax_rate_bps = totals.tax_rate_bps
        sale.tax_cents = totals.tax_cents
        sale.total_cents = totals.total_cents
        db.session.flush()

        if effective != SALE_STATUS_DRAFT and sale.invoice_number is None:
            sale.invoice_number = issue(tenant_id, KIND_INVOICE)

        if tendered:
            _append_payment(tenant_id, sale, draft.pay_method, tendered, actor)

        if effective == SALE_STATUS_PAID:
            _mark_paid(tenant_id, sale, actor, allow_oversell)
        else:
            sale.status = effective

        sale.payment_status = derive_payment_status(sale.total_cents, sale.amount_paid_cents)

        number = sale.receipt_number or sale.invoice_number or f"#{sale.id}"
        append_audit_entry(
            tenant_id=tenant_id,
            action="Processed Sale" if previous is None else "Updated Sale",
            category=CATEGORY_FINANCIAL,
            actor=actor,
            entity_type="sale",
            entity_id=sale.id,
            details=f"{number} {sale.status} Total: {format_cents(sale.total_cents)}",
        )

        db.session.commit()
        return sale

    return run_with_retry(_op)


# =============================================================================
# PAYMENTS
# =============================================================================

def add_payment(
    tenant_id: int,
    sale_id: int,
    method: str,
    amount_cents,
    actor: User | None = None,
    *,
    allow_oversell: bool = False,
) -> Sale:
    """
    Append a payment. A Pending sale whose payments now cover the total
    moves to Paid (stock debit and receipt number) in the same transaction.
    Paid sales accept further payments; their receipt number never changes.
    """
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"method must be one of {list(PAYMENT_METHODS)}")
    amount_cents = coerce_int(amount_cents, "amount_cents")
    enforce_money(amount_cents, "amount_cents")
    if amount_cents == 0:
        raise ValidationError("amount_cents must be greater than zero")

    def _op():
        begin_write()
        tenant = require_active_tenant(tenant_id)
        oversell = _resolve_oversell(tenant, allow_oversell)
        sale = get_scoped_or_404(Sale, sale_id, tenant_id, label="Sale", lock=True)

        if sale.status == SALE_STATUS_VOID:
            raise InvalidTransitionError("Cannot add payment to a void sale")
        if sale.status == SALE_STATUS_DRAFT:
            raise InvalidTransitionError("Save the sale as an invoice before taking payments")

        payment = _append_payment(tenant_id, sale, method, amount_cents, actor)
        db.session.flush()

        if sale.status == SALE_STATUS_PENDING and sale.amount_paid_cents >= sale.total_cents:
            _mark_paid(tenant_id, sale, actor, oversell)

        sale.payment_status = derive_payment_status(sale.total_cents, sale.amount_paid_cents)

        append_audit_entry(
            tenant_id=tenant_id,
            action="Recorded Payment",
            category=CATEGORY_FINANCIAL,
            actor=actor,
            entity_type="payment",
            entity_id=payment.id,
            details=f"{sale.receipt_number or sale.invoice_number}: {method} {format_cents(amount_cents)}",
        )

        db.session.commit()
        return sale

    return run_with_retry(_op)


# =============================================================================
# DELETE (VOID)
# =============================================================================

def delete_sale(tenant_id: int, sale_id: int, reason, actor: User | None = None) -> Sale:
    """
    Void a sale with a mandatory reason.

    Credits back exactly the stock its SALE movements took, marks it Void
    and appends a financial audit entry whose details are the reason.
    Payments are left untouched; the row is kept for the audit trail.
    """
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("reason is required to delete a sale")
    reason = reason.strip()
    if len(reason) > MAX_VOID_REASON_LENGTH:
        raise ValidationError(f"reason exceeds max length {MAX_VOID_REASON_LENGTH}")

    def _op():
        begin_write()
        sale = get_scoped_or_404(Sale, sale_id, tenant_id, label="Sale", lock=True)
        if sale.status == SALE_STATUS_VOID:
            raise InvalidTransitionError("Sale already voided")
        ensure_transition(sale.status, SALE_STATUS_VOID)

        reversals = credit_sale_reversal(tenant_id, sale.id, actor=actor)

        sale.status = SALE_STATUS_VOID
        sale.voided_at = utcnow()
        sale.voided_by_user_id = actor.id if actor is not None else None
        sale.void_reason = reason

        append_audit_entry(
            tenant_id=tenant_id,
            action="Deleted Sale",
            category=CATEGORY_FINANCIAL,
            actor=actor,
            entity_type="sale",
            entity_id=sale.id,
            details=reason,
            reason=reason,
        )

        db.session.commit()
        current_app.logger.info(
            "Sale %s voided for tenant %s (%d stock reversals): %s",
            sale.id, tenant_id, len(reversals), reason,
        )
        return sale

    return run_with_retry(_op)
