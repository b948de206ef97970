# Overview: Invoice/sale aggregate rules; cart merging, totals, status transitions and request parsing.

"""
Billing Rules - pure functions, no database access

TOTALS (all integer cents):
    subtotal = sum(quantity * unit_price)
    tax      = subtotal * tax_rate_bps / 10000, rounded half-up to the cent
    total    = max(0, subtotal + tax - discount)

Client-submitted subtotal/tax/total are never trusted; routes ignore them and
the reconciliation service recomputes from lines, discount and the tenant's
tax rate.

STATUS MACHINE:
    (new)   -> Draft | Pending | Paid
    Draft   -> Draft | Pending | Paid | Void
    Pending -> Pending | Paid | Void
    Paid    -> Void            (edit-locked; payments may still be appended)
    Void    -> (terminal)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from ..errors import InvalidTransitionError
from ..models.sales import (
    SALE_STATUS_DRAFT,
    SALE_STATUS_PENDING,
    SALE_STATUS_PAID,
    SALE_STATUS_VOID,
    PAYMENT_METHODS,
)
from ..time_utils import parse_iso_datetime
from ..validation import (
    ValidationError,
    MAX_QUANTITY,
    coerce_bool,
    coerce_int,
    enforce_money,
)


WALK_IN_CLIENT_NAME = "Walk-in Client"

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_OVERPAID = "OVERPAID"

# Statuses a caller may ask record_sale for; Void only via the delete path
RECORDABLE_STATUSES = (SALE_STATUS_DRAFT, SALE_STATUS_PENDING, SALE_STATUS_PAID)

ALLOWED_TRANSITIONS = {
    None: {SALE_STATUS_DRAFT, SALE_STATUS_PENDING, SALE_STATUS_PAID},
    SALE_STATUS_DRAFT: {SALE_STATUS_DRAFT, SALE_STATUS_PENDING, SALE_STATUS_PAID, SALE_STATUS_VOID},
    SALE_STATUS_PENDING: {SALE_STATUS_PENDING, SALE_STATUS_PAID, SALE_STATUS_VOID},
    SALE_STATUS_PAID: {SALE_STATUS_VOID},
    SALE_STATUS_VOID: set(),
}


# =============================================================================
# TOTALS
# =============================================================================

@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    tax_rate_bps: int
    tax_cents: int
    discount_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }


def compute_tax_cents(subtotal_cents: int, tax_rate_bps: int) -> int:
    """Half-up rounding on non-negative integers."""
    if subtotal_cents < 0 or tax_rate_bps < 0:
        raise ValidationError("subtotal and tax rate must be >= 0")
    return (subtotal_cents * tax_rate_bps + 5000) // 10000


def compute_totals(lines: Iterable, discount_cents: int, tax_rate_bps: int) -> SaleTotals:
    """
    Totals for any iterable of objects with `quantity` and `unit_price_cents`
    (SaleLine rows or PricedLine values).
    """
    if discount_cents < 0:
        raise ValidationError("discount_cents must be >= 0")

    subtotal = 0
    for line in lines:
        if line.quantity < 0 or line.unit_price_cents < 0:
            raise ValidationError("quantity and unit price must be >= 0")
        subtotal += line.quantity * line.unit_price_cents

    tax = compute_tax_cents(subtotal, tax_rate_bps)
    total = max(0, subtotal + tax - discount_cents)
    return SaleTotals(
        subtotal_cents=subtotal,
        tax_rate_bps=tax_rate_bps,
        tax_cents=tax,
        discount_cents=discount_cents,
        total_cents=total,
    )


def derive_payment_status(total_cents: int, amount_paid_cents: int) -> str:
    if amount_paid_cents > total_cents:
        return PAYMENT_STATUS_OVERPAID
    if amount_paid_cents == total_cents:
        return PAYMENT_STATUS_PAID
    if amount_paid_cents == 0:
        return PAYMENT_STATUS_UNPAID
    return PAYMENT_STATUS_PARTIAL


# =============================================================================
# STATUS MACHINE
# =============================================================================

def ensure_transition(current: str | None, target: str) -> None:
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if target in allowed:
        return
    if current == SALE_STATUS_PAID:
        raise InvalidTransitionError(
            "Paid sales are locked; add a payment or void the sale",
            details={"from": current, "to": target},
        )
    if current == SALE_STATUS_VOID:
        raise InvalidTransitionError("Sale is void", details={"from": current, "to": target})
    raise InvalidTransitionError(
        f"Cannot change sale from {current or 'new'} to {target}",
        details={"from": current, "to": target},
    )


# =============================================================================
# CART
# =============================================================================

@dataclass(frozen=True)
class DraftLine:
    inventory_item_id: int
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    inventory_item_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


def _check_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"quantity cannot exceed {MAX_QUANTITY}")
    return quantity


def add_to_cart(lines: Iterable[DraftLine], inventory_item_id: int, quantity: int = 1) -> list[DraftLine]:
    """Add units of an item; an item already in the cart gets its quantity increased."""
    quantity = _check_quantity(quantity)
    result = list(lines)
    for index, line in enumerate(result):
        if line.inventory_item_id == inventory_item_id:
            merged = _check_quantity(line.quantity + quantity)
            result[index] = replace(line, quantity=merged)
            return result
    if quantity:
        result.append(DraftLine(inventory_item_id=inventory_item_id, quantity=quantity))
    return result


def set_quantity(lines: Iterable[DraftLine], inventory_item_id: int, quantity: int) -> list[DraftLine]:
    """Overwrite an item's quantity; zero removes the line."""
    quantity = _check_quantity(quantity)
    result = []
    for line in lines:
        if line.inventory_item_id != inventory_item_id:
            result.append(line)
        elif quantity:
            result.append(replace(line, quantity=quantity))
    return result


def merge_lines(lines: Iterable[DraftLine]) -> list[DraftLine]:
    """Collapse repeated items into one line each, first-seen order, dropping zero lines."""
    merged: list[DraftLine] = []
    for line in lines:
        merged = add_to_cart(merged, line.inventory_item_id, line.quantity)
    return [line for line in merged if line.quantity]


# =============================================================================
# REQUEST SCHEMA
# =============================================================================

@dataclass(frozen=True)
class SaleDraft:
    """
    Validated body of a sale create/edit request.

    pay_amount_cents is None when the caller tendered nothing in this request.
    expected_version, when given, must match Sale.version_id on edits.
    """
    lines: tuple[DraftLine, ...]
    discount_cents: int = 0
    client_id: int | None = None
    client_name: str | None = None
    client_address: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    notes: str | None = None
    sale_date: datetime | None = None
    pay_method: str = "Cash"
    pay_amount_cents: int | None = None
    allow_oversell: bool = False
    confirm_underpayment: bool = False
    confirm_walk_in_invoice: bool = False
    expected_version: int | None = None

    @property
    def is_walk_in(self) -> bool:
        return self.client_id is None


_DRAFT_FIELDS = {
    "items",
    "discount_cents",
    "client_id",
    "client_name",
    "client_address",
    "client_email",
    "client_phone",
    "notes",
    "sale_date",
    "pay_method",
    "pay_amount_cents",
    "allow_oversell",
    "confirm_underpayment",
    "confirm_walk_in_invoice",
    "version_id",
    "target_status",
}

# Server-computed; accepted in the body and discarded
_IGNORED_FIELDS = {
    "subtotal_cents",
    "tax_cents",
    "tax_rate_bps",
    "total_cents",
    "amount_paid_cents",
    "balance_due_cents",
    "payment_status",
    "invoice_number",
    "receipt_number",
    "status",
    "payments",
    "id",
}

_TEXT_LIMITS = {
    "client_name": 255,
    "client_address": 255,
    "client_email": 255,
    "client_phone": 64,
    "notes": 4000,
}


def _optional_text(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if len(value) > _TEXT_LIMITS[key]:
        raise ValidationError(f"{key} exceeds max length {_TEXT_LIMITS[key]}")
    return value or None


def _parse_lines(raw_items) -> tuple[DraftLine, ...]:
    if raw_items is None:
        return ()
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    lines: list[DraftLine] = []
    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if "inventory_item_id" not in raw:
            raise ValidationError(f"items[{index}].inventory_item_id is required")
        item_id = coerce_int(raw["inventory_item_id"], f"items[{index}].inventory_item_id")
        quantity = coerce_int(raw.get("quantity", 1), f"items[{index}].quantity")
        if quantity < 0:
            raise ValidationError(f"items[{index}].quantity must be >= 0")
        lines.append(DraftLine(inventory_item_id=item_id, quantity=quantity))

    return tuple(merge_lines(lines))


def parse_target_status(value) -> str:
    if value is None:
        raise ValidationError("target_status is required")
    if value not in RECORDABLE_STATUSES:
        raise ValidationError(f"target_status must be one of {list(RECORDABLE_STATUSES)}")
    return value


def parse_sale_draft(payload: dict) -> SaleDraft:
    """
    Validate and normalize a sale request body.

    Unknown fields are rejected; server-computed fields are dropped.
    Repeated items are merged and zero-quantity lines removed.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    for key in payload:
        if key not in _DRAFT_FIELDS and key not in _IGNORED_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")

    discount = coerce_int(payload.get("discount_cents") or 0, "discount_cents")
    enforce_money(discount, "discount_cents")

    client_id = payload.get("client_id")
    if client_id is not None:
        client_id = coerce_int(client_id, "client_id")

    pay_method = payload.get("pay_method") or "Cash"
    if pay_method not in PAYMENT_METHODS:
        raise ValidationError(f"pay_method must be one of {list(PAYMENT_METHODS)}")

    pay_amount = payload.get("pay_amount_cents")
    if pay_amount is not None:
        pay_amount = coerce_int(pay_amount, "pay_amount_cents")
        enforce_money(pay_amount, "pay_amount_cents")

    sale_date = payload.get("sale_date")
    if sale_date is not None:
        if not isinstance(sale_date, str):
            raise ValidationError("sale_date must be an ISO-8601 datetime")
        try:
            sale_date = parse_iso_datetime(sale_date)
        except ValueError:
            raise ValidationError("sale_date must be an ISO-8601 datetime")

    expected_version = payload.get("version_id")
    if expected_version is not None:
        expected_version = coerce_int(expected_version, "version_id")

    return SaleDraft(
        lines=_parse_lines(payload.get("items")),
        discount_cents=discount,
        client_id=client_id,
        client_name=_optional_text(payload, "client_name"),
        client_address=_optional_text(payload, "client_address"),
        client_email=_optional_text(payload, "client_email"),
        client_phone=_optional_text(payload, "client_phone"),
        notes=_optional_text(payload, "notes"),
        sale_date=sale_date,
        pay_method=pay_method,
        pay_amount_cents=pay_amount,
        allow_oversell=coerce_bool(payload.get("allow_oversell"), "allow_oversell"),
        confirm_underpayment=coerce_bool(payload.get("confirm_underpayment"), "confirm_underpayment"),
        confirm_walk_in_invoice=coerce_bool(payload.get("confirm_walk_in_invoice"), "confirm_walk_in_invoice"),
        expected_version=expected_version,
    )


def format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100:,}.{cents % 100:02d}"
