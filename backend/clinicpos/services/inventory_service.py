# Overview: Inventory ledger; stock levels per item and the movements that change them.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..errors import ServiceError
from ..models import InventoryItem, StockMovement, SaleLine, User
from ..validation import ValidationError, ConflictError, MAX_QUANTITY
from .audit_service import append_audit_entry, CATEGORY_SYSTEM, CATEGORY_ADMIN
from .concurrency import begin_write, run_with_retry
from .tenant_service import get_scoped_or_404, scoped_query
"""
Inventory Invariants (authoritative)

Stock model:
- InventoryItem.stock is the on-hand count for Product items.
- Service items carry stock=0 and are never debited or credited.
- Every stock change writes a StockMovement in the same DB transaction.

Business invariants:
- Stock never goes below zero unless a sale explicitly allows oversell
  (tenant setting + caller confirmation).
- A sale debit is a compare-and-set: UPDATE ... WHERE stock >= qty. Two
  concurrent debits can never both succeed against the same last unit.
- Voiding a sale credits back exactly the SALE movements it caused, once.

Audit:
- Item creation, manual adjustments and deletion append an AuditLogEntry.
"""

MOVEMENT_OPENING = "OPENING"
MOVEMENT_ADJUST_ADD = "ADJUST_ADD"
MOVEMENT_ADJUST_SET = "ADJUST_SET"
MOVEMENT_SALE = "SALE"
MOVEMENT_SALE_VOID = "SALE_VOID"

ADJUST_MODE_ADD = "add"
ADJUST_MODE_SET = "set"


class InsufficientStockError(ServiceError):
    """Debit would take a Product below zero."""
    http_status = 409


@dataclass(frozen=True)
class DuplicateNameWarning:
    """
    Non-fatal: an item with a similar name already exists.
    Surfaced to the caller for confirmation; never blocks creation.
    """
    name: str
    match: InventoryItem

    def to_dict(self) -> dict:
        return {
            "type": "duplicate_name",
            "message": f"An item named '{self.match.name}' already exists",
            "match": {"id": self.match.id, "name": self.match.name, "stock": self.match.stock},
        }


def _validate_quantity(quantity, field: str = "quantity") -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{field} must be an integer")
    if quantity <= 0:
        raise ValidationError(f"{field} must be > 0")
    if quantity > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")
    return quantity


def _record_movement(
    item: InventoryItem,
    *,
    movement_type: str,
    quantity_delta: int,
    stock_after: int,
    actor: User | None = None,
    sale_id: int | None = None,
    sale_line_id: int | None = None,
    reverses_movement_id: int | None = None,
    note: str | None = None,
) -> StockMovement:
    movement = StockMovement(
        tenant_id=item.tenant_id,
        inventory_item_id=item.id,
        type=movement_type,
        quantity_delta=quantity_delta,
        stock_after=stock_after,
        sale_id=sale_id,
        sale_line_id=sale_line_id,
        reverses_movement_id=reverses_movement_id,
        actor_user_id=actor.id if actor is not None else None,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def _read_stock(item_id: int) -> int:
    return db.session.query(InventoryItem.stock).filter(InventoryItem.id == item_id).scalar()


# =============================================================================
# LOOKUPS
# =============================================================================

def get_item(tenant_id: int, item_id: int) -> InventoryItem:
    return get_scoped_or_404(InventoryItem, item_id, tenant_id, label="Inventory item")


def list_items(tenant_id: int, *, search: str | None = None, include_inactive: bool = False) -> list[InventoryItem]:
    query = scoped_query(InventoryItem, tenant_id)
    if not include_inactive:
        query = query.filter(InventoryItem.is_active.is_(True))
    if search:
        pattern = f"%{_escape_like(search.strip())}%"
        query = query.filter(
            db.or_(
                InventoryItem.name.ilike(pattern, escape="\\"),
                InventoryItem.sku.ilike(pattern, escape="\\"),
            )
        )
    return query.order_by(InventoryItem.name.asc()).all()


def list_low_stock(tenant_id: int) -> list[InventoryItem]:
    """Active Product items at or below their reorder level."""
    return (
        scoped_query(InventoryItem, tenant_id)
        .filter(
            InventoryItem.is_active.is_(True),
            InventoryItem.type == "Product",
            InventoryItem.stock <= InventoryItem.reorder_level,
        )
        .order_by(InventoryItem.stock.asc(), InventoryItem.name.asc())
        .all()
    )


def list_movements(tenant_id: int, item_id: int, limit: int = 200) -> list[StockMovement]:
    get_item(tenant_id, item_id)
    return (
        scoped_query(StockMovement, tenant_id)
        .filter(StockMovement.inventory_item_id == item_id)
        .order_by(StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def check_duplicate_name(tenant_id: int, name: str, *, exclude_id: int | None = None) -> InventoryItem | None:
    """
    Find an existing item whose name equals `name` (ignoring case) or
    contains it. Exact matches win over substring matches.
    """
    name = (name or "").strip()
    if not name:
        return None

    base = scoped_query(InventoryItem, tenant_id).filter(InventoryItem.is_active.is_(True))
    if exclude_id is not None:
        base = base.filter(InventoryItem.id != exclude_id)

    exact = base.filter(func.lower(InventoryItem.name) == name.lower()).order_by(InventoryItem.id).first()
    if exact:
        return exact

    return (
        base.filter(InventoryItem.name.ilike(f"%{_escape_like(name)}%", escape="\\"))
        .order_by(InventoryItem.id)
        .first()
    )


# =============================================================================
# ITEM MAINTENANCE
# =============================================================================

def _ensure_sku_available(tenant_id: int, sku: str, exclude_id: int | None = None) -> None:
    query = scoped_query(InventoryItem, tenant_id).filter(InventoryItem.sku == sku)
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    if query.first():
        raise ConflictError(f"SKU '{sku}' already exists")


def create_item(tenant_id: int, patch: dict, actor: User | None = None) -> tuple[InventoryItem, list[DuplicateNameWarning]]:
    """
    Create an inventory item from a validated patch.

    Returns (item, warnings). A similar existing name produces a
    DuplicateNameWarning but the item is still created.
    """
    def _op():
        _ensure_sku_available(tenant_id, patch["sku"])

        warnings: list[DuplicateNameWarning] = []
        match = check_duplicate_name(tenant_id, patch["name"])
        if match:
            warnings.append(DuplicateNameWarning(name=patch["name"], match=match))

        fields = dict(patch)
        opening_stock = fields.pop("stock", 0) or 0
        item = InventoryItem(tenant_id=tenant_id, **fields)
        if item.type == "Service":
            item.category = "Service"
            opening_stock = 0
        item.stock = opening_stock

        db.session.add(item)
        db.session.flush()

        if opening_stock:
            _record_movement(
                item,
                movement_type=MOVEMENT_OPENING,
                quantity_delta=opening_stock,
                stock_after=opening_stock,
                actor=actor,
                note="Opening stock",
            )

        append_audit_entry(
            tenant_id=tenant_id,
            action="Added Inventory",
            category=CATEGORY_SYSTEM,
            actor=actor,
            entity_type="inventory_item",
            entity_id=item.id,
            details=item.name,
        )

        db.session.commit()
        return item, warnings

    return run_with_retry(_op)


def update_item(tenant_id: int, item_id: int, patch: dict, actor: User | None = None) -> InventoryItem:
    """
    Update descriptive fields and prices. Stock is changed only through
    adjust() or sales so every change leaves a movement behind.
    """
    def _op():
        item = get_item(tenant_id, item_id)

        if "sku" in patch and patch["sku"] != item.sku:
            _ensure_sku_available(tenant_id, patch["sku"], exclude_id=item.id)

        if patch.get("type") == "Service" and item.is_product and item.stock != 0:
            raise ValidationError(
                f"'{item.name}' still holds {item.stock} in stock; adjust it to 0 before making it a Service"
            )

        for key, value in patch.items():
            setattr(item, key, value)
        if item.type == "Service":
            item.category = "Service"

        append_audit_entry(
            tenant_id=tenant_id,
            action="Updated Inventory",
            category=CATEGORY_SYSTEM,
            actor=actor,
            entity_type="inventory_item",
            entity_id=item.id,
            details=", ".join(sorted(patch.keys())),
        )

        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(tenant_id: int, item_id: int, actor: User | None = None) -> bool:
    """
    Delete an item. Items referenced by any sale line are deactivated
    instead, so historical sales keep a valid reference.

    Returns True if the row was removed, False if it was deactivated.
    """
    def _op():
        item = get_item(tenant_id, item_id)

        referenced = (
            db.session.query(SaleLine.id).filter(SaleLine.inventory_item_id == item.id).first()
            or db.session.query(StockMovement.id).filter(StockMovement.inventory_item_id == item.id).first()
        )

        if referenced:
            item.is_active = False
            action = "Deactivated Inventory"
        else:
            action = "Deleted Inventory"

        append_audit_entry(
            tenant_id=tenant_id,
            action=action,
            category=CATEGORY_ADMIN,
            actor=actor,
            entity_type="inventory_item",
            entity_id=item.id,
            details=item.name,
        )

        if not referenced:
            db.session.delete(item)

        db.session.commit()
        return not referenced

    return run_with_retry(_op)


# =============================================================================
# STOCK MUTATIONS
# =============================================================================

def adjust(
    tenant_id: int,
    item_id: int,
    mode: str,
    value: int,
    actor: User | None = None,
    note: str | None = None,
) -> InventoryItem:
    """
    Manual stock correction.

    mode="add": relative change (value may be negative, not zero)
    mode="set": absolute overwrite (value >= 0)

    Neither mode may leave stock below zero. Adjustments never touch sales.
    """
    if mode not in (ADJUST_MODE_ADD, ADJUST_MODE_SET):
        raise ValidationError(f"mode must be '{ADJUST_MODE_ADD}' or '{ADJUST_MODE_SET}'")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("value must be an integer")
    if abs(value) > MAX_QUANTITY:
        raise ValidationError(f"value cannot exceed {MAX_QUANTITY}")
    if mode == ADJUST_MODE_ADD and value == 0:
        raise ValidationError("value must be non-zero for add")
    if mode == ADJUST_MODE_SET and value < 0:
        raise ValidationError("value must be >= 0 for set")
    if note is not None and len(note) > 255:
        raise ValidationError("note exceeds max length 255")

    def _op():
        begin_write()
        item = get_item(tenant_id, item_id)
        if not item.is_product:
            raise ValidationError("Service items do not carry stock")

        if mode == ADJUST_MODE_ADD:
            stmt = (
                update(InventoryItem)
                .where(InventoryItem.id == item.id, InventoryItem.tenant_id == tenant_id)
                .values(stock=InventoryItem.stock + value)
            )
            if value < 0:
                stmt = stmt.where(InventoryItem.stock >= -value)
            movement_type = MOVEMENT_ADJUST_ADD
        else:
            stmt = (
                update(InventoryItem)
                .where(InventoryItem.id == item.id, InventoryItem.tenant_id == tenant_id)
                .values(stock=value)
            )
            movement_type = MOVEMENT_ADJUST_SET

        before = _read_stock(item.id)
        result = db.session.execute(stmt.execution_options(synchronize_session=False))
        if not result.rowcount:
            raise InsufficientStockError(
                f"Adjustment would take '{item.name}' below zero",
                details={"items": [{"inventory_item_id": item.id, "requested_quantity": -value, "on_hand": before}]},
            )
        after = _read_stock(item.id)
        db.session.expire(item, ["stock"])

        _record_movement(
            item,
            movement_type=movement_type,
            quantity_delta=after - before,
            stock_after=after,
            actor=actor,
            note=note,
        )

        append_audit_entry(
            tenant_id=tenant_id,
            action="Adjusted Stock",
            category=CATEGORY_SYSTEM,
            actor=actor,
            entity_type="inventory_item",
            entity_id=item.id,
            details=f"{item.name}: {before} -> {after} ({mode} {value})",
            reason=note,
        )

        db.session.commit()
        return item

    return run_with_retry(_op)


def debit(
    tenant_id: int,
    item_id: int,
    quantity: int,
    *,
    allow_oversell: bool = False,
    sale_id: int | None = None,
    sale_line_id: int | None = None,
    actor: User | None = None,
    commit: bool = False,
) -> int:
    """
    Take `quantity` units of a Product out of stock. Returns the new stock.

    Service items are a no-op (their stock is returned unchanged).
    Without allow_oversell the decrement is conditional on enough stock and
    InsufficientStockError is raised otherwise; with it, stock may go
    negative and a warning is logged.

    commit=False (default) participates in the caller's transaction.
    """
    quantity = _validate_quantity(quantity)

    def _op():
        if commit:
            begin_write()
        item = get_item(tenant_id, item_id)
        if not item.is_product:
            return item.stock

        stmt = (
            update(InventoryItem)
            .where(InventoryItem.id == item.id, InventoryItem.tenant_id == tenant_id)
            .values(stock=InventoryItem.stock - quantity)
        )
        if not allow_oversell:
            stmt = stmt.where(InventoryItem.stock >= quantity)

        result = db.session.execute(stmt.execution_options(synchronize_session=False))
        if not result.rowcount:
            on_hand = _read_stock(item.id)
            raise InsufficientStockError(
                f"Low stock: {item.name} (Only {on_hand} left)",
                details={"items": [{
                    "inventory_item_id": item.id,
                    "name": item.name,
                    "requested_quantity": quantity,
                    "on_hand": on_hand,
                }]},
            )

        new_stock = _read_stock(item.id)
        db.session.expire(item, ["stock"])
        if new_stock < 0:
            current_app.logger.warning(
                "Oversell: tenant %s item %s (%s) stock now %s after sale %s",
                tenant_id, item.id, item.sku, new_stock, sale_id,
            )

        _record_movement(
            item,
            movement_type=MOVEMENT_SALE,
            quantity_delta=-quantity,
            stock_after=new_stock,
            actor=actor,
            sale_id=sale_id,
            sale_line_id=sale_line_id,
        )

        if commit:
            db.session.commit()
        return new_stock

    if commit:
        return run_with_retry(_op)
    return _op()


def sale_debits(tenant_id: int, sale_id: int) -> list[StockMovement]:
    """SALE movements of a sale that have not been reversed yet."""
    reversed_ids = (
        db.session.query(StockMovement.reverses_movement_id)
        .filter(
            StockMovement.tenant_id == tenant_id,
            StockMovement.sale_id == sale_id,
            StockMovement.type == MOVEMENT_SALE_VOID,
        )
    )
    return (
        scoped_query(StockMovement, tenant_id)
        .filter(
            StockMovement.sale_id == sale_id,
            StockMovement.type == MOVEMENT_SALE,
            StockMovement.id.notin_(reversed_ids),
        )
        .order_by(StockMovement.id)
        .all()
    )


def credit_sale_reversal(tenant_id: int, sale_id: int, actor: User | None = None) -> list[StockMovement]:
    """
    Credit back every outstanding SALE movement of a sale, exactly once.
    Participates in the caller's transaction (no commit).
    """
    reversals = []
    for movement in sale_debits(tenant_id, sale_id):
        quantity = -movement.quantity_delta
        db.session.execute(
            update(InventoryItem)
            .where(
                InventoryItem.id == movement.inventory_item_id,
                InventoryItem.tenant_id == tenant_id,
            )
            .values(stock=InventoryItem.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        item = movement.inventory_item
        new_stock = _read_stock(item.id)
        db.session.expire(item, ["stock"])

        reversals.append(_record_movement(
            item,
            movement_type=MOVEMENT_SALE_VOID,
            quantity_delta=quantity,
            stock_after=new_stock,
            actor=actor,
            sale_id=sale_id,
            sale_line_id=movement.sale_line_id,
            reverses_movement_id=movement.id,
            note=f"Reversal of movement {movement.id}",
        ))
    return reversals
