"""
Inventory ledger tests.

Stock only changes through debit/adjust/credit and every change leaves a
StockMovement behind.
"""

import pytest

from clinicpos.models import InventoryItem, StockMovement, AuditLogEntry
from clinicpos.services.inventory_service import (
    InsufficientStockError,
    adjust,
    check_duplicate_name,
    create_item,
    debit,
    delete_item,
    list_items,
    list_low_stock,
    update_item,
)
from clinicpos.errors import NotFoundError
from clinicpos.validation import ValidationError, ConflictError


def _movements(db_session, item):
    return (
        db_session.query(StockMovement)
        .filter_by(inventory_item_id=item.id)
        .order_by(StockMovement.id)
        .all()
    )


class TestDebit:

    def test_debit_reduces_stock_and_records_movement(self, db_session, tenant_a, item_a):
        new_stock = debit(tenant_a.id, item_a.id, 2)
        db_session.commit()

        assert new_stock == 3
        db_session.refresh(item_a)
        assert item_a.stock == 3

        movements = _movements(db_session, item_a)
        assert len(movements) == 1
        assert movements[0].type == "SALE"
        assert movements[0].quantity_delta == -2
        assert movements[0].stock_after == 3

    def test_service_item_is_not_debited(self, db_session, tenant_a, service_a):
        assert debit(tenant_a.id, service_a.id, 3) == 0
        db_session.commit()

        assert _movements(db_session, service_a) == []

    def test_insufficient_stock(self, db_session, tenant_a, item_a):
        with pytest.raises(InsufficientStockError) as exc:
            debit(tenant_a.id, item_a.id, 6)
        db_session.rollback()

        assert "Only 5 left" in str(exc.value)
        assert exc.value.details["items"][0]["requested_quantity"] == 6
        db_session.refresh(item_a)
        assert item_a.stock == 5

    def test_oversell_goes_negative(self, db_session, tenant_a, item_a):
        new_stock = debit(tenant_a.id, item_a.id, 7, allow_oversell=True)
        db_session.commit()

        assert new_stock == -2

    def test_zero_quantity_rejected(self, db_session, tenant_a, item_a):
        with pytest.raises(ValidationError):
            debit(tenant_a.id, item_a.id, 0)

    def test_other_tenant_item_is_not_found(self, db_session, tenant_a, item_b):
        with pytest.raises(NotFoundError) as exc:
            debit(tenant_a.id, item_b.id, 1)
        assert "not found" in str(exc.value)


class TestAdjust:

    def test_add_and_set(self, db_session, tenant_a, item_a, user_a):
        adjust(tenant_a.id, item_a.id, "add", 4, actor=user_a, note="Delivery")
        adjust(tenant_a.id, item_a.id, "set", 2, actor=user_a, note="Stock count")

        db_session.refresh(item_a)
        assert item_a.stock == 2

        movements = _movements(db_session, item_a)
        assert [(m.type, m.quantity_delta, m.stock_after) for m in movements] == [
            ("ADJUST_ADD", 4, 9),
            ("ADJUST_SET", -7, 2),
        ]

        entries = db_session.query(AuditLogEntry).filter_by(action="Adjusted Stock").all()
        assert len(entries) == 2

    def test_add_cannot_go_below_zero(self, db_session, tenant_a, item_a):
        with pytest.raises(InsufficientStockError):
            adjust(tenant_a.id, item_a.id, "add", -6)

        db_session.refresh(item_a)
        assert item_a.stock == 5
        assert _movements(db_session, item_a) == []

    def test_invalid_values(self, db_session, tenant_a, item_a):
        with pytest.raises(ValidationError):
            adjust(tenant_a.id, item_a.id, "add", 0)
        with pytest.raises(ValidationError):
            adjust(tenant_a.id, item_a.id, "set", -1)
        with pytest.raises(ValidationError):
            adjust(tenant_a.id, item_a.id, "multiply", 2)

    def test_service_items_carry_no_stock(self, db_session, tenant_a, service_a):
        with pytest.raises(ValidationError):
            adjust(tenant_a.id, service_a.id, "add", 1)


class TestItemMaintenance:

    def test_create_with_opening_stock(self, db_session, tenant_a, user_a):
        item, warnings = create_item(tenant_a.id, {
            "sku": "MEL-1",
            "name": "Meloxicam",
            "type": "Product",
            "category": "Medicine",
            "retail_price_cents": 1500,
            "stock": 12,
        }, actor=user_a)

        assert warnings == []
        assert item.stock == 12
        movements = _movements(db_session, item)
        assert [(m.type, m.quantity_delta) for m in movements] == [("OPENING", 12)]

    def test_service_forced_to_zero_stock(self, db_session, tenant_a):
        item, _ = create_item(tenant_a.id, {
            "sku": "VAX",
            "name": "Vaccination",
            "type": "Service",
            "category": "Medicine",
            "retail_price_cents": 3000,
            "stock": 9,
        })

        assert item.stock == 0
        assert item.category == "Service"
        assert _movements(db_session, item) == []

    def test_similar_name_warns_but_creates(self, db_session, tenant_a, item_a):
        item, warnings = create_item(tenant_a.id, {
            "sku": "AMOX-500",
            "name": "amoxicillin",
            "retail_price_cents": 1200,
        })

        assert item.id is not None
        assert len(warnings) == 1
        assert warnings[0].match.id == item_a.id
        assert warnings[0].to_dict()["type"] == "duplicate_name"

    def test_duplicate_sku_conflicts(self, db_session, tenant_a, item_a):
        with pytest.raises(ConflictError):
            create_item(tenant_a.id, {"sku": "AMOX-250", "name": "Other", "retail_price_cents": 1})

    def test_same_sku_in_other_tenant_is_fine(self, db_session, tenant_b, item_a):
        item, _ = create_item(tenant_b.id, {"sku": "AMOX-250", "name": "Amoxicillin", "retail_price_cents": 1})
        assert item.tenant_id == tenant_b.id

    def test_check_duplicate_name_prefers_exact(self, db_session, tenant_a, item_a):
        exact, _ = create_item(tenant_a.id, {"sku": "AMOX", "name": "Amoxicillin", "retail_price_cents": 1})

        assert check_duplicate_name(tenant_a.id, "AMOXICILLIN").id == exact.id
        assert check_duplicate_name(tenant_a.id, "Amoxicillin", exclude_id=exact.id).id == item_a.id
        assert check_duplicate_name(tenant_a.id, "Kibble") is None

    def test_update_does_not_touch_stock_history(self, db_session, tenant_a, item_a):
        update_item(tenant_a.id, item_a.id, {"retail_price_cents": 1100})

        db_session.refresh(item_a)
        assert item_a.retail_price_cents == 1100
        assert _movements(db_session, item_a) == []

    def test_product_with_stock_cannot_become_service(self, db_session, tenant_a, item_a):
        with pytest.raises(ValidationError):
            update_item(tenant_a.id, item_a.id, {"type": "Service"})

        db_session.refresh(item_a)
        assert item_a.type == "Product"
        assert item_a.stock == 5

    def test_product_at_zero_becomes_service(self, db_session, tenant_a, item_a):
        adjust(tenant_a.id, item_a.id, "set", 0)

        update_item(tenant_a.id, item_a.id, {"type": "Service"})

        db_session.refresh(item_a)
        assert item_a.type == "Service"
        assert item_a.category == "Service"
        assert item_a.stock == 0

    def test_delete_unreferenced_item(self, db_session, tenant_a, item_a):
        item_id = item_a.id
        assert delete_item(tenant_a.id, item_id) is True
        assert db_session.get(InventoryItem, item_id) is None

    def test_delete_referenced_item_deactivates(self, db_session, tenant_a, item_a):
        adjust(tenant_a.id, item_a.id, "add", 1)

        assert delete_item(tenant_a.id, item_a.id) is False
        db_session.refresh(item_a)
        assert item_a.is_active is False
        assert item_a not in list_items(tenant_a.id)
        assert item_a in list_items(tenant_a.id, include_inactive=True)

    def test_low_stock_lists_products_at_reorder_level(self, db_session, tenant_a, item_a, service_a):
        update_item(tenant_a.id, item_a.id, {"reorder_level": 5})

        assert [i.id for i in list_low_stock(tenant_a.id)] == [item_a.id]

    def test_search_escapes_wildcards(self, db_session, tenant_a, item_a):
        assert list_items(tenant_a.id, search="amox") == [item_a]
        assert list_items(tenant_a.id, search="%") == []


class TestTenantScope:

    def test_adjust_other_tenant_item(self, db_session, tenant_a, item_b):
        with pytest.raises(NotFoundError):
            adjust(tenant_a.id, item_b.id, "add", 1)
