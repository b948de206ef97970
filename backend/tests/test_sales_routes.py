"""
HTTP-level tests: status codes, permission checks and error bodies.
"""

from clinicpos.models import InventoryItem


def _sale_body(item_id, quantity=2, **extra):
    body = {"items": [{"inventory_item_id": item_id, "quantity": quantity}]}
    body.update(extra)
    return body


class TestAuthentication:

    def test_missing_token(self, client, db_session):
        response = client.get('/api/sales')
        assert response.status_code == 401

    def test_bad_token(self, client, db_session):
        response = client.get('/api/sales', headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_health_is_public(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"


class TestSalesRoutes:

    def test_create_paid_sale_ignores_client_totals(self, client, admin_headers, item_a):
        response = client.post(
            '/api/sales',
            json=_sale_body(item_a.id, target_status="Paid", pay_amount_cents=2100, total_cents=1),
            headers=admin_headers,
        )

        assert response.status_code == 201
        sale = response.get_json()["sale"]
        assert sale["status"] == "Paid"
        assert sale["total_cents"] == 2100
        assert sale["receipt_number"] == "RCPT-0001"
        assert sale["invoice_number"] == "INV-0001"

    def test_unknown_field_is_400(self, client, admin_headers, item_a):
        response = client.post(
            '/api/sales',
            json=_sale_body(item_a.id, target_status="Paid", pay_amount_cents=2100, hack=1),
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert "Field not allowed" in response.get_json()["error"]

    def test_underpayment_needs_confirmation(self, client, admin_headers, item_a):
        response = client.post(
            '/api/sales',
            json=_sale_body(item_a.id, target_status="Paid", pay_amount_cents=100),
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.get_json()["details"]["confirmation"] == "confirm_underpayment"

    def test_insufficient_stock_is_409(self, client, admin_headers, item_a):
        response = client.post(
            '/api/sales',
            json=_sale_body(item_a.id, quantity=9, target_status="Paid", pay_amount_cents=9450),
            headers=admin_headers,
        )

        assert response.status_code == 409
        body = response.get_json()
        assert body["details"]["items"][0]["on_hand"] == 5

    def test_delete_requires_reason_then_voids(self, client, db_session, admin_headers, item_a):
        created = client.post(
            '/api/sales',
            json=_sale_body(item_a.id, target_status="Paid", pay_amount_cents=2100),
            headers=admin_headers,
        ).get_json()["sale"]

        response = client.delete(f'/api/sales/{created["id"]}', json={}, headers=admin_headers)
        assert response.status_code == 400

        response = client.delete(
            f'/api/sales/{created["id"]}',
            json={"reason": "duplicate entry"},
            headers=admin_headers,
        )
        assert response.status_code == 204

        sale = client.get(f'/api/sales/{created["id"]}', headers=admin_headers).get_json()["sale"]
        assert sale["status"] == "Void"

        db_session.expire_all()
        db_session.refresh(item_a)
        assert item_a.stock == 5

    def test_paid_sale_edit_is_409(self, client, admin_headers, item_a):
        created = client.post(
            '/api/sales',
            json=_sale_body(item_a.id, target_status="Paid", pay_amount_cents=2100),
            headers=admin_headers,
        ).get_json()["sale"]

        response = client.put(
            f'/api/sales/{created["id"]}',
            json=_sale_body(item_a.id, quantity=1, target_status="Pending"),
            headers=admin_headers,
        )
        assert response.status_code == 409

    def test_payment_route(self, client, admin_headers, item_a):
        created = client.post(
            '/api/sales',
            json=_sale_body(
                item_a.id,
                target_status="Paid",
                pay_amount_cents=1000,
                confirm_underpayment=True,
                confirm_walk_in_invoice=True,
            ),
            headers=admin_headers,
        ).get_json()["sale"]
        assert created["status"] == "Pending"

        response = client.post(
            f'/api/sales/{created["id"]}/payments',
            json={"method": "Transfer", "amount_cents": 1100},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.get_json()["sale"]["status"] == "Paid"

    def test_quote(self, client, admin_headers, item_a):
        response = client.post(
            '/api/sales/quote',
            json=_sale_body(item_a.id, discount_cents=100),
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.get_json()["totals"]["total_cents"] == 2000

    def test_list_sales(self, client, admin_headers, item_a):
        client.post(
            '/api/sales',
            json=_sale_body(item_a.id, target_status="Draft"),
            headers=admin_headers,
        )

        response = client.get('/api/sales?status=Draft', headers=admin_headers)
        assert response.status_code == 200
        sales = response.get_json()["sales"]
        assert len(sales) == 1
        assert "lines" not in sales[0]


class TestPermissions:

    def test_receptionist_cannot_void(self, client, receptionist_headers, item_a):
        created = client.post(
            '/api/sales',
            json=_sale_body(item_a.id, target_status="Paid", pay_amount_cents=2100),
            headers=receptionist_headers,
        )
        assert created.status_code == 201

        response = client.delete(
            f'/api/sales/{created.get_json()["sale"]["id"]}',
            json={"reason": "oops"},
            headers=receptionist_headers,
        )
        assert response.status_code == 403
        assert response.get_json()["required_permission"] == "VOID_SALE"

    def test_receptionist_cannot_manage_inventory(self, client, receptionist_headers, item_a):
        response = client.post(
            f'/api/inventory/{item_a.id}/adjust',
            json={"mode": "add", "value": 3},
            headers=receptionist_headers,
        )
        assert response.status_code == 403

    def test_receptionist_cannot_change_numbering(self, client, receptionist_headers):
        response = client.put(
            '/api/numbering/invoice',
            json={"pattern": "X-0000"},
            headers=receptionist_headers,
        )
        assert response.status_code == 403


class TestInventoryAndNumberingRoutes:

    def test_create_item_reports_duplicate_name(self, client, admin_headers, item_a):
        response = client.post(
            '/api/inventory',
            json={"sku": "AMOX-2", "name": "Amoxicillin", "retail_price_cents": 900, "stock": 3},
            headers=admin_headers,
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["item"]["stock"] == 3
        assert body["warnings"][0]["match"]["id"] == item_a.id

    def test_patch_cannot_set_stock(self, client, admin_headers, item_a):
        response = client.patch(
            f'/api/inventory/{item_a.id}',
            json={"stock": 100},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_patch_stocked_product_to_service_is_400(self, client, db_session, admin_headers, item_a):
        response = client.patch(
            f'/api/inventory/{item_a.id}',
            json={"type": "Service"},
            headers=admin_headers,
        )
        assert response.status_code == 400

        db_session.expire_all()
        assert db_session.get(InventoryItem, item_a.id).type == "Product"

    def test_adjust(self, client, admin_headers, item_a):
        response = client.post(
            f'/api/inventory/{item_a.id}/adjust',
            json={"mode": "set", "value": 20, "note": "Count"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.get_json()["item"]["stock"] == 20

        movements = client.get(
            f'/api/inventory/{item_a.id}/movements', headers=admin_headers
        ).get_json()["movements"]
        assert movements[0]["type"] == "ADJUST_SET"

    def test_issue_number(self, client, admin_headers):
        first = client.post('/api/numbering/patient/issue', headers=admin_headers)
        second = client.post('/api/numbering/patient/issue', headers=admin_headers)

        assert first.status_code == 201
        assert first.get_json()["number"] == "PT-0001"
        assert second.get_json()["number"] == "PT-0002"

    def test_set_pattern_and_preview(self, client, admin_headers):
        response = client.put(
            '/api/numbering/invoice',
            json={"pattern": "HP/INV/0000"},
            headers=admin_headers,
        )
        assert response.status_code == 200

        sequences = client.get('/api/numbering', headers=admin_headers).get_json()["sequences"]
        invoice = next(seq for seq in sequences if seq["kind"] == "invoice")
        assert invoice["pattern"] == "HP/INV/0000"
        assert invoice["preview"] == "HP/INV/0001"

    def test_audit_log_lists_sale(self, client, admin_headers, item_a):
        client.post(
            '/api/sales',
            json=_sale_body(item_a.id, target_status="Paid", pay_amount_cents=2100),
            headers=admin_headers,
        )

        response = client.get('/api/audit-logs?category=financial', headers=admin_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body["total"] == 1
        assert body["entries"][0]["action"] == "Processed Sale"

    def test_audit_log_rejects_unknown_category(self, client, admin_headers):
        response = client.get('/api/audit-logs?category=gossip', headers=admin_headers)
        assert response.status_code == 400
