"""
Concurrency tests against a file-backed SQLite database.

Each worker thread runs in its own app context, so it gets its own session
and connection. Writers are serialized by BEGIN IMMEDIATE; these tests check
that no unit of stock and no document number is ever handed out twice.
"""

import threading

import pytest

from clinicpos import create_app
from clinicpos.extensions import db
from sqlalchemy import event

from clinicpos.models import InventoryItem, Sale, StockMovement
from clinicpos.services.auth_service import create_user
from clinicpos.services.billing_service import DraftLine, SaleDraft
from clinicpos.services.inventory_service import InsufficientStockError, debit
from clinicpos.services.numbering_service import KIND_CLIENT, issue_number
from clinicpos.services.sales_service import record_sale
from clinicpos.services.session_service import create_session
from clinicpos.services.tenant_service import create_tenant


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'clinic.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 30, "check_same_thread": False}},
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    """One clinic with a single unit of one product. Returns (tenant_id, item_id)."""
    with file_app.app_context():
        tenant = create_tenant("Race Clinic", "RC", tax_rate_bps=0)
        item = InventoryItem(
            tenant_id=tenant.id,
            sku="LAST",
            name="Last Unit",
            type="Product",
            category="Medicine",
            stock=1,
            retail_price_cents=500,
        )
        db.session.add(item)
        db.session.commit()
        return tenant.id, item.id


@pytest.fixture
def racer_headers(file_app, seeded):
    tenant_id, _ = seeded
    with file_app.app_context():
        user = create_user(tenant_id, "racer", role="Admin")
        _, token = create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


def _run_in_threads(app, count, target):
    """Start `count` threads at once; return (results, errors) in no particular order."""
    barrier = threading.Barrier(count)
    results, errors = [], []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            barrier.wait()
            try:
                value = target()
            except Exception as exc:
                with lock:
                    errors.append(exc)
            else:
                with lock:
                    results.append(value)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    return results, errors


class TestConcurrentStock:

    def test_two_debits_on_last_unit(self, file_app, seeded):
        tenant_id, item_id = seeded

        results, errors = _run_in_threads(
            file_app, 2, lambda: debit(tenant_id, item_id, 1, commit=True)
        )

        assert results == [0]
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStockError)

        with file_app.app_context():
            assert db.session.get(InventoryItem, item_id).stock == 0
            assert db.session.query(StockMovement).filter_by(inventory_item_id=item_id).count() == 1

    def test_two_paid_sales_on_last_unit(self, file_app, seeded):
        tenant_id, item_id = seeded
        draft = SaleDraft(lines=(DraftLine(item_id, 1),), pay_amount_cents=500)

        results, errors = _run_in_threads(
            file_app, 2, lambda: record_sale(tenant_id, draft, "Paid").id
        )

        assert len(results) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStockError)

        with file_app.app_context():
            assert db.session.get(InventoryItem, item_id).stock == 0
            sales = db.session.query(Sale).filter_by(tenant_id=tenant_id).all()
            assert [sale.receipt_number for sale in sales] == ["RCPT-0001"]


class TestConcurrentNumbering:

    def test_parallel_issue_never_duplicates(self, file_app, seeded):
        tenant_id, _ = seeded

        def issue_five():
            return [issue_number(tenant_id, KIND_CLIENT) for _ in range(5)]

        results, errors = _run_in_threads(file_app, 6, issue_five)

        assert errors == []
        numbers = [number for batch in results for number in batch]
        assert len(numbers) == 30
        assert sorted(numbers) == [f"CL-{n:04d}" for n in range(1, 31)]

        for batch in results:
            assert batch == sorted(batch)


class TestConcurrentRequests:
    """The same races, driven through the HTTP routes with bearer auth."""

    def _paid_sale(self, file_app, item_id, headers):
        response = file_app.test_client().post(
            '/api/sales',
            json={
                "items": [{"inventory_item_id": item_id, "quantity": 1}],
                "target_status": "Paid",
                "pay_amount_cents": 500,
            },
            headers=headers,
        )
        return response.status_code

    def test_sale_request_takes_write_lock(self, file_app, seeded, racer_headers):
        _, item_id = seeded
        statements = []

        with file_app.app_context():
            engine = db.engine

        def capture(conn, cursor, statement, parameters, context, executemany):
            statements.append(statement)

        event.listen(engine, "before_cursor_execute", capture)
        try:
            assert self._paid_sale(file_app, item_id, racer_headers) == 201
        finally:
            event.remove(engine, "before_cursor_execute", capture)

        assert "BEGIN IMMEDIATE" in statements

    def test_two_paid_sale_requests_on_last_unit(self, file_app, seeded, racer_headers):
        tenant_id, item_id = seeded

        results, errors = _run_in_threads(
            file_app, 2, lambda: self._paid_sale(file_app, item_id, racer_headers)
        )

        assert errors == []
        assert sorted(results) == [201, 409]

        with file_app.app_context():
            assert db.session.get(InventoryItem, item_id).stock == 0
            assert db.session.query(Sale).filter_by(tenant_id=tenant_id).count() == 1
