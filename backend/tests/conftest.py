"""
Pytest fixtures for the clinic POS backend tests.

Provides the test database, two tenants for isolation checks, users with
bearer tokens, and a few inventory items.
"""

import pytest
from clinicpos import create_app
from clinicpos.extensions import db
from clinicpos.models import InventoryItem
from clinicpos.services.auth_service import create_user
from clinicpos.services.session_service import create_session
from clinicpos.services.tenant_service import create_tenant


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Clinic A: 5% tax, oversell allowed when confirmed."""
    return create_tenant("Happy Paws Clinic", "HP", tax_rate_bps=500, allow_oversell=True)


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Clinic B: no tax, oversell disabled."""
    return create_tenant("Beta Vets", "BV", tax_rate_bps=0, allow_oversell=False)


@pytest.fixture(scope='function')
def user_a(tenant_a):
    return create_user(tenant_a.id, "admin_a", display_name="Ada Admin", role="Admin")


@pytest.fixture(scope='function')
def user_b(tenant_b):
    return create_user(tenant_b.id, "admin_b", display_name="Bo Admin", role="Admin")


@pytest.fixture(scope='function')
def receptionist_a(tenant_a):
    return create_user(tenant_a.id, "front_desk", display_name="Rae Reception", role="Receptionist")


@pytest.fixture(scope='function')
def token_a(user_a):
    _, token = create_session(user_a.id)
    return token


@pytest.fixture(scope='function')
def token_b(user_b):
    _, token = create_session(user_b.id)
    return token


@pytest.fixture(scope='function')
def receptionist_token(receptionist_a):
    _, token = create_session(receptionist_a.id)
    return token


def make_item(db_session, tenant, *, sku, name, stock=0, retail_price_cents=1000,
              item_type="Product", category="Medicine", reorder_level=0):
    """Insert an item directly (no opening movement)."""
    item = InventoryItem(
        tenant_id=tenant.id,
        sku=sku,
        name=name,
        type=item_type,
        category=category,
        stock=stock,
        retail_price_cents=retail_price_cents,
        reorder_level=reorder_level,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_a(db_session, tenant_a):
    """Product in clinic A: stock 5 at 10.00."""
    return make_item(db_session, tenant_a, sku="AMOX-250", name="Amoxicillin 250mg", stock=5)


@pytest.fixture(scope='function')
def service_a(db_session, tenant_a):
    """Service in clinic A: consultation at 50.00."""
    return make_item(
        db_session, tenant_a, sku="CONSULT", name="Consultation",
        retail_price_cents=5000, item_type="Service", category="Service",
    )


@pytest.fixture(scope='function')
def item_b(db_session, tenant_b):
    """Product in clinic B."""
    return make_item(db_session, tenant_b, sku="FOOD-1", name="Kibble 2kg", stock=10, retail_price_cents=2500,
                     category="Food")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(token_a):
    return auth_headers(token_a)


@pytest.fixture(scope='function')
def receptionist_headers(receptionist_token):
    return auth_headers(receptionist_token)
