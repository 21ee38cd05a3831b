"""
Pytest fixtures for medpos backend tests.

Provides test database setup, two tenants with owners and medicines for
isolation tests, and an authenticated test client.
"""

import itertools
from datetime import date

import pytest
from medpos import create_app
from medpos.extensions import db
from medpos.models import Tenant, User, Medicine
from medpos.services.auth_service import hash_password
from medpos.services.session_service import create_session

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'BILLING_RETRY_BACKOFF': 0,
}

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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


@pytest.fixture
def today():
    """Fixed business date; billing calls pass it explicitly."""
    return date(2026, 6, 1)


@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Create Tenant A (first store)."""
    tenant = Tenant(store_name="Store A - City Pharmacy", phone="9876543210", timezone="UTC")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def tenant_b(db_session):
    """Create Tenant B (second store)."""
    tenant = Tenant(store_name="Store B - Lake Medicals", timezone="UTC")
    db_session.add(tenant)
    db_session.commit()
    return tenant


def _make_user(db_session, tenant, email, role="OWNER"):
    user = User(
        tenant_id=tenant.id,
        name=email.split("@")[0],
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner_a(db_session, tenant_a):
    return _make_user(db_session, tenant_a, "owner_a@city.test")


@pytest.fixture(scope='function')
def owner_b(db_session, tenant_b):
    return _make_user(db_session, tenant_b, "owner_b@lake.test")


@pytest.fixture(scope='function')
def staff_a(db_session, tenant_a):
    return _make_user(db_session, tenant_a, "staff_a@city.test", role="STAFF")


@pytest.fixture(scope='function')
def make_medicine(db_session):
    """Factory: make_medicine(tenant, **overrides) -> committed Medicine."""
    counter = itertools.count(1)

    def _make(tenant, **overrides):
        n = next(counter)
        fields = dict(
            name=f"Medicine {n}",
            batch_number=f"BATCH-{n:03d}",
            category="TABLET",
            quantity=10,
            price_cents=5000,
            mrp_cents=5500,
            discount_micros=0,
            expiry_date=date(2099, 12, 31),
            low_stock_threshold=5,
        )
        fields.update(overrides)
        medicine = Medicine(tenant_id=tenant.id, **fields)
        db_session.add(medicine)
        db_session.commit()
        return medicine

    return _make


@pytest.fixture(scope='function')
def medicine_a(make_medicine, tenant_a):
    """10 units at 50.00 in Tenant A."""
    return make_medicine(tenant_a, name="Paracetamol 500mg", batch_number="PCM-A1")


@pytest.fixture(scope='function')
def medicine_b(make_medicine, tenant_b):
    """10 units at 50.00 in Tenant B."""
    return make_medicine(tenant_b, name="Ibuprofen 200mg", batch_number="IBU-B1")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_a(owner_a):
    _, token = create_session(owner_a.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def headers_b(owner_b):
    _, token = create_session(owner_b.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def staff_headers_a(staff_a):
    _, token = create_session(staff_a.id)
    return auth_headers(token)
