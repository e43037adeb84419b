import os

# Must be set before storefront modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["TENANT_CONFIG"] = os.path.join(os.path.dirname(__file__), "no-tenants.json")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import storefront.config as config_mod
import storefront.db as db
from storefront.delivery import quote_cache
from storefront.fees import DeliveryZone, FeeConfig
from storefront.main import app
from storefront.models import Base
from storefront.services import cart_store
from storefront.tenant import TenantConfig, TenantManager, set_tenant_manager

# Test admin credentials
TEST_ADMIN_USERNAME = "testadmin"
TEST_ADMIN_PASSWORD = "testpassword123"

TEST_FEES = FeeConfig(
    tax_rate=0.0875,
    platform_fee_rate=0.01,
    processor_percent_rate=0.029,
    processor_fixed_fee_cents=30,
    max_courier_tip_cents=2000,
    delivery_zones=[
        DeliveryZone(max_distance_km=2, fee_cents=299, label="Within 2 km"),
        DeliveryZone(max_distance_km=5, fee_cents=499, label="Within 5 km"),
        DeliveryZone(max_distance_km=10, fee_cents=799, label="Within 10 km"),
    ],
    courier_provider="uber_direct",
)


def _make_session_factory():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def fee_config():
    """Fee settings with fixed values, independent of the environment."""
    return TEST_FEES


@pytest.fixture
def tenant_manager():
    """One default tenant using TEST_FEES."""
    manager = TenantManager()
    manager.register_tenant(TenantConfig(slug="default", name="Test Deli", fee_config=TEST_FEES))
    manager.default_tenant = "default"
    return manager


@pytest.fixture
def db_session():
    """A session on its own in-memory database."""
    SessionLocal = _make_session_factory()
    session = SessionLocal()
    cart_store.clear_cache()
    try:
        yield session
    finally:
        session.close()
        cart_store.clear_cache()


@pytest.fixture
def client(monkeypatch, tenant_manager):
    """Shared FastAPI TestClient using an in-memory SQLite DB.

    Uses StaticPool so all connections share the same in-memory database.
    Sets up test admin credentials for authentication.
    """
    monkeypatch.setattr(config_mod, "ADMIN_USERNAME", TEST_ADMIN_USERNAME)
    monkeypatch.setattr(config_mod, "ADMIN_PASSWORD", TEST_ADMIN_PASSWORD)

    TestingSessionLocal = _make_session_factory()

    # Override FastAPI DB dependency
    def override_get_db():
        db_sess = TestingSessionLocal()
        try:
            yield db_sess
        finally:
            db_sess.close()

    app.dependency_overrides[db.get_db] = override_get_db
    set_tenant_manager(tenant_manager)

    cart_store.clear_cache()
    quote_cache.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_tenant_manager(None)
    cart_store.clear_cache()
    quote_cache.clear()


@pytest.fixture
def admin_auth():
    """Returns HTTP Basic Auth tuple for admin endpoints."""
    return (TEST_ADMIN_USERNAME, TEST_ADMIN_PASSWORD)
