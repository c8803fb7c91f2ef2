"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_DEMO_DATA", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.db.base import Base
from app.models.area import Area
from app.models.product import Product
from app.schemas.actor import ActorContext
from app.schemas.price_override import LocationScope, PriceOverrideCreate
from app.services.price_overrides import create_override


# In-memory SQLite shared across threads so the TestClient sees the same data
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def db_session() -> Session:
    """Fresh schema per test."""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
def catalogue(db_session: Session) -> dict[str, Product]:
    products = {
        "S1": Product(sku="S1", name="Cola Can 330ml", base_price=100.0, final_price=100.0),
        "S2": Product(sku="S2", name="Salted Chips 50g", base_price=20.0, final_price=20.0),
        "RETIRED": Product(sku="RETIRED", name="Old Candy Bar", base_price=10.0, is_active=False),
    }
    db_session.add_all(products.values())
    db_session.commit()
    return products


@pytest.fixture
def areas(db_session: Session) -> dict[str, Area]:
    rows = {
        "whitefield": Area(area_name="Whitefield Tech Park", state="KA", district="Bengaluru Urban"),
        "omr": Area(area_name="OMR IT Corridor", state="TN", district="Chennai"),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


@pytest.fixture
def actor() -> ActorContext:
    return ActorContext(
        user_id=7,
        email="ops@example.com",
        name="Ops Manager",
        role="ops_manager",
        ip_address="10.0.0.5",
        user_agent="pytest",
        request_path="/api/v1/price-overrides",
    )


@pytest.fixture
def make_override(db_session: Session, catalogue, actor, now):
    """Factory creating overrides through the real create path (validation + history)."""

    def _make(sku: str = "S1", **fields):
        location = fields.pop("location", None)
        payload = PriceOverrideCreate(
            sku_id=catalogue[sku].id,
            override_price=fields.pop("override_price", 80.0),
            start_date=fields.pop("start_date", now - timedelta(days=1)),
            end_date=fields.pop("end_date", now + timedelta(days=1)),
            reason=fields.pop("reason", "promo"),
            location=LocationScope(**location) if location else None,
            **fields,
        )
        return create_override(db_session, payload, actor)

    return _make


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: service-level tests against an in-memory database")
    config.addinivalue_line("markers", "integration: HTTP tests through the FastAPI test client")
