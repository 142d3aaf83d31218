"""
Pytest fixtures for the subscriptions API.

Provides an in-memory database, seeded account/address/products, and a
FastAPI test client whose subscription service runs on a fixed clock.
"""

import os
from datetime import datetime
from typing import Generator

# Must be set before the app modules read their configuration
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.domain.subscriptions.router import get_subscription_service
from app.domain.subscriptions.service import SubscriptionService
from app.main import app
from app.models import Address, Product, User

# Wednesday 14 Oct 2026, 10:00 store time
FIXED_NOW = datetime(2026, 10, 14, 10, 0)

TEST_TOKEN = "test-token"
OTHER_TOKEN = "other-token"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db_session: Session) -> dict:
    """Two accounts, one address each, and a small catalog"""
    user = User(full_name="Asha", phone="+919800000001", api_token=TEST_TOKEN)
    other = User(full_name="Ravi", phone="+919800000002", api_token=OTHER_TOKEN)
    db_session.add_all([user, other])
    db_session.flush()

    home = Address(user_id=user.id, label="home", line1="12 MG Road", city="Pune", pincode="411001")
    other_home = Address(user_id=other.id, label="home", line1="9 FC Road", city="Pune")
    milk = Product(name="Toned Milk 1L", price=60.0, unit="1 L", stock=50)
    bread = Product(name="Brown Bread", price=45.5, unit="400 g", stock=20)
    eggs = Product(name="Eggs (12)", price=90.0, stock=0, available=False)
    db_session.add_all([home, other_home, milk, bread, eggs])
    db_session.commit()

    return {
        "user": user,
        "other": other,
        "address_id": home.public_id,
        "other_address_id": other_home.public_id,
        "milk_id": milk.public_id,
        "bread_id": bread.public_id,
        "eggs_id": eggs.public_id,
    }


@pytest.fixture
def clock():
    """Mutable clock so tests can move time between requests"""

    class Clock:
        now = FIXED_NOW

        def __call__(self) -> datetime:
            return self.now

    return Clock()


@pytest.fixture
def client(engine, seed, clock) -> Generator[TestClient, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    def override_service(db: Session = Depends(get_db)) -> SubscriptionService:
        return SubscriptionService(db, clock=clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_subscription_service] = override_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest.fixture
def weekly_payload(seed) -> dict:
    return {
        "items": [{"productId": seed["milk_id"], "quantity": 2}],
        "frequency": "weekly",
        "deliveryTime": {"hour": 8, "minute": 0},
        "deliveryDays": [1, 3, 5],
        "deliveryAddressId": seed["address_id"],
        "paymentMethod": "wallet",
    }
