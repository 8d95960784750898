from __future__ import annotations

from datetime import date
from decimal import Decimal
import os
import sys
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ["RUN_MIGRATIONS_ON_STARTUP"] = "0"
os.environ["NOTIFICATION_TRANSPORT"] = "console"

from backend.app.database import Base, enable_sqlite_transactions, get_db
from backend.app.delivery_patterns import AlternatePattern, DailyPattern
from backend.app.main import app
from backend.app import models
from backend.app.services.billing_settings import BillingSettings
from backend.app.services.notifications import BillingNotifier, ConsoleNotificationClient

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_transactions(engine)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    # Service commits release a savepoint; the outer transaction is discarded.
    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def billing_settings() -> BillingSettings:
    return BillingSettings(dairy_name="Gokul Dairy", dairy_phone="98200 00000")


@pytest.fixture
def console_client() -> ConsoleNotificationClient:
    return ConsoleNotificationClient()


@pytest.fixture
def notifier(console_client: ConsoleNotificationClient) -> BillingNotifier:
    return BillingNotifier(console_client, large_transaction_threshold=Decimal("10000"))


@pytest.fixture
def seed_route(db_session: Session) -> dict:
    """Two products and three customers on one delivery route."""

    milk = models.Product(name="Cow Milk", unit="litre", base_price=Decimal("60.00"))
    curd = models.Product(name="Curd", unit="kg", base_price=Decimal("80.00"))
    db_session.add_all([milk, curd])
    db_session.flush()

    daily = models.Customer(name="Asha Patil", phone="98200 11111", address="12 Lake Road")
    alternate = models.Customer(name="Bhavesh Shah", phone="98200 22222")
    manual = models.Customer(name="Chitra Rao", auto_deliver=False)
    db_session.add_all([daily, alternate, manual])
    db_session.flush()

    daily_milk = models.Subscription(
        customer_id=daily.id,
        product_id=milk.id,
        quantity=Decimal("2"),
        delivery_pattern=DailyPattern(),
    )
    alternate_curd = models.Subscription(
        customer_id=alternate.id,
        product_id=curd.id,
        quantity=Decimal("0.5"),
        custom_price=Decimal("76.00"),
        delivery_pattern=AlternatePattern(anchor_date=date(2024, 6, 1)),
    )
    manual_milk = models.Subscription(
        customer_id=manual.id,
        product_id=milk.id,
        quantity=Decimal("1"),
        delivery_pattern=DailyPattern(),
    )
    db_session.add_all([daily_milk, alternate_curd, manual_milk])
    db_session.commit()

    return {
        "milk": milk,
        "curd": curd,
        "daily": daily,
        "alternate": alternate,
        "manual": manual,
        "daily_milk": daily_milk,
        "alternate_curd": alternate_curd,
    }


@pytest.fixture
def delivered_june(db_session: Session, seed_route: dict) -> dict:
    """Asha receives 2 litres on 2024-06-01; nobody else is delivered."""

    customer = seed_route["daily"]
    delivery = models.Delivery(
        customer_id=customer.id,
        delivery_date=date(2024, 6, 1),
        status=models.DeliveryStatus.DELIVERED,
        items=[
            models.DeliveryItem(
                product_id=seed_route["milk"].id,
                quantity=Decimal("2"),
                unit_price=Decimal("60.00"),
                total_amount=Decimal("120.00"),
            )
        ],
    )
    db_session.add(delivery)
    db_session.commit()
    return {**seed_route, "delivery": delivery}
