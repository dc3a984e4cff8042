"""
Pytest fixtures for the stock ledger test suite.

Provides:
- An isolated in-memory SQLite database per test (StaticPool, so every
  session sees the same connection)
- Seeded staff and manager users
- Product and raw ledger-entry factories
- A FastAPI TestClient bound to the test session, with bearer tokens minted
  through the application's own create_access_token
"""
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockledger.database import Base, get_db
from stockledger.immutability import register_ledger_guard
from stockledger.models import User, LedgerEntry
from stockledger.schemas.inventory import ProductCreate, OperationType
from stockledger.security import create_access_token, get_password_hash
from stockledger.services import stock

TEST_PASSWORD = "correct-horse-battery"
# bcrypt is slow on purpose; hash once for the whole run
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture(autouse=True, scope="session")
def _ledger_guard():
    register_ledger_guard()
    yield


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
def session(engine):
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    db = factory()
    yield db
    db.close()


def _make_user(session, username, role):
    user = User(
        username=username,
        password_hash=TEST_PASSWORD_HASH,
        full_name=username.title(),
        role=role,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def staff_user(session):
    return _make_user(session, "staff", "staff")


@pytest.fixture
def manager_user(session):
    return _make_user(session, "manager", "manager")


@pytest.fixture
def make_product(session, staff_user):
    """
    Create a product through the stock service, so a positive starting
    quantity gets its initial purchase entry.
    """
    def _make(sku="WID-1", quantity=20, reorder_level=10, price="2.50", category="Widgets", name=None, **extra):
        product_in = ProductCreate(
            sku=sku,
            name=name or f"Product {sku}",
            category=category,
            price=Decimal(price),
            quantity=quantity,
            reorder_level=reorder_level,
            **extra,
        )
        product, _ = stock.create_product(session, product_in, staff_user.id)
        return product
    return _make


@pytest.fixture
def add_entry(session):
    """
    Insert a ledger row directly, with an explicit timestamp. Product
    quantities are not touched; use for aggregation and report fixtures.
    """
    def _add(product, user, old_quantity, new_quantity, operation_type=OperationType.SALE,
             created_at=None, reason="fixture"):
        values = dict(
            product_id=product.id,
            user_id=user.id,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            reason=reason,
            operation_type=OperationType(operation_type).value,
        )
        if created_at is not None:
            values["created_at"] = created_at
        entry = session.execute(insert(LedgerEntry).values(**values).returning(LedgerEntry)).scalar_one()
        session.commit()
        return entry
    return _add


def utc(year, month, day, hour=12):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def fake_entry(product_id=1, user_id=1, old=10, new=5, op="sale", created_at=None):
    """Plain stand-in for a ledger row, for the pure aggregation code"""
    return SimpleNamespace(
        product_id=product_id,
        user_id=user_id,
        old_quantity=old,
        new_quantity=new,
        operation_type=op,
        created_at=created_at or utc(2024, 1, 1),
    )


@pytest.fixture
def client(session):
    from stockledger.main import app

    def _get_db():
        yield session

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user):
    token = create_access_token({"sub": user.username, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def staff_headers(staff_user):
    return auth_headers(staff_user)


@pytest.fixture
def manager_headers(manager_user):
    return auth_headers(manager_user)
