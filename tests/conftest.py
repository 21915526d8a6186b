"""Pytest fixtures for Petal Place tests."""

import os

# Settings are read at import time; point everything at throwaway stores first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("RESEND_API_KEY", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
import models.users  # noqa: F401
import models.product  # noqa: F401
import models.cart  # noqa: F401
import models.order  # noqa: F401
import models.review  # noqa: F401
import models.log  # noqa: F401
from models.users import User, ROLE_ADMIN, ROLE_CUSTOMER, ROLE_FLORIST
from models.product import Product
from utils.hashing import get_password_hash
from utils.tokenJWT import create_access_token


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADDRESS = {
    "first_name": "Jane",
    "last_name": "Doe",
    "address_line_1": "12 Garden Row",
    "city": "Springfield",
    "state": "IL",
    "postal_code": "62701",
    "country": "US",
    "phone": "555-0100",
}


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    from main import app

    def _get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(db, email, role, password="secret123"):
    user = User(
        email=email,
        password_hash=get_password_hash(password),
        role=role,
        first_name=email.split("@")[0].title(),
        last_name="Tester",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def customer(db):
    return _make_user(db, "jane@example.com", ROLE_CUSTOMER)


@pytest.fixture
def other_customer(db):
    return _make_user(db, "sam@example.com", ROLE_CUSTOMER)


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@example.com", ROLE_ADMIN)


@pytest.fixture
def florist(db):
    return _make_user(db, "florist@example.com", ROLE_FLORIST)


def auth_headers(user):
    token = create_access_token(data={"sub": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def other_headers(other_customer):
    return auth_headers(other_customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def florist_headers(florist):
    return auth_headers(florist)


def make_product(db, name, price, stock, category="roses", sku=None, is_active=True):
    product = Product(
        name=name, price=price, stock_quantity=stock, category=category, sku=sku, is_active=is_active,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def roses(db):
    return make_product(db, "Red Roses", 10.0, 5, sku="RS-RED")


@pytest.fixture
def tulips(db):
    return make_product(db, "Tulip Mix", 15.0, 3, category="tulips", sku="TL-MIX")


def order_payload(items, subtotal, tax=0.0, shipping=0.0, discount=0.0, **extra):
    payload = {
        "items": items,
        "delivery_address": dict(ADDRESS),
        "subtotal": subtotal,
        "tax_amount": tax,
        "shipping_amount": shipping,
        "discount_amount": discount,
        "payment_method": "card",
        "customer_email": "jane@example.com",
        "customer_name": "Jane Doe",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def placed_order(client, customer_headers, roses, tulips):
    """Scenario A order: 2 roses and 1 tulip mix."""
    response = client.post(
        "/orders",
        json=order_payload(
            [{"product_id": roses.id, "quantity": 2}, {"product_id": tulips.id, "quantity": 1}],
            subtotal=35.0, tax=3.5,
        ),
        headers=customer_headers,
    )
    assert response.status_code == 200, response.text
    return response.json()
