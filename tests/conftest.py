import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

from contextlib import contextmanager
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.api.deps import get_lock_service, get_rate_limiter
from storefront.data import models  # noqa: F401
from storefront.data.database import Base, get_db
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel
from storefront.data.models.user import UserModel
from storefront.domain.errors import Conflict
from storefront.main import app
from storefront.services.auth_service import AuthService
from storefront.services.rate_limiter import InMemoryRateLimiter
from storefront.utils.security import hash_password

PASSWORD = "secret123"


class FakeLockService:
    """In-process stand-in for the Redis checkout lock."""

    def __init__(self):
        self.held = set()
        self.acquired = []

    @contextmanager
    def checkout_lock(self, owner_key: str, ttl: int = 30):
        key = f"checkout:{owner_key}:lock"
        if key in self.held:
            raise Conflict("A checkout for this cart is already in progress")
        self.held.add(key)
        self.acquired.append(key)
        try:
            yield
        finally:
            self.held.discard(key)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def lock_service():
    return FakeLockService()


@pytest.fixture()
def rate_limiter():
    return InMemoryRateLimiter(max_attempts=5, window_seconds=900)


@pytest.fixture()
def client(session_factory, lock_service, rate_limiter):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lock_service] = lambda: lock_service
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def make_product(db):
    def _make(**kwargs):
        data = {
            "title": "Mechanical keyboard",
            "description": "Hot-swappable mechanical keyboard",
            "brand": "Keychron",
            "category": "peripherals",
            "image": "https://example.com/kb.jpg",
            "price": Decimal("100.00"),
            "original_price": None,
            "stock": 10,
            "is_active": True,
        }
        data.update(kwargs)
        product = ProductModel(**data)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture()
def make_user(db):
    def _make(email="ana@example.com", role="user", password=PASSWORD, **kwargs):
        user = UserModel(
            email=email,
            password_hash=hash_password(password),
            first_name=kwargs.pop("first_name", "Ana"),
            role=role,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {AuthService.issue_token(user)}"}

    return _headers


@pytest.fixture()
def add_cart_row(db):
    def _add(product, quantity=1, user_id=None, session_id=None):
        row = CartItemModel(
            product_id=product.id,
            quantity=quantity,
            price=product.price,
            user_id=user_id,
            session_id=session_id,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    return _add


@pytest.fixture()
def checkout_data():
    return _checkout_payload


def _checkout_payload(**overrides):
    payload = {
        "customer_name": "Ana Souza",
        "customer_email": "ana@example.com",
        "customer_phone": "11987654321",
        "shipping_address": {
            "street": "Rua das Flores",
            "number": "123",
            "neighborhood": "Centro",
            "city": "São Paulo",
            "state": "SP",
            "postal_code": "01000-000",
        },
        "payment_method": "pix",
        "shipping": "10.00",
        "tax": "0.00",
    }
    payload.update(overrides)
    return payload
