import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-with-at-least-32-characters")
os.environ.setdefault("ENVIRONMENT", "test")

from typing import Callable, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.api.deps import get_db, get_payment_gateway
from storefront.db.models import Product, User, UserRole
from storefront.db.session import Base
from storefront.main import app
from storefront.security.utils import create_access_token
from storefront.services import cart as cart_service
from storefront.services.payment import PaymentResult


class FakeGateway:
    """Deterministic stand-in for the simulated gateway."""

    def __init__(self, success: bool = True, reason: str = "Card declined", on_charge: Optional[Callable] = None):
        self.success = success
        self.reason = reason
        self.on_charge = on_charge
        self.calls: List[tuple] = []

    def process_payment(self, amount_cents: int, method: str) -> PaymentResult:
        self.calls.append((amount_cents, method))
        if self.on_charge:
            self.on_charge()
        if self.success:
            return PaymentResult(success=True, transaction_id=f"txn_test_{len(self.calls)}")
        return PaymentResult(success=False, reason=self.reason)


@pytest.fixture
def engine(tmp_path):
    # file-backed so each session gets its own connection, like a real server
    eng = create_engine(f"sqlite:///{tmp_path / 'storefront.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, gateway):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.CUSTOMER, email: Optional[str] = None, cancellation_count: int = 0) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            password_hash="!",
            role=role,
            cancellation_count=cancellation_count,
        )
        db.add(user); db.commit(); db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_product(db):
    def _make(name: str = "Widget", price_cents: int = 1000, stock: int = 10, is_active: bool = True) -> Product:
        product = Product(name=name, description=f"{name} description", price_cents=price_cents, stock=stock, is_active=is_active)
        db.add(product); db.commit(); db.refresh(product)
        return product

    return _make


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role=UserRole.ADMIN, email="admin@example.com")


@pytest.fixture
def fill_cart(db):
    def _fill(user: User, *lines):
        for product, qty in lines:
            cart_service.add_item(db, user.id, product.id, qty)
    return _fill


def auth_headers(user: User) -> dict:
    token, _ = create_access_token(user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}
