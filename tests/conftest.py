import os

# Settings are read at import time, so the test environment must be in place
# before anything from the app is imported.
os.environ["ENV"] = "testing"
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")

import pytest
from decimal import Decimal
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base
from models.categories import Category
from models.products import Product
from models.product_variants import ProductVariant
from models.users import User
from services.auth_service import AuthService
from utils.deps import get_db, get_payment_gateway
from utils.hashing import get_password_hash
from tests.fakes import FakeGateway

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def client(session: Session, gateway: FakeGateway):
    """
    Async HTTP client bound to the app, the test database and the fake
    payment gateway.
    """
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def _create_user(session: Session, email: str, role: str = "customer") -> User:
    user = User(
        email=email,
        first_name="Test",
        last_name="User",
        hashed_password=get_password_hash("TestPassword123!"),
        phone_number="+14155550123",
        role=role,
        is_active=True
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def _headers_for(user: User) -> dict:
    token = AuthService.create_access_token(user.email, user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def customer(session) -> User:
    return _create_user(session, "customer@example.com")


@pytest.fixture
def other_customer(session) -> User:
    return _create_user(session, "other@example.com")


@pytest.fixture
def admin(session) -> User:
    return _create_user(session, "admin@example.com", role="admin")


@pytest.fixture
def auth_headers(customer) -> dict:
    return _headers_for(customer)


@pytest.fixture
def other_headers(other_customer) -> dict:
    return _headers_for(other_customer)


@pytest.fixture
def admin_headers(admin) -> dict:
    return _headers_for(admin)


@pytest.fixture
def user_context(customer) -> dict:
    """The dict get_current_user hands to routes, for service-level tests."""
    return {"email": customer.email, "user_id": customer.id, "user_role": customer.role}


@pytest.fixture
def products(session) -> dict[str, Product]:
    """A small catalog: jacket 60.00, jeans 50.00, tee 40.00 (with one variant)."""
    apparel = Category(name="Apparel", slug="apparel")
    catalog = {
        "jacket": Product(name="Denim Jacket", slug="denim-jacket", price=Decimal("60.00"), stock=5, category=apparel),
        "jeans": Product(name="Slim Jeans", slug="slim-jeans", price=Decimal("50.00"), stock=5, category=apparel),
        "tee": Product(name="Basic Tee", slug="basic-tee", price=Decimal("40.00"), stock=5, category=apparel),
    }
    session.add_all(catalog.values())
    session.commit()

    variant = ProductVariant(product_id=catalog["tee"].id, name="Medium / Black", sku="TEE-M-BLK")
    session.add(variant)
    session.commit()

    for product in catalog.values():
        session.refresh(product)
    return catalog
