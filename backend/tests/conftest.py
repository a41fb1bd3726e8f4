"""
Pytest configuration and shared fixtures for the CRM API tests.

Provides an in-memory SQLite session, an httpx client bound to the FastAPI
app (get_db overridden), bearer-token helpers and small catalog fixtures.
"""
import pytest
from typing import AsyncGenerator

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db
from domain.enums import Role, UserType
from middleware.auth import Principal, issue_access_token
from middleware.rate_limit import get_limiter

# ── Test Configuration ───────────────────────────────────────────────
# Set test-only values for settings that would normally come from .env
if not settings.jwt_secret:
    settings.jwt_secret = "test-jwt-secret-for-pytest-only"
settings.email_send_delay_seconds = 0

TEST_PASSWORD = "secret123"


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="function")
async def api_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx client against the ASGI app with the in-memory database.

    Overrides get_db dependency to use test DB session.
    """
    from main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    get_limiter().reset()
    yield
    get_limiter().reset()


# ── Principals & tokens ──────────────────────────────────────────────


def auth_headers(principal: Principal) -> dict:
    token = issue_access_token(
        principal_id=principal.id,
        role=principal.role,
        user_type=principal.user_type,
        email=principal.email,
        name=principal.name,
    )
    return {"Authorization": f"Bearer {token}"}


def admin_principal(admin) -> Principal:
    return Principal(id=admin.id, role=Role(admin.role), user_type=UserType.ADMIN, email=admin.email, name=admin.name)


def customer_principal(customer) -> Principal:
    return Principal(id=customer.id, role=Role.CUSTOMER, user_type=UserType.CUSTOMER, email=customer.email, name=customer.name)


async def _make_admin(db: AsyncSession, *, email: str, role: Role):
    from db_models import AdminUser
    from services.auth_service import hash_password

    admin = AdminUser(name=role.value.title(), email=email, password_hash=hash_password(TEST_PASSWORD), role=role.value)
    db.add(admin)
    await db.commit()
    return admin


@pytest.fixture
async def owner(db_session: AsyncSession):
    return await _make_admin(db_session, email="owner@example.com", role=Role.OWNER)


@pytest.fixture
async def operator(db_session: AsyncSession):
    return await _make_admin(db_session, email="operator@example.com", role=Role.OPERATOR)


@pytest.fixture
async def ec_customer(db_session: AsyncSession):
    """An EC customer who can log in."""
    from db_models import Customer
    from services.auth_service import hash_password

    customer = Customer(
        name="Hanako Yamada",
        email="hanako@example.com",
        password_hash=hash_password(TEST_PASSWORD),
        is_ec_user=True,
        enrollments=[],
        customer_tags=[],
    )
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest.fixture
async def other_customer(db_session: AsyncSession):
    from db_models import Customer

    customer = Customer(name="Taro Suzuki", email="taro@example.com", is_ec_user=True, enrollments=[], customer_tags=[])
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest.fixture
def owner_headers(owner) -> dict:
    return auth_headers(admin_principal(owner))


@pytest.fixture
def operator_headers(operator) -> dict:
    return auth_headers(admin_principal(operator))


@pytest.fixture
def customer_headers(ec_customer) -> dict:
    return auth_headers(customer_principal(ec_customer))


# ── Catalog Fixtures ─────────────────────────────────────────────────


@pytest.fixture
async def physical_category(db_session: AsyncSession):
    from db_models import Category

    category = Category(name="Books", category_type="PHYSICAL")
    db_session.add(category)
    await db_session.commit()
    return category


@pytest.fixture
async def digital_category(db_session: AsyncSession):
    from db_models import Category

    category = Category(name="Downloads", category_type="DIGITAL")
    db_session.add(category)
    await db_session.commit()
    return category


@pytest.fixture
async def products(db_session: AsyncSession, physical_category):
    """Two physical products: A (1000 yen, stock 10) and B (2500 yen, stock 5)."""
    from db_models import Product

    a = Product(name="Product A", price=1000, stock=10, category=physical_category)
    b = Product(name="Product B", price=2500, stock=5, category=physical_category)
    db_session.add_all([a, b])
    await db_session.commit()
    return a, b
