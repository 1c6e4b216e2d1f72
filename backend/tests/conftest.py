"""
Pytest configuration and fixtures for marketplace tests.

Each test gets a fresh in-memory SQLite database (aiosqlite, StaticPool) and
an httpx client whose requests run against it through the get_db override.
"""
import os
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["AUTO_ACTIVATE_ACCOUNTS"] = "true"
os.environ["COOKIE_SECURE"] = "false"

from marketplace.core.database import Base, get_db  # noqa: E402
from marketplace.core.security import create_access_token, get_password_hash  # noqa: E402
from marketplace.main import app  # noqa: E402
from marketplace.models import CartItem, Product, User  # noqa: E402
from marketplace.models.user import USER_STATUS_ACTIVE  # noqa: E402

TEST_PASSWORD = "correct-horse-battery"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def make_user(db: AsyncSession, username: str, status: str = USER_STATUS_ACTIVE, **fields) -> User:
    user = User(
        email=f"{username}@example.com",
        username=username,
        hashed_password=get_password_hash(TEST_PASSWORD),
        status=status,
        first_name=fields.pop("first_name", username.title()),
        last_name=fields.pop("last_name", "Tester"),
        street=fields.pop("street", "1 Main St"),
        zip_code=fields.pop("zip_code", "00-001"),
        city=fields.pop("city", "Warsaw"),
        country=fields.pop("country", "Poland"),
        phone=fields.pop("phone", "+48123456789"),
        **fields,
    )
    db.add(user)
    await db.commit()
    return user


async def make_product(db: AsyncSession, seller: User, name: str = "Lamp", price: str = "10.00", quantity: int = 5, photo: bytes = None) -> Product:
    product = Product(
        name=name,
        description=f"{name} in good shape",
        price=Decimal(price),
        quantity=quantity,
        seller_id=seller.id,
        photo=photo,
        has_photo=photo is not None,
        photo_content_type="image/png" if photo is not None else None,
    )
    db.add(product)
    await db.commit()
    return product


async def put_in_cart(db: AsyncSession, user: User, *lines) -> None:
    """Persist cart rows as (product_id, quantity) pairs, in order."""
    for position, (product_id, quantity) in enumerate(lines):
        db.add(CartItem(user_id=user.id, product_id=product_id, quantity=quantity, position=position))
    await db.commit()


async def stock_of(db: AsyncSession, product_id: int):
    """Current stock straight from the database, None when the product is gone."""
    result = await db.execute(select(Product.quantity).where(Product.id == product_id))
    return result.scalar_one_or_none()


async def cart_rows(db: AsyncSession, user_id: int):
    result = await db.execute(
        select(CartItem.product_id, CartItem.quantity)
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.position)
    )
    return [tuple(row) for row in result.all()]


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


@pytest_asyncio.fixture
async def seller_a(db) -> User:
    return await make_user(db, "seller_a")


@pytest_asyncio.fixture
async def seller_b(db) -> User:
    return await make_user(db, "seller_b")


@pytest_asyncio.fixture
async def buyer(db) -> User:
    return await make_user(db, "buyer")
