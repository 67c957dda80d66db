"""Pytest configuration and fixtures for Stockroom tests.

Each test gets a fresh database: a throwaway SQLite file by default, or the
database named by TEST_DATABASE_URL (e.g. a PostgreSQL test database). The
engine gets the same SQLite transaction handling as the application engine.
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import stockroom.models  # noqa: F401
from stockroom.auth.jwt import create_access_token
from stockroom.config import settings
from stockroom.database import (
    Base,
    configure_sqlite,
    engine_options,
    get_db,
    get_session_factory,
)
from stockroom.main import app
from stockroom.models.catalog import Category, Product, Warehouse
from stockroom.models.operation import Operation
from stockroom.schemas.operation import OperationCreate, OperationLineCreate
from stockroom.services import ledger
from stockroom.services.operations import add_operation_line, create_operation
from stockroom.utils import cache

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")

USER_ID = "user-0001"


# ── Settings ─────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def _test_settings(monkeypatch):
    """No Redis in tests; every test starts from the default stock policy."""
    monkeypatch.setattr(settings, "cache_enabled", False)
    monkeypatch.setattr(settings, "negative_stock_policy", "clamp")


class FakeRedis:
    """In-memory stand-in for the few Redis calls the cache makes."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def scan_iter(self, match):
        prefix = match.rstrip("*")
        for key in list(self.store):
            if key.startswith(prefix):
                yield key

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)


@pytest.fixture
def fake_redis(monkeypatch) -> FakeRedis:
    """Turn the cache on, backed by an in-memory FakeRedis."""
    client = FakeRedis()

    async def _get_redis():
        return client

    monkeypatch.setattr(settings, "cache_enabled", True)
    monkeypatch.setattr(cache, "get_redis", _get_redis)
    return client


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a test engine with an empty schema."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'stockroom_test.db'}"
    engine = create_async_engine(url, echo=False, **engine_options(url))
    if engine.dialect.name == "sqlite":
        configure_sqlite(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging and inspecting data.

    Tests commit their setup before calling the processor, which runs in
    sessions of its own.
    """
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create test client wired to the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Auth Fixtures ────────────────────────────────────────────────

@pytest.fixture
def auth_headers() -> dict:
    """Bearer token holding every permission."""
    token = create_access_token(user_id=USER_ID, permissions=["*"])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def reader_headers() -> dict:
    """Bearer token that can read but not write or process."""
    token = create_access_token(
        user_id="user-reader",
        permissions=["catalog.read", "stock.read", "operations.read", "reports.read"],
    )
    return {"Authorization": f"Bearer {token}"}


# ── Test Data Fixtures ───────────────────────────────────────────

@pytest_asyncio.fixture
async def category(db_session: AsyncSession) -> Category:
    category = Category(name="Hardware", is_active=True)
    db_session.add(category)
    await db_session.commit()
    return category


@pytest_asyncio.fixture
async def warehouse(db_session: AsyncSession) -> Warehouse:
    warehouse = Warehouse(name="Main Warehouse", code="WH-A", is_active=True)
    db_session.add(warehouse)
    await db_session.commit()
    return warehouse


@pytest_asyncio.fixture
async def second_warehouse(db_session: AsyncSession) -> Warehouse:
    warehouse = Warehouse(name="Overflow Warehouse", code="WH-B", is_active=True)
    db_session.add(warehouse)
    await db_session.commit()
    return warehouse


@pytest_asyncio.fixture
async def product(db_session: AsyncSession, category: Category) -> Product:
    product = Product(
        name="Steel Bolt M8",
        sku="BOLT-M8",
        category_id=category.id,
        unit_of_measure="pcs",
        reorder_level=10,
        reorder_quantity=50,
        is_active=True,
    )
    db_session.add(product)
    await db_session.commit()
    return product


@pytest_asyncio.fixture
async def other_product(db_session: AsyncSession, category: Category) -> Product:
    product = Product(
        name="Steel Nut M8",
        sku="NUT-M8",
        category_id=category.id,
        unit_of_measure="pcs",
        is_active=True,
    )
    db_session.add(product)
    await db_session.commit()
    return product


@pytest.fixture
def seed_stock(db_session: AsyncSession):
    """Book opening stock through the ledger so reconciliation stays clean."""

    async def _seed(product_id: str, warehouse_id: str, quantity: int) -> None:
        applied = await ledger.apply_delta(db_session, product_id, warehouse_id, quantity)
        await ledger.record_movement(
            db_session, applied, "in", "SEED", USER_ID, notes="Opening balance"
        )
        await db_session.commit()

    return _seed


@pytest.fixture
def make_operation(db_session: AsyncSession, warehouse: Warehouse):
    """Create a committed draft operation with (product_id, quantity) lines."""

    async def _make(
        type: str,
        lines: list[tuple[str, int]],
        *,
        warehouse_id: str | None = None,
        destination_warehouse_id: str | None = None,
    ) -> Operation:
        operation = await create_operation(
            db_session,
            OperationCreate(
                type=type,
                warehouse_id=warehouse_id or warehouse.id,
                destination_warehouse_id=destination_warehouse_id,
            ),
            USER_ID,
        )
        for product_id, quantity in lines:
            await add_operation_line(
                db_session,
                operation.id,
                OperationLineCreate(product_id=product_id, planned_quantity=quantity),
            )
        await db_session.commit()
        return operation

    return _make
