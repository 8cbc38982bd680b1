"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from inventory_backend.app.main import app
from inventory_backend.app.db.session import get_db, Base, make_session_factory
from inventory_backend.app.core.dependencies import get_ledger_engine
from inventory_backend.app.core.jwt import create_access_token
from inventory_backend.app.domain.ledger import store
from inventory_backend.app.domain.ledger.engine import LedgerEngine
from inventory_backend.app.domain.ledger.types import Actor, PartitionKey

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def ledger(session_factory):
    # Sequential rebuild: the in-memory database has a single shared connection
    return LedgerEngine(session_factory, rebuild_concurrency=1)


@pytest.fixture
def actor():
    return Actor(user_id=7, username="clerk")


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def partition_rows(session_factory):
    """Read back a partition as ordered entries."""
    async def _rows(product_id: int, location_code: str):
        async with session_factory() as session:
            return list(await store.load_partition(session, PartitionKey(product_id, location_code)))
    return _rows


@pytest.fixture
async def client(session_factory, ledger):
    """Async client for testing."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ledger_engine] = lambda: ledger

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


@pytest.fixture
def auth_headers():
    token = create_access_token(data={"sub": "clerk", "user_id": 7})
    return {"Authorization": f"Bearer {token}"}
