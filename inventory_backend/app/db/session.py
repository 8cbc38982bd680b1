"""
Database session configuration.

Builds the async engine and session factory used by the ledger engine.
PostgreSQL (asyncpg) is the production target; SQLite (aiosqlite) URLs are
accepted for local runs of the maintenance scripts and for tests.

Sessions keep attributes loaded after commit (expire_on_commit=False) so
ledger entries can be returned from a closed unit of work.
"""

from typing import Any, Dict
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from inventory_backend.app.core.config import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """Pool sizing only applies to server databases."""
    options: Dict[str, Any] = {"echo": settings.db_echo, "future": True}
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
        )
    return options


def make_session_factory(bind) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine
engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))

# Create async session factory
AsyncSessionLocal = make_session_factory(engine)

# Create declarative base for models
Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Yields a session for resolver lookups; ledger mutations open their own
    units of work through the LedgerEngine.
    """
    async with AsyncSessionLocal() as session:
        yield session
