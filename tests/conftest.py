"""Shared pytest fixtures for all test suites."""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.db.engine import normalize_async_url
from backend.app.db.models import Base


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Async engine on a real PostgreSQL server with the document tables created.

    Skips unless DATABASE_URL names a PostgreSQL database. Tests using it
    carry @pytest.mark.postgres and build their own SqlVersionStore on top.
    Tables are dropped again afterwards.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    # NullPool: concurrent edits need separate connections
    engine = create_async_engine(normalize_async_url(database_url), poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
