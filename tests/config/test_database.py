"""
Tests for database configuration.
"""

import pytest
from unittest.mock import MagicMock
from sqlalchemy import func, select

from counterfeit_scan.config.database import check_database_connection, create_engine, get_db_session
from counterfeit_scan.models.database import Plan


@pytest.mark.asyncio
async def test_database_connection_success(session_maker):
    """Test successful database connection check."""
    assert await check_database_connection(session_maker) is True


@pytest.mark.asyncio
async def test_database_connection_failure():
    """Test database connection check failure."""
    session_maker = MagicMock(side_effect=Exception("Connection failed"))

    assert await check_database_connection(session_maker) is False


@pytest.mark.asyncio
async def test_session_commits_on_success(session_maker):
    """Test the session context commits when the block succeeds."""
    async with get_db_session(session_maker) as session:
        session.add(Plan(name="Starter", local_quota_per_month=100, high_quota_per_month=10))

    async with get_db_session(session_maker) as session:
        count = await session.scalar(select(func.count(Plan.id)))

    assert count == 1


@pytest.mark.asyncio
async def test_session_rolls_back_on_error(session_maker):
    """Test the session context rolls back and re-raises on error."""
    with pytest.raises(RuntimeError):
        async with get_db_session(session_maker) as session:
            session.add(Plan(name="Starter", local_quota_per_month=100, high_quota_per_month=10))
            await session.flush()
            raise RuntimeError("boom")

    async with get_db_session(session_maker) as session:
        count = await session.scalar(select(func.count(Plan.id)))

    assert count == 0


@pytest.mark.asyncio
async def test_create_engine_sqlite_skips_pool_options():
    """Test SQLite engines are created without server pool sizing."""
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    try:
        assert engine.url.drivername == "sqlite+aiosqlite"
    finally:
        await engine.dispose()
