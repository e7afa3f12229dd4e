"""
Database configuration and connection management.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from .settings import get_settings

logger = structlog.get_logger(module=__name__)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def create_engine(database_url: Optional[str] = None, **kwargs) -> AsyncEngine:
    """
    Create an async engine for the configured database.

    Args:
        database_url: Override for the configured database URL
        **kwargs: Extra engine options (e.g. poolclass for tests)

    Returns:
        AsyncEngine: Configured engine
    """
    settings = get_settings()
    url = database_url or settings.database_url

    options = {"echo": settings.database_echo}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=20,
            max_overflow=30,
            pool_pre_ping=True,  # Validate connections before use
            pool_recycle=3600,   # Recycle connections every hour
            pool_timeout=30,
        )
    options.update(kwargs)

    return create_async_engine(url, **options)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide session factory, creating the engine on first use."""
    global _engine, _session_maker
    if _session_maker is None:
        _engine = create_engine()
        _session_maker = create_session_maker(_engine)
    return _session_maker


@asynccontextmanager
async def get_db_session(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None
) -> AsyncIterator[AsyncSession]:
    """
    Open a database session, committing on success and rolling back on error.

    Yields:
        AsyncSession: Database session
    """
    factory = session_maker or get_session_maker()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables known to the declarative base."""
    from ..models import database  # noqa: F401  (registers tables)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")


async def check_database_connection(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None
) -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection is successful, False otherwise
    """
    try:
        factory = session_maker or get_session_maker()
        async with factory() as session:
            result = await session.execute(text("SELECT 1 as health_check"))
            row = result.fetchone()
            if row and row[0] == 1:
                logger.debug("Database connection check successful")
                return True
            logger.warning("Database connection check returned unexpected result")
            return False
    except Exception as e:
        logger.error("Database connection check failed", error=str(e), error_type=type(e).__name__)
        return False
