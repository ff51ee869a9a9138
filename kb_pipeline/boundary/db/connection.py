"""
Database connection management.

Provides the async SQLAlchemy engine, session factory, and FastAPI dependency
for database session injection. Pipeline stages open one short-lived session
per unit of work from the factory; detached tasks open their own.

Dependencies: sqlalchemy, asyncpg, kb_pipeline.configs
System role: Database connection lifecycle management
"""

from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from kb_pipeline.configs import get_settings


@lru_cache
def get_async_engine() -> AsyncEngine:
    """
    Create async SQLAlchemy engine with connection pooling.

    pool_pre_ping=True verifies connections before use to detect
    stale/broken connections early.

    Returns:
        AsyncEngine: Configured async SQLAlchemy engine

    Raises:
        ArgumentError: If database URL is invalid or engine creation fails
    """
    db_config = get_settings().database
    url = db_config.async_database_url

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=db_config.echo_sql)

    return create_async_engine(
        url,
        echo=db_config.echo_sql,
        pool_size=db_config.pool_size,
        max_overflow=db_config.max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_pre_ping=True,
    )


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Create async session factory for database operations.

    Returns fresh async_sessionmaker bound to engine with autoflush=False
    for explicit transaction control and predictable behavior.

    Returns:
        async_sessionmaker: Async session factory configured for manual transaction control

    Usage:
        SessionFactory = get_async_session_factory()
        async with SessionFactory() as session:
            session.add(obj)
            await session.commit()
    """
    return create_session_factory(get_async_engine())


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for async database session injection with automatic cleanup.

    Yields:
        AsyncSession: Async SQLAlchemy database session (scoped to request lifetime)
    """
    SessionFactory = get_async_session_factory()
    async with SessionFactory() as session:
        yield session


def create_task_engine() -> AsyncEngine:
    """
    Engine for a single worker invocation.

    Celery tasks run each stage under a fresh event loop, so pooled
    connections cannot be shared between invocations; NullPool opens and
    closes connections per checkout.

    Returns:
        AsyncEngine: Unpooled async engine (dispose after use)
    """
    db_config = get_settings().database
    return create_async_engine(
        db_config.async_database_url,
        echo=db_config.echo_sql,
        poolclass=NullPool,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to ``engine`` with the pipeline's session options."""
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
