from __future__ import annotations

"""
Asynchronous Database Utilities Module

This module builds the async SQLAlchemy engine and session factory used by
the SQL repositories. Nothing is created at import time: the dependency
injection container calls these helpers with an explicit settings object.

**Security Note**: Ensure that the database connection URL (DATABASE_URL) is
configured for SSL/TLS when connecting over untrusted networks. asyncpg does
not accept 'sslmode' in connect_args, so the parameter is translated into
asyncpg's ``ssl`` argument here. Avoid logging connection details.

Key Components:
    - create_engine_from_settings: Builds the pooled async engine.
    - create_session_factory: A factory for creating asynchronous database sessions.
    - create_db_and_tables: Utility to create tables using the async engine.
"""

import urllib.parse as urlparse
from typing import Any, Dict

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

# Imported for their side effect of registering tables on SQLModel.metadata.
from credo.domain.entities import PasswordResetRecord, RefreshTokenRecord, User  # noqa: F401

logger = structlog.get_logger(__name__)


def build_async_url(database_url: str) -> tuple[str, Dict[str, Any]]:
    """
    Normalizes a database URL for the asyncpg driver.

    Replaces a sync driver with asyncpg and moves ``sslmode`` out of the query
    string, which asyncpg does not understand, into connect arguments.

    Args:
        database_url: The configured URL.

    Returns:
        tuple: The cleaned URL and extra connect arguments.
    """
    async_url = database_url.replace("postgresql+psycopg2", "postgresql+asyncpg")
    if async_url.startswith("postgresql://"):
        async_url = async_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    parsed = urlparse.urlparse(async_url)
    query = dict(urlparse.parse_qsl(parsed.query))
    sslmode = query.pop("sslmode", None)
    parsed = parsed._replace(query=urlparse.urlencode(query))

    connect_args: Dict[str, Any] = {}
    if sslmode and sslmode not in ("disable", "allow", "prefer"):
        connect_args["ssl"] = sslmode
    return urlparse.urlunparse(parsed), connect_args


def create_engine_from_settings(settings) -> AsyncEngine:
    """
    Creates the pooled async engine.

    A server-side ``statement_timeout`` bounds every statement so a slow query
    surfaces as an error instead of holding a connection indefinitely.

    Args:
        settings: Service settings carrying DATABASE_URL and pool parameters.

    Returns:
        AsyncEngine: The engine.
    """
    url, connect_args = build_async_url(settings.DATABASE_URL)
    engine_kwargs: Dict[str, Any] = {"echo": False, "pool_pre_ping": True}

    if url.startswith("postgresql+asyncpg"):
        connect_args["server_settings"] = {
            "statement_timeout": str(settings.POSTGRES_STATEMENT_TIMEOUT_MS)
        }
        connect_args["timeout"] = settings.POSTGRES_POOL_TIMEOUT
        engine_kwargs.update(
            pool_size=settings.POSTGRES_POOL_SIZE,
            max_overflow=settings.POSTGRES_MAX_OVERFLOW,
            pool_timeout=settings.POSTGRES_POOL_TIMEOUT,
        )

    engine = create_async_engine(url, connect_args=connect_args, **engine_kwargs)
    logger.info("Async database engine created", driver=engine.url.drivername)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Returns a session factory whose objects stay usable after commit."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_db_and_tables(engine: AsyncEngine) -> None:
    """
    Create tables using the async engine (mainly for test suites and local runs).

    Production schemas are managed by alembic migrations.
    """
    logger.info("Creating database tables")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables created")
