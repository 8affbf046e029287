"""
Lensmatch Discover: Async Database Engine & Session Factory

Provides two connection strategies:

1. **Cloud Run (production)**: uses ``cloud-sql-python-connector`` with
   automatic IAM authentication.  Activated when ``CLOUD_SQL_USE_UNIX_SOCKET``
   is *True* **and** a ``CLOUD_SQL_INSTANCE_CONNECTION`` is provided.

2. **Everything else**: a plain async URL read from ``DATABASE_URL``
   (``postgresql+asyncpg://`` in deployments, ``sqlite+aiosqlite://`` in
   tests).

The engine is built lazily on first use so that importing a model or a
service never opens a connection pool.
"""

from __future__ import annotations

from typing import AsyncGenerator

import structlog
from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from lensmatch.config import get_settings

logger = structlog.get_logger("lensmatch.database")


# ------------------------------------------------------------------ #
# Declarative base for all ORM models
# ------------------------------------------------------------------ #

_NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Shared declarative base.  Unique and check constraints are always
    named explicitly on the model so the match-race handler can recognise
    them."""

    metadata = MetaData(naming_convention=_NAMING_CONVENTION)


# ------------------------------------------------------------------ #
# Pool configuration (server databases only)
# ------------------------------------------------------------------ #

_POOL_KWARGS = {
    "pool_size": 10,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


def _build_cloud_sql_engine() -> AsyncEngine:
    """Create an async engine that connects through the Cloud SQL Python
    Connector with automatic IAM authentication."""
    from google.cloud.sql.connector import Connector

    settings = get_settings()
    connector = Connector()

    async def _get_connection():
        return await connector.connect_async(
            settings.CLOUD_SQL_INSTANCE_CONNECTION,
            "asyncpg",
            user=settings.DB_USER,
            password=settings.DB_PASSWORD,
            db=settings.DB_NAME,
            enable_iam_auth=True,
        )

    engine = create_async_engine(
        "postgresql+asyncpg://",
        async_creator=_get_connection,
        echo=(settings.LOG_LEVEL == "DEBUG"),
        **_POOL_KWARGS,
    )
    logger.info(
        "database_engine_created",
        strategy="cloud_sql_connector",
        instance=settings.CLOUD_SQL_INSTANCE_CONNECTION,
    )
    return engine


def _build_url_engine() -> AsyncEngine:
    """Create an async engine from ``DATABASE_URL``.

    A plain ``postgresql://`` scheme is upgraded to the asyncpg dialect.
    """
    settings = get_settings()
    url = settings.DATABASE_URL

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    kwargs = {} if url.startswith("sqlite") else dict(_POOL_KWARGS)
    engine = create_async_engine(
        url,
        echo=(settings.LOG_LEVEL == "DEBUG"),
        **kwargs,
    )
    logger.info("database_engine_created", strategy="database_url")
    return engine


def create_engine_from_settings() -> AsyncEngine:
    """Select the appropriate engine builder based on configuration."""
    settings = get_settings()
    if settings.CLOUD_SQL_USE_UNIX_SOCKET and settings.CLOUD_SQL_INSTANCE_CONNECTION:
        return _build_cloud_sql_engine()
    return _build_url_engine()


# ------------------------------------------------------------------ #
# Lazily-initialised engine & session factory
# ------------------------------------------------------------------ #

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_engine_from_settings()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory, building it on first use."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("database_pool_closed")
    _engine = None
    _session_factory = None


# ------------------------------------------------------------------ #
# FastAPI dependency
# ------------------------------------------------------------------ #

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an ``AsyncSession``; services commit their own units of work,
    anything left pending is committed here or rolled back on error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
