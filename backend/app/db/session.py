"""
Database session configuration.

This module handles database engine creation and session management
using SQLAlchemy with async support for PostgreSQL.

The engine is owned by a ``Database`` handle that the application creates
at startup and disposes at shutdown; nothing connects at import time.
"""

from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from backend.app.core.config import Settings, settings as default_settings

# Create declarative base for models
Base = declarative_base()


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine with bounded pool checkout and statement timeouts."""
    url = config.database_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=config.db_echo, future=True)

    connect_args = {}
    if "+asyncpg" in url:
        connect_args["command_timeout"] = config.db_command_timeout

    return create_async_engine(
        url,
        echo=config.db_echo,
        pool_size=config.db_pool_size,
        max_overflow=config.db_max_overflow,
        pool_timeout=config.db_pool_timeout,
        pool_pre_ping=True,
        connect_args=connect_args,
        future=True,
    )


class Database:
    """
    Lifetime-scoped storage handle.

    Wraps one engine and its session factory. Create it when the
    application starts, hand sessions out per unit of work, and call
    ``dispose`` on shutdown.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "Database":
        return cls(build_engine(config or default_settings))

    async def create_schema(self) -> None:
        """Apply table definitions once, at deployment/startup time."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency for database sessions.

    Yields an async database session and ensures it's properly closed.
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
