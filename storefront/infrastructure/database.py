"""Database configuration and session management.

Provides async SQLAlchemy engine and session factory.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from storefront.infrastructure.config import settings


def build_engine(url: str, **options: Any) -> AsyncEngine:
    """Create an async engine for the given URL.

    SQLite connections get foreign key enforcement switched on so that
    ON DELETE rules behave the same as on a server database.

    Args:
        url: SQLAlchemy database URL.
        **options: Extra keyword arguments for ``create_async_engine``.

    Returns:
        Configured async engine.
    """
    options.setdefault("echo", settings.debug)
    options.setdefault("pool_pre_ping", True)
    engine = create_async_engine(url, **options)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


# Create async engine
engine = build_engine(settings.database_url)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for models
Base = declarative_base()


async def create_tables(target: AsyncEngine | None = None) -> None:
    """Create all tables registered on the declarative base.

    Args:
        target: Engine to use, defaults to the application engine.
    """
    # Register every model on the metadata before creating
    import storefront.accounts.models  # noqa: F401
    import storefront.catalog.models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession for database operations.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
