"""Database configuration."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from roadmap_engine.core.config import get_settings
from roadmap_engine.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def build_engine(url: str, *, echo: bool = False, **kwargs) -> AsyncEngine:
    """Create an async engine.

    SQLite connections get foreign keys switched on and explicit BEGIN
    statements, so SAVEPOINTs nest inside a real transaction.
    """
    async_engine = create_async_engine(url, echo=echo, future=True, **kwargs)

    if async_engine.dialect.name == "sqlite":

        @event.listens_for(async_engine.sync_engine, "connect")
        def _configure_sqlite(dbapi_connection, connection_record) -> None:
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(async_engine.sync_engine, "begin")
        def _begin_sqlite(conn) -> None:
            conn.exec_driver_sql("BEGIN")

    return async_engine


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


async def init_db() -> None:
    """Initialize database tables."""
    # Import models so their tables are registered on the metadata
    import roadmap_engine.models  # noqa: F401

    async with engine.begin() as conn:
        logger.info("Creating database tables")
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    logger.info("Closing database connections")
    await engine.dispose()


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session as a context manager."""
    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for FastAPI dependency injection."""
    async with get_db_session() as session:
        yield session
