"""Database engine and session factory construction with async support."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from pulsewatch.config import DatabaseConfig
from pulsewatch.database.base import Base


def _enable_sqlite_wal(dbapi_connection, connection_record) -> None:
    # WAL lets readers run alongside the single writer
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """
    Create the async engine for the configured database.

    SQLite gets a NullPool so that every session opens its own connection;
    concurrent per-endpoint sessions would otherwise serialize on one
    connection. Its connections run in WAL mode and wait up to
    ``sqlite_busy_timeout`` seconds for the write lock, so overlapping
    writers queue instead of failing with "database is locked".
    PostgreSQL uses a regular queue pool.

    Args:
        config: Database section of the service configuration

    Returns:
        AsyncEngine: Configured engine
    """
    if config.url.startswith("sqlite"):
        engine = create_async_engine(
            config.url,
            echo=config.echo,
            poolclass=NullPool,
            connect_args={"timeout": config.sqlite_busy_timeout},
        )
        event.listen(engine.sync_engine, "connect", _enable_sqlite_wal)
        return engine

    return create_async_engine(
        config.url,
        echo=config.echo,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_pre_ping=config.pool_pre_ping,
        pool_recycle=3600,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by the scheduler and background jobs."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that don't exist yet."""
    # Importing registers every model on Base.metadata
    import pulsewatch.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)