"""
Database engine configuration for vidblog.

Provides async SQLAlchemy engine with SQLite WAL mode,
crash-safe PRAGMA configuration, and session management.
"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from vidblog.config import settings


def configure_sqlite_pragmas(dbapi_conn, connection_record):
    """
    Configure SQLite PRAGMA settings for crash safety and performance.

    - WAL mode: Write-Ahead Logging for better concurrency
    - FULL synchronous: Maximum crash safety
    - Foreign keys: Required for workflow_logs ON DELETE CASCADE
    - Busy timeout: Wait up to 5s for locks
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=FULL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine, registering SQLite pragmas where applicable.

    In-memory SQLite databases share one connection so every session sees
    the same schema.
    """
    kwargs = {}
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}

    new_engine = create_async_engine(database_url, echo=False, **kwargs)

    if new_engine.dialect.name == "sqlite":
        # Use sync_engine for aiosqlite compatibility
        event.listens_for(new_engine.sync_engine, "connect")(configure_sqlite_pragmas)

    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps loaded attributes usable after commit
    return async_sessionmaker(bind, expire_on_commit=False, class_=AsyncSession)


engine = build_engine(settings.storage.database_url)
async_session = build_session_factory(engine)


async def shutdown():
    """Dispose of engine and close all connections."""
    await engine.dispose()
