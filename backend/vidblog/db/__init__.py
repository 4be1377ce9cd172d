"""
Database module for vidblog.

Provides async SQLAlchemy engine with SQLite WAL mode,
session management, and schema initialization.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from vidblog.db.engine import async_session, build_engine, build_session_factory, engine, shutdown
from vidblog.db.models import Base, PromptRecord, WorkflowLogRecord, WorkflowRecord

logger = logging.getLogger(__name__)


async def init_database(bind: AsyncEngine | None = None):
    """Initialize database schema on first run."""
    target = bind if bind is not None else engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


__all__ = [
    "Base",
    "WorkflowRecord",
    "WorkflowLogRecord",
    "PromptRecord",
    "engine",
    "async_session",
    "build_engine",
    "build_session_factory",
    "shutdown",
    "init_database",
]
