"""SQLAlchemy async engine & session factory for the local SQLite store (WAL mode)."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from mediasync.config import settings
from mediasync.models.base import Base

logger = logging.getLogger(__name__)


def _configure_sqlite(dbapi_conn, _connection_record):
    """Apply SQLite PRAGMAs for a small field device."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA cache_size=-8000")  # 8 MB
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_path: str | Path) -> AsyncEngine:
    """Create an async engine for the SQLite file at ``database_path``."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{database_path}",
        echo=settings.debug and settings.log_level == "DEBUG",
        pool_size=settings.max_db_connections,
        max_overflow=0,
    )
    # Apply SQLite PRAGMAs on each new connection
    event.listen(engine.sync_engine, "connect", _configure_sqlite)
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified at %s", engine.url.database)
