"""
Async SQLAlchemy engine and session factory.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) in tests.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from authgate.core.config import settings
from authgate.models.orm import Base

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None

def make_engine(url: str) -> AsyncEngine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_async_engine(url, connect_args=connect_args)

def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def init_db(url: Optional[str] = None) -> async_sessionmaker[AsyncSession]:
    global _engine, _session_factory
    url = url or settings.DATABASE_URL
    logger.info(f"Initializing database: {url.split('@')[-1]}")
    _engine = make_engine(url)
    await create_schema(_engine)
    _session_factory = make_session_factory(_engine)
    return _session_factory

async def close_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _session_factory = None

def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
