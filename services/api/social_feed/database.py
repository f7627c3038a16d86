"""
Async SQLAlchemy engine + session factory for TiDB (MySQL-protocol).

TiDB is wire-compatible with MySQL 5.7, so we use the aiomysql driver.
The engine is owned by a ``Database`` handle that the application opens in
its lifespan and disposes at shutdown; request handlers receive sessions
from it through the ``get_db`` dependency.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from social_feed.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    def __init__(self, settings: Settings) -> None:
        self.url = settings.tidb_url
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not started")
        return self._engine

    async def start(self) -> None:
        kwargs = {"pool_pre_ping": True, "echo": False}
        # SQLite (used by the test-suite) rejects pool sizing arguments
        if not self.url.startswith("sqlite"):
            kwargs["pool_size"] = self._settings.db_pool_size
            kwargs["max_overflow"] = self._settings.db_max_overflow
        if self._settings.db_isolation_level:
            kwargs["isolation_level"] = self._settings.db_isolation_level

        self._engine = create_async_engine(self.url, **kwargs)
        self._sessionmaker = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database engine started (%s)", self._engine.url.render_as_string())

    async def stop(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._sessionmaker = None

    async def create_all(self) -> None:
        """Create all tables if they don't exist (idempotent)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialised")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session; commit on success, roll back on any failure
        (including cancellation)."""
        if self._sessionmaker is None:
            raise RuntimeError("Database is not started")
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise


async def get_db(request: Request):
    """FastAPI dependency that yields an async DB session."""
    database: Database = request.app.state.db
    async with database.session() as session:
        yield session
