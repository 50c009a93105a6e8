import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings

logger = logging.getLogger(__name__)

# Create declarative base
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the async engine and session factory for one process lifetime.

    Opened at startup with connect(), closed at shutdown with dispose(), and
    passed explicitly to every component that needs storage.
    """

    def __init__(self, url: str = None, echo: Optional[bool] = None):
        self.url = url or settings.DATABASE_URL
        self.echo = settings.DEBUG if echo is None else echo
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        return self._engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def connect(self) -> "Database":
        """Create the engine and session factory (idempotent)"""
        if self._engine is not None:
            return self

        engine_kwargs = {"echo": self.echo, "pool_pre_ping": True}
        if not self.url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=settings.DB_POOL_SIZE,  # Maximum number of persistent connections
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_recycle=settings.DB_POOL_RECYCLE,
            )
        else:
            # One shared connection so in-memory databases survive across sessions
            engine_kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})

        self._engine = create_async_engine(self.url, **engine_kwargs)
        if self._engine.dialect.name == "sqlite":
            # SQLite only honours ON DELETE CASCADE with foreign keys enabled
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        self._sessionmaker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info(f"Database engine created for {self._engine.url.render_as_string(hide_password=True)}")
        return self

    async def create_all(self) -> None:
        """Create any missing tables from the ORM metadata"""
        # Import models so every table is registered on Base.metadata
        from feedreader import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close every pooled connection"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
            logger.info("Database engine disposed")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self._sessionmaker is None:
            raise RuntimeError("Database is not connected")
        async with self._sessionmaker() as session:
            yield session
