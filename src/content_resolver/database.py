"""Async SQLAlchemy engine and session management."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from content_resolver.config import settings
from content_resolver.errors import PersistenceError
from content_resolver.models import Base


class Database:
    """Owns the async engine and hands out short-lived sessions.

    Repositories open one session per operation. Any SQLAlchemy failure
    inside ``session()`` is rolled back and re-raised as PersistenceError,
    so services only ever deal with the pipeline's own error taxonomy.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def create(cls, url: str | None = None, echo: bool | None = None) -> "Database":
        """Factory method to create a Database from a URL.

        Args:
            url: SQLAlchemy async URL. If None, uses settings.
            echo: Log SQL statements. If None, uses settings.

        Returns:
            Configured Database
        """
        url = url or settings.database_url
        kwargs: dict = {"echo": settings.database_echo if echo is None else echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"timeout": 30}
        return cls(create_async_engine(url, **kwargs))

    @property
    def engine(self) -> AsyncEngine:
        """Get the underlying engine."""
        return self._engine

    @property
    def dialect_name(self) -> str:
        """Name of the SQL dialect ("sqlite", "postgresql", ...)."""
        return self._engine.dialect.name

    def insert(self, model: type[Base]):
        """Dialect insert construct supporting ON CONFLICT clauses."""
        if self.dialect_name == "postgresql":
            return postgresql.insert(model)
        if self.dialect_name == "sqlite":
            return sqlite.insert(model)
        raise PersistenceError(f"Unsupported dialect for upserts: {self.dialect_name}")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a transactional session, committing on success."""
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceError(f"Persistent store error: {e}") from e

    async def create_all(self) -> None:
        """Create missing tables."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Schema ready on {self.dialect_name}")

    async def health_check(self) -> bool:
        """Check if the store is reachable.

        Returns:
            True if healthy, False otherwise
        """
        try:
            async with self._engine.connect() as conn:
                await conn.exec_driver_sql("SELECT 1")
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Persistent store health check failed: {e}")
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self._engine.dispose()
