"""Database engine, session management and dialect helpers."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, func, literal
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from repository_usage.config import DatabaseType
from repository_usage.models import Base

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from datetime import datetime

    from sqlalchemy.sql import ColumnElement

    from repository_usage.config import Settings

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
_POSTGRES_TIMESTAMP_FORMAT = "YYYY-MM-DD HH24:MI:SS"


def create_engine(
    settings: Settings,
) -> tuple[
    AsyncEngine,
    async_sessionmaker[AsyncSession],
]:
    """Create async engine and session factory.

    Returns (engine, session_factory) tuple.
    """
    engine = create_async_engine(
        settings.database_url,
        echo=settings.debug,
    )
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


def format_timestamp(value: datetime) -> str:
    """Render a timestamp the way it is bound into SQL statements."""
    return value.strftime(TIMESTAMP_FORMAT)


class Database:
    """Shared database facade for the persistence services.

    If the engine cannot be created the facade stays inert: ``is_available``
    is False and every operation logs and does nothing.
    """

    def __init__(self, settings: Settings) -> None:
        self.database_type = settings.database_type
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

        try:
            if self.database_type is DatabaseType.SQLITE:
                Path(settings.database_name).parent.mkdir(parents=True, exist_ok=True)
            self.engine, self._session_factory = create_engine(settings)
        except (SQLAlchemyError, ImportError, ValueError, OSError) as exc:
            logger.error("Unable to create database connection: %s", exc)

    @property
    def is_available(self) -> bool:
        return self._session_factory is not None

    async def bootstrap(self) -> None:
        """Create the RefStatus and RepoUsage tables if they don't exist."""
        if self.engine is None:
            logger.error("Database unavailable; skipping schema creation")
            return
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Unable to create database schema: %s", exc)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Yield a session scoped to a single unit of work."""
        if self._session_factory is None:
            msg = "Database unavailable"
            raise RuntimeError(msg)
        async with self._session_factory() as session:
            yield session

    def timestamp(self, value: datetime) -> ColumnElement[Any]:
        """Bind expression for a timestamp column.

        PostgreSQL needs the string wrapped in TO_TIMESTAMP; the embedded
        database accepts the string as is.
        """
        bound = literal(format_timestamp(value), type_=String())
        if self.database_type is DatabaseType.POSTGRESQL:
            return func.to_timestamp(bound, _POSTGRES_TIMESTAMP_FORMAT)
        return bound

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
