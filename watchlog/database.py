"""SQLite engine wrapper shared by the client cache and the reference backend.

The client opens it on ``CACHE_DATABASE_URL`` and reads and writes
``cache_entries`` (one JSON snapshot per stream key). The backend opens it on
``DATABASE_URL`` and keeps every record in ``kv_entries`` under prefixed keys
such as ``movie:<id>`` or ``rating:<movieId>:<userIdentifier>``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for ``cache_entries`` and ``kv_entries``."""

    metadata = MetaData()


class Database:
    """Owns one async engine and the session factory handed to the stores.

    Both tables are created on every database; each side only touches its own.
    """

    def __init__(self, database_url: str):
        self._engine: AsyncEngine = create_async_engine(database_url, future=True)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_all(self) -> None:
        """Create ``cache_entries`` and ``kv_entries`` if they do not yet exist."""

        # Imported for its side effect of registering the mapped tables.
        from . import db_models  # noqa: F401

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Dispose of the underlying database engine."""

        await self._engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Provide a session scope around a series of operations."""

        async with self.session_factory() as session:
            yield session
