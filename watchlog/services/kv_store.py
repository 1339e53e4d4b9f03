"""Key-value storage used by the reference catalog backend."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import KeyValueRecord


class KeyValueStore:
    """Point reads, writes, deletes and prefix scans over ``kv_entries``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, key: str) -> Any:
        async with self._session_factory() as session:
            record = await session.get(KeyValueRecord, key)
            return record.value if record is not None else None

    async def set(self, key: str, value: Any) -> None:
        async with self._session_factory() as session:
            await session.merge(KeyValueRecord(key=key, value=value))
            await session.commit()

    async def delete(self, key: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(KeyValueRecord).where(KeyValueRecord.key == key))
            await session.commit()

    async def get_by_prefix(self, prefix: str) -> list[Any]:
        """Return every value whose key starts with ``prefix``, ordered by key."""

        statement = (
            select(KeyValueRecord.value)
            .where(KeyValueRecord.key.startswith(prefix, autoescape=True))
            .order_by(KeyValueRecord.key)
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return list(result.scalars())
