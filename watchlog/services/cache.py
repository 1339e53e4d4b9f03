"""Durable client-side cache holding the last known-good snapshots."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import CacheEntry
from ..models import Collection, SortOption
from ..utils import generate_user_identifier

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

CATALOG_STREAM = "movies"
TOWATCH_STREAM = "toWatchMovies"
COMMENTS_STREAM = "comments"

DARK_MODE_KEY = "darkMode"
SORT_PREFERENCE_KEY = "sortPreference"
USER_IDENTIFIER_KEY = "userIdentifier"

SORT_OPTIONS: tuple[SortOption, ...] = (
    "dateAdded",
    "dateAddedLatest",
    "title",
    "year",
    "imdbRating",
    "userRating",
)


def stream_for(collection: Collection) -> str:
    """Return the cache stream key holding ``collection``."""

    return TOWATCH_STREAM if collection == "towatch" else CATALOG_STREAM


class LocalCache:
    """Key-addressed snapshot store that never fails its caller.

    Reads of missing, unparsable or structurally wrong snapshots come back
    empty; write failures are logged and dropped.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _read(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                entry = await session.get(CacheEntry, key)
                return entry.payload if entry is not None else None
        except SQLAlchemyError:
            logger.exception("Failed to read cache key %s", key)
            return None

    async def _write(self, key: str, payload: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.merge(CacheEntry(key=key, payload=payload))
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to write cache key %s", key)

    async def load(self, stream_key: str) -> list[dict[str, Any]]:
        """Return the stored sequence for ``stream_key`` or an empty list."""

        raw = await self._read(stream_key)
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt cache snapshot %s", stream_key)
            return []
        if not isinstance(data, list):
            logger.warning("Discarding non-list cache snapshot %s", stream_key)
            return []
        return [item for item in data if isinstance(item, dict)]

    async def load_models(self, stream_key: str, model: type[ModelT]) -> list[ModelT]:
        """Return the snapshot validated into ``model`` instances.

        A single invalid item invalidates the whole snapshot.
        """

        items = await self.load(stream_key)
        try:
            return [model.model_validate(item) for item in items]
        except ValidationError as exc:
            logger.warning(
                "Discarding invalid cache snapshot %s: %s", stream_key, exc
            )
            return []

    async def save(self, stream_key: str, items: Iterable[BaseModel | dict[str, Any]]) -> None:
        payload = [
            item.model_dump(mode="json", by_alias=True, exclude_none=True)
            if isinstance(item, BaseModel)
            else item
            for item in items
        ]
        await self._write(stream_key, json.dumps(payload))

    async def get_value(self, key: str) -> Any:
        """Return a stored scalar value or ``None`` if absent or corrupt."""

        raw = await self._read(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt cache value %s", key)
            return None

    async def set_value(self, key: str, value: Any) -> None:
        await self._write(key, json.dumps(value))


class Preferences(BaseModel):
    """Durable display settings shared across sessions."""

    dark_mode: bool = False
    sort: SortOption = "dateAdded"


class PreferenceStore:
    """Loads and saves :class:`Preferences` and the device identifier."""

    def __init__(self, cache: LocalCache):
        self._cache = cache

    async def load(self) -> Preferences:
        dark_mode = await self._cache.get_value(DARK_MODE_KEY)
        sort = await self._cache.get_value(SORT_PREFERENCE_KEY)
        return Preferences(
            dark_mode=dark_mode if isinstance(dark_mode, bool) else False,
            sort=sort if sort in SORT_OPTIONS else "dateAdded",
        )

    async def save(self, preferences: Preferences) -> None:
        await self._cache.set_value(DARK_MODE_KEY, preferences.dark_mode)
        await self._cache.set_value(SORT_PREFERENCE_KEY, preferences.sort)

    async def save_sort(self, sort: SortOption) -> None:
        await self._cache.set_value(SORT_PREFERENCE_KEY, sort)

    async def user_identifier(self) -> str:
        """Return the persisted device identifier, creating it on first use."""

        stored = await self._cache.get_value(USER_IDENTIFIER_KEY)
        if isinstance(stored, str) and stored:
            return stored
        identifier = generate_user_identifier()
        await self._cache.set_value(USER_IDENTIFIER_KEY, identifier)
        logger.info("Generated device identifier %s", identifier)
        return identifier
