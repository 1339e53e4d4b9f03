"""Keeps the in-memory collections consistent with the remote store.

Loads are read-through: the remote store is preferred and the local cache is
the fallback. Mutations are optimistic and write-through: the new state is
applied and cached first, then the remote call is issued, and a failed call
never rolls the local state back. The server catches up on the next
successful load.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from ..config import Settings
from ..models import COLLECTIONS, CatalogEntry, Collection, Comment, SortOption
from ..pipeline import DerivedView, collect_tags, derive_view, recent_entries
from ..utils import generate_comment_id, now_millis
from ..view_state import ViewState
from .cache import COMMENTS_STREAM, LocalCache, PreferenceStore, stream_for
from .remote import Err, Ok, RemoteResult, RemoteStoreClient

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)
EntryTransform = Callable[[list[CatalogEntry]], list[CatalogEntry]]


@dataclass(slots=True)
class TransferOutcome:
    """Result of moving an entry from the to-watch list into the main list."""

    entry: CatalogEntry
    added: bool
    removed: bool

    @property
    def synced(self) -> bool:
        return self.added and self.removed


def _coerce_mapping(raw: object) -> dict[str, Any]:
    return raw if isinstance(raw, dict) else {}


def _parse_records(raw: object, model: type[RecordT], label: str) -> list[RecordT] | None:
    """Validate a remote record list item by item.

    Invalid items are logged and dropped; only a payload that is not a list at
    all returns None.
    """

    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning("Unexpected %s payload type %s", label, type(raw).__name__)
        return None
    records: list[RecordT] = []
    for item in raw:
        try:
            records.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning("Skipping invalid %s record from remote store: %s", label, exc)
    return records


def merge_ratings(
    entries: Iterable[CatalogEntry],
    averages: Mapping[str, Mapping[str, Any]],
    user_ratings: Mapping[str, Any],
) -> list[CatalogEntry]:
    """Rewrite community aggregates and fold in the device's own ratings.

    Aggregates are replaced wholesale. The personal rating prefers the fetched
    value but keeps the existing one when nothing was fetched, so a pending
    local rating survives a reload that raced with it.
    """

    merged: list[CatalogEntry] = []
    for entry in entries:
        aggregate = _coerce_mapping(averages.get(str(entry.id)))
        fetched = user_ratings.get(str(entry.id))
        merged.append(
            entry.model_copy(
                update={
                    "community_rating": aggregate.get("average") or None,
                    "rating_count": aggregate.get("count") or None,
                    "user_rating": fetched or entry.user_rating,
                }
            )
        )
    return merged


def _wire_name(name: str) -> str:
    field = CatalogEntry.model_fields.get(name)
    if field is not None and field.alias:
        return field.alias
    return name


def next_entry_id(entries: Iterable[CatalogEntry]) -> int:
    return max((entry.id for entry in entries), default=0) + 1


class CatalogReconciler:
    """Owns the collections, comments, detail slot and view state of a session."""

    def __init__(
        self,
        settings: Settings,
        remote: RemoteStoreClient,
        cache: LocalCache,
        preferences: PreferenceStore,
        *,
        user_identifier: str,
        view: ViewState | None = None,
    ) -> None:
        self._settings = settings
        self._remote = remote
        self._cache = cache
        self._preferences = preferences
        self.user_identifier = user_identifier
        self.movies: list[CatalogEntry] = []
        self.to_watch: list[CatalogEntry] = []
        self.comments: list[Comment] = []
        self.selected: CatalogEntry | None = None
        self.selected_collection: Collection | None = None
        self.view = view or ViewState.initial()

    @classmethod
    async def create(
        cls,
        settings: Settings,
        remote: RemoteStoreClient,
        cache: LocalCache,
    ) -> "CatalogReconciler":
        """Build a reconciler seeded from the persisted preferences."""

        preferences = PreferenceStore(cache)
        stored = await preferences.load()
        identifier = await preferences.user_identifier()
        return cls(
            settings,
            remote,
            cache,
            preferences,
            user_identifier=identifier,
            view=ViewState.initial(sort=stored.sort),
        )

    # Collection resolution -------------------------------------------------

    @property
    def active_collection(self) -> Collection:
        return self.view.collection

    def entries(self, collection: Collection) -> list[CatalogEntry]:
        if collection == "towatch":
            return self.to_watch
        if collection == "main":
            return self.movies
        raise ValueError(f"Unknown collection: {collection}")

    def _set_entries(self, collection: Collection, entries: list[CatalogEntry]) -> None:
        if collection == "towatch":
            self.to_watch = entries
        else:
            self.movies = entries

    def find(self, entry_id: int, collection: Collection | None = None) -> CatalogEntry | None:
        target = collection or self.active_collection
        return next((entry for entry in self.entries(target) if entry.id == entry_id), None)

    # Loading ---------------------------------------------------------------

    async def load_collection(self, collection: Collection) -> list[CatalogEntry]:
        """Load ``collection`` from the remote store, falling back to the cache."""

        stream = stream_for(collection)
        result = await self._remote.collection(collection).list()
        entries: list[CatalogEntry] | None = None
        if isinstance(result, Ok):
            entries = _parse_records(
                result.payload.get("movies"), CatalogEntry, f"{collection} collection"
            )
        if entries is None:
            logger.info("Loading %s collection from local cache", collection)
            entries = await self._cache.load_models(stream, CatalogEntry)
        else:
            await self._cache.save(stream, entries)
        self._set_entries(collection, entries)
        return entries

    async def load_comments(self) -> list[Comment]:
        result = await self._remote.comments.list()
        comments: list[Comment] | None = None
        if isinstance(result, Ok):
            comments = _parse_records(result.payload.get("comments"), Comment, "comments")
        if comments is None:
            logger.info("Loading comments from local cache")
            comments = await self._cache.load_models(COMMENTS_STREAM, Comment)
        else:
            await self._cache.save(COMMENTS_STREAM, comments)
        self.comments = comments
        return comments

    async def load_ratings(self) -> bool:
        """Merge community and personal ratings into both collections.

        Returns False, leaving every entry untouched, when the aggregates could
        not be fetched.
        """

        averages_result = await self._remote.fetch_rating_averages()
        user_result = await self._remote.fetch_user_ratings(self.user_identifier)

        user_ratings: dict[str, Any] = {}
        if isinstance(user_result, Ok):
            user_ratings = _coerce_mapping(user_result.payload.get("userRatings"))

        if not isinstance(averages_result, Ok):
            logger.warning("Skipping rating merge: %s", averages_result.reason)
            return False
        averages = averages_result.payload.get("averages")
        if not isinstance(averages, dict):
            logger.warning("Skipping rating merge: no averages in payload")
            return False

        for collection in COLLECTIONS:
            self._set_entries(
                collection,
                merge_ratings(self.entries(collection), averages, user_ratings),
            )
        if self.selected is not None:
            refreshed = merge_ratings([self.selected], averages, user_ratings)
            self.selected = refreshed[0]
        return True

    async def load_all(self) -> None:
        """Run the startup loads one after another."""

        await self.load_collection("main")
        await self.load_collection("towatch")
        await self.load_comments()
        await self.load_ratings()

    # Mutations -------------------------------------------------------------

    async def _apply(
        self,
        collection: Collection,
        transform: EntryTransform,
        *,
        touched: int | None = None,
        patch: Mapping[str, Any] | None = None,
    ) -> list[CatalogEntry]:
        """Apply ``transform`` to ``collection`` and persist the result.

        ``collection`` must already be resolved; it is used for the read, the
        write and the cache key alike.
        """

        updated = transform(list(self.entries(collection)))
        self._set_entries(collection, updated)
        await self._cache.save(stream_for(collection), updated)
        if patch and self._is_selected(touched, collection):
            self.selected = self.selected.model_copy(update=dict(patch))
        return updated

    @staticmethod
    def _log_failure(action: str, result: RemoteResult) -> None:
        if isinstance(result, Err):
            logger.warning("Remote %s failed, keeping local state: %s", action, result.reason)

    async def add_entry(
        self, entry: CatalogEntry, collection: Collection | None = None
    ) -> RemoteResult:
        target = collection or self.active_collection
        if self.find(entry.id, target) is not None:
            raise ValueError(f"Entry {entry.id} already exists in {target}")
        await self._apply(target, lambda entries: [entry, *entries])
        result = await self._remote.collection(target).create(entry.to_payload())
        self._log_failure(f"add to {target}", result)
        return result

    async def delete_entry(
        self,
        entry_id: int,
        collection: Collection | None = None,
        *,
        confirm: Callable[[], bool] | None = None,
    ) -> RemoteResult | None:
        """Remove an entry; returns None when ``confirm`` declines."""

        if confirm is not None and not confirm():
            logger.info("Delete of entry %s cancelled", entry_id)
            return None
        target = collection or self.active_collection
        await self._apply(
            target, lambda entries: [entry for entry in entries if entry.id != entry_id]
        )
        if self._is_selected(entry_id, target):
            self.close_detail()
        result = await self._remote.collection(target).delete(entry_id)
        self._log_failure(f"delete from {target}", result)
        return result

    async def update_fields(
        self,
        entry_id: int,
        fields: Mapping[str, Any],
        collection: Collection | None = None,
        *,
        sync: bool = True,
    ) -> RemoteResult | None:
        """Patch ``fields`` (python attribute names) on one entry."""

        target = collection or self.active_collection
        patch = dict(fields)

        def transform(entries: list[CatalogEntry]) -> list[CatalogEntry]:
            return [
                entry.model_copy(update=patch) if entry.id == entry_id else entry
                for entry in entries
            ]

        await self._apply(target, transform, touched=entry_id, patch=patch)
        if not sync:
            return None
        wire_fields = {_wire_name(name): value for name, value in patch.items()}
        result = await self._remote.collection(target).update(entry_id, wire_fields)
        self._log_failure(f"update of {target} entry {entry_id}", result)
        return result

    async def update_poster(self, entry_id: int, image: str) -> RemoteResult | None:
        return await self.update_fields(entry_id, {"image": image})

    async def update_runtime(self, entry_id: int, runtime: str) -> RemoteResult | None:
        return await self.update_fields(entry_id, {"runtime": runtime})

    async def update_tags(self, entry_id: int, tags: Iterable[str]) -> RemoteResult | None:
        return await self.update_fields(entry_id, {"tags": list(dict.fromkeys(tags))})

    async def update_rating(self, entry_id: int, rating: int) -> RemoteResult:
        """Record the device's rating locally, submit it, then refresh the aggregate."""

        if not 1 <= rating <= 5:
            raise ValueError("Rating must be between 1 and 5")
        target = self.active_collection
        await self.update_fields(entry_id, {"user_rating": rating}, target, sync=False)

        result = await self._remote.submit_rating(entry_id, rating, self.user_identifier)
        self._log_failure(f"rating of entry {entry_id}", result)
        if isinstance(result, Err):
            return result

        aggregate = await self._remote.fetch_movie_ratings(entry_id)
        if isinstance(aggregate, Ok):
            await self.update_fields(
                entry_id,
                {
                    "community_rating": aggregate.payload.get("average"),
                    "rating_count": aggregate.payload.get("count"),
                },
                target,
                sync=False,
            )
        return result

    async def mark_as_watched(self, entry: CatalogEntry) -> TransferOutcome:
        """Move a to-watch entry into the main collection under a new id."""

        moved = entry.model_copy(update={"id": next_entry_id(self.movies)})
        await self._apply("main", lambda entries: [moved, *entries])
        await self._apply(
            "towatch", lambda entries: [item for item in entries if item.id != entry.id]
        )
        self.close_detail()

        added = await self._remote.movies.create(moved.to_payload())
        removed = await self._remote.towatch.delete(entry.id)
        self._log_failure(f"add of watched entry {moved.id}", added)
        self._log_failure(f"removal of to-watch entry {entry.id}", removed)
        return TransferOutcome(entry=moved, added=added.ok, removed=removed.ok)

    # Comments --------------------------------------------------------------

    def comments_for(self, movie_id: int) -> list[Comment]:
        return [comment for comment in self.comments if comment.movie_id == movie_id]

    async def add_comment(self, movie_id: int, text: str, username: str) -> RemoteResult:
        comment = Comment(
            id=generate_comment_id(),
            movie_id=movie_id,
            text=text,
            username=username,
            timestamp=now_millis(),
        )
        self.comments = [*self.comments, comment]
        await self._cache.save(COMMENTS_STREAM, self.comments)
        result = await self._remote.comments.create(comment.to_payload())
        self._log_failure(f"comment on entry {movie_id}", result)
        return result

    async def delete_comment(self, movie_id: int, comment_id: str) -> RemoteResult:
        self.comments = [comment for comment in self.comments if comment.id != comment_id]
        await self._cache.save(COMMENTS_STREAM, self.comments)
        result = await self._remote.comments.delete(movie_id, comment_id)
        self._log_failure(f"comment deletion {comment_id}", result)
        return result

    # Detail slot -----------------------------------------------------------

    def _is_selected(self, entry_id: int | None, collection: Collection) -> bool:
        return (
            self.selected is not None
            and self.selected.id == entry_id
            and self.selected_collection == collection
        )

    def open_detail(self, entry: CatalogEntry, collection: Collection | None = None) -> None:
        self.selected = entry
        self.selected_collection = collection or self.active_collection

    def close_detail(self) -> None:
        self.selected = None
        self.selected_collection = None

    def pick_random(self, rng: random.Random | None = None) -> CatalogEntry | None:
        """Open a random entry of the active collection, if there is one."""

        entries = self.entries(self.active_collection)
        if not entries:
            return None
        chooser = rng or random
        self.open_detail(chooser.choice(entries))
        return self.selected

    # View state ------------------------------------------------------------

    def update_view(self, view: ViewState) -> ViewState:
        self.view = view
        return view

    def switch_collection(self, collection: Collection) -> ViewState:
        return self.update_view(self.view.with_collection(collection))

    def change_page(self, page: int) -> ViewState:
        return self.update_view(self.view.with_page(page))

    async def change_sort(self, sort: SortOption) -> ViewState:
        view = self.update_view(self.view.with_sort(sort))
        await self._preferences.save_sort(sort)
        return view

    def visible(self) -> DerivedView:
        return derive_view(
            self.entries(self.active_collection), self.view, self._settings.page_sizes
        )

    def available_tags(self) -> list[str]:
        return collect_tags(self.entries(self.active_collection))

    def recent(self) -> list[CatalogEntry]:
        return recent_entries(self.movies, self._settings.recent_entry_count)
