"""Derived view pipeline: filter, sort and paginate a collection.

Every function here is pure. The visible slice is recomputed from the
collection and the :class:`~watchlog.view_state.ViewState` on each change
rather than patched incrementally.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .models import CatalogEntry, SortOption
from .utils import classify_runtime, title_sort_key
from .view_state import ViewState

DEFAULT_PAGE_SIZES: tuple[int, ...] = (12, 15)
MAX_VISIBLE_PAGES = 7
WINDOW_SHIFT = 3


@dataclass(frozen=True, slots=True)
class PageSlice:
    """One page of the sorted collection at a given page size."""

    items: tuple[CatalogEntry, ...]
    page: int
    page_size: int
    total_pages: int


@dataclass(frozen=True, slots=True)
class DerivedView:
    """Filtered and sorted entries plus one page slice per page size."""

    entries: tuple[CatalogEntry, ...]
    pages: dict[int, PageSlice]

    @property
    def total(self) -> int:
        return len(self.entries)

    def page_for(self, page_size: int) -> PageSlice:
        return self.pages[page_size]


def matches(entry: CatalogEntry, state: ViewState) -> bool:
    """Return whether ``entry`` passes every active filter in ``state``."""

    if state.genres and entry.genre not in state.genres:
        return False
    if state.years and entry.year not in state.years:
        return False
    if state.search:
        query = state.search.lower()
        if query not in entry.title.lower() and query not in entry.description.lower():
            return False
    low, high = state.rating_range
    if not low <= entry.effective_rating <= high:
        return False
    if not classify_runtime(entry.runtime, state.runtime):
        return False
    if state.tags and not any(tag in entry.tags for tag in state.tags):
        return False
    return True


def filter_entries(
    entries: Iterable[CatalogEntry], state: ViewState
) -> list[CatalogEntry]:
    return [entry for entry in entries if matches(entry, state)]


_SORT_KEYS: dict[SortOption, tuple[Callable[[CatalogEntry], object], bool]] = {
    "dateAdded": (lambda entry: entry.id, True),
    "dateAddedLatest": (lambda entry: entry.id, False),
    "title": (lambda entry: title_sort_key(entry.title), False),
    "year": (lambda entry: entry.year, True),
    "imdbRating": (lambda entry: entry.effective_rating, True),
    "userRating": (lambda entry: entry.user_rating or 0, True),
}


def sort_entries(
    entries: Iterable[CatalogEntry], sort: SortOption
) -> list[CatalogEntry]:
    """Return ``entries`` ordered by ``sort``; ties keep their input order."""

    try:
        key, descending = _SORT_KEYS[sort]
    except KeyError:
        raise ValueError(f"Unknown sort option: {sort}") from None
    return sorted(entries, key=key, reverse=descending)


def total_pages(count: int, page_size: int) -> int:
    if page_size < 1:
        raise ValueError("page_size must be >= 1")
    return math.ceil(count / page_size)


def paginate(entries: Sequence[CatalogEntry], page: int, page_size: int) -> PageSlice:
    """Return the 1-based ``page`` of ``entries``; out-of-range pages are empty."""

    pages = total_pages(len(entries), page_size)
    start = (max(page, 1) - 1) * page_size
    return PageSlice(
        items=tuple(entries[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_pages=pages,
    )


def visible_slice(
    collection: Iterable[CatalogEntry], state: ViewState, page_size: int
) -> list[CatalogEntry]:
    ordered = sort_entries(filter_entries(collection, state), state.sort)
    return list(paginate(ordered, state.page, page_size).items)


def derive_view(
    collection: Iterable[CatalogEntry],
    state: ViewState,
    page_sizes: Sequence[int] = DEFAULT_PAGE_SIZES,
) -> DerivedView:
    """Compute every page density from a single sorted sequence."""

    ordered = tuple(sort_entries(filter_entries(collection, state), state.sort))
    return DerivedView(
        entries=ordered,
        pages={size: paginate(ordered, state.page, size) for size in page_sizes},
    )


def page_window(
    current: int, total: int, max_visible: int = MAX_VISIBLE_PAGES
) -> list[int]:
    """Return the page numbers shown by the wide pagination control.

    The window is centred on ``current``. When ``current`` sits on either edge
    of the window it shifts by up to three pages to reveal more neighbours.
    """

    if total <= max_visible:
        return list(range(1, total + 1))

    half = max_visible // 2
    start = max(1, current - half)
    end = min(total, start + max_visible - 1)
    if end - start < max_visible - 1:
        start = max(1, end - max_visible + 1)

    if current == end and end < total:
        shift = min(WINDOW_SHIFT, total - end)
        start = min(start + shift, total - max_visible + 1)
        end = min(end + shift, total)
    elif current == start and start > 1:
        shift = min(WINDOW_SHIFT, start - 1)
        start = max(start - shift, 1)
        end = max(end - shift, max_visible)

    return list(range(start, end + 1))


def recent_entries(entries: Iterable[CatalogEntry], limit: int = 10) -> list[CatalogEntry]:
    """Return the ``limit`` most recently added entries (highest ids first)."""

    return sort_entries(entries, "dateAdded")[:limit]


def collect_tags(entries: Iterable[CatalogEntry]) -> list[str]:
    """Return the distinct tags in first-seen order."""

    seen: dict[str, None] = {}
    for entry in entries:
        for tag in entry.tags:
            seen.setdefault(tag, None)
    return list(seen)


def collect_genres(entries: Iterable[CatalogEntry]) -> list[str]:
    return sorted({entry.genre for entry in entries if entry.genre})


def collect_years(entries: Iterable[CatalogEntry]) -> list[int]:
    return sorted({entry.year for entry in entries}, reverse=True)
