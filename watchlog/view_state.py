"""Session-scoped browsing state: active collection, filters, sort and page."""

from __future__ import annotations

from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, field_validator

from .models import Collection, SortOption
from .utils import RuntimeBucket

DEFAULT_RATING_RANGE: tuple[float, float] = (0.0, 10.0)


def _toggle(values: tuple[Any, ...], value: Any, checked: bool) -> tuple[Any, ...]:
    if checked:
        return values if value in values else (*values, value)
    return tuple(item for item in values if item != value)


class ViewState(BaseModel):
    """Immutable record passed to the derived view pipeline.

    Transitions return a new instance. Anything that changes which entries are
    visible, or their order, sends the user back to page 1.
    """

    model_config = ConfigDict(frozen=True)

    collection: Collection = "main"
    genres: tuple[str, ...] = ()
    years: tuple[int, ...] = ()
    search: str = ""
    rating_range: tuple[float, float] = DEFAULT_RATING_RANGE
    runtime: RuntimeBucket = "all"
    tags: tuple[str, ...] = ()
    sort: SortOption = "dateAdded"
    page: int = 1

    @field_validator("page")
    @classmethod
    def _page_is_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("page must be >= 1")
        return value

    @field_validator("rating_range")
    @classmethod
    def _ordered_range(cls, value: tuple[float, float]) -> tuple[float, float]:
        low, high = value
        if low > high:
            raise ValueError("rating range lower bound exceeds upper bound")
        return value

    @classmethod
    def initial(cls, *, sort: SortOption = "dateAdded") -> "ViewState":
        return cls(sort=sort)

    def _reset(self, **changes: Any) -> "ViewState":
        return self.model_copy(update={**changes, "page": 1})

    def toggle_genre(self, genre: str, checked: bool) -> "ViewState":
        return self._reset(genres=_toggle(self.genres, genre, checked))

    def toggle_year(self, year: int, checked: bool) -> "ViewState":
        return self._reset(years=_toggle(self.years, year, checked))

    def toggle_tag(self, tag: str, checked: bool) -> "ViewState":
        return self._reset(tags=_toggle(self.tags, tag, checked))

    def with_genres(self, genres: Iterable[str]) -> "ViewState":
        return self._reset(genres=tuple(dict.fromkeys(genres)))

    def with_years(self, years: Iterable[int]) -> "ViewState":
        return self._reset(years=tuple(dict.fromkeys(years)))

    def with_tags(self, tags: Iterable[str]) -> "ViewState":
        return self._reset(tags=tuple(dict.fromkeys(tags)))

    def with_search(self, query: str) -> "ViewState":
        return self._reset(search=query)

    def with_rating_range(self, low: float, high: float) -> "ViewState":
        return ViewState.model_validate(
            {**self.model_dump(), "rating_range": (low, high), "page": 1}
        )

    def with_runtime(self, bucket: RuntimeBucket) -> "ViewState":
        return ViewState.model_validate(
            {**self.model_dump(), "runtime": bucket, "page": 1}
        )

    def with_sort(self, sort: SortOption) -> "ViewState":
        return ViewState.model_validate({**self.model_dump(), "sort": sort, "page": 1})

    def with_collection(self, collection: Collection) -> "ViewState":
        return ViewState.model_validate(
            {**self.model_dump(), "collection": collection, "page": 1}
        )

    def with_page(self, page: int) -> "ViewState":
        """Move to ``page`` without touching filters or sort."""

        return ViewState.model_validate({**self.model_dump(), "page": page})

    def reset_filters(self) -> "ViewState":
        """Clear every filter while keeping the collection and sort."""

        return ViewState(collection=self.collection, sort=self.sort)

    def has_active_filters(self) -> bool:
        return bool(
            self.genres
            or self.years
            or self.search
            or self.tags
            or self.rating_range != DEFAULT_RATING_RANGE
            or self.runtime != "all"
        )
