"""Pydantic models describing catalog entries, comments and ratings."""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import now_millis

Collection = Literal["main", "towatch"]
SortOption = Literal[
    "dateAdded", "dateAddedLatest", "title", "year", "imdbRating", "userRating"
]

COLLECTIONS: tuple[Collection, ...] = ("main", "towatch")


class CatalogEntry(BaseModel):
    """A single movie or series tracked in one of the two collections."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int
    title: str
    year: int
    genre: str
    rating: float
    image: str = ""
    description: str = ""
    imdb_rating: float | None = Field(default=None, alias="imdbRating")
    director: str | None = None
    cast: list[str] = Field(default_factory=list)
    runtime: str | None = None
    plot: str | None = None
    imdb_id: str | None = Field(default=None, alias="imdbId")
    trailer: str | None = None
    user_rating: int | None = Field(default=None, alias="userRating")
    tags: list[str] = Field(default_factory=list)
    community_rating: float | None = Field(default=None, alias="communityRating")
    rating_count: int | None = Field(default=None, alias="ratingCount")

    @field_validator("tags", mode="before")
    @classmethod
    def _dedupe_tags(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            seen: list[str] = []
            for tag in value:
                text = str(tag)
                if text not in seen:
                    seen.append(text)
            return seen
        return value

    @property
    def effective_rating(self) -> float:
        """Return the IMDb rating when known, else the canonical rating."""

        return self.imdb_rating if self.imdb_rating is not None else self.rating

    def to_payload(self) -> dict[str, Any]:
        """Return the camelCase JSON payload used on the wire and in the cache."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Comment(BaseModel):
    """A free-text note left on an entry by a named user."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    movie_id: int = Field(alias="movieId")
    text: str
    username: str
    timestamp: int = Field(default_factory=now_millis)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RatingRecord(BaseModel):
    """One user's rating of one entry as stored by the backend."""

    model_config = ConfigDict(populate_by_name=True)

    movie_id: int = Field(alias="movieId")
    rating: int = Field(ge=1, le=5)
    user_identifier: str = Field(alias="userIdentifier", min_length=1)
    timestamp: int = Field(default_factory=now_millis)


class RatingAggregate(BaseModel):
    """Community average for an entry, rounded to one decimal."""

    average: float
    count: int

    @classmethod
    def from_ratings(cls, ratings: list[int]) -> "RatingAggregate":
        if not ratings:
            return cls(average=0, count=0)
        average = sum(ratings) / len(ratings)
        return cls(average=math.floor(average * 10 + 0.5) / 10, count=len(ratings))
