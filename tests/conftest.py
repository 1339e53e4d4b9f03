"""Pytest configuration and test helpers."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import httpx
import pytest

# Ensure the application package is importable when running tests without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from watchlog.config import Settings  # noqa: E402
from watchlog.models import RatingAggregate  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def _ok(**payload: Any) -> httpx.Response:
    return httpx.Response(200, json={"success": True, **payload})


class FakeCatalogApi:
    """In-memory stand-in for the collection API behind ``httpx.MockTransport``.

    ``fail`` makes every call return HTTP 503; ``fail_routes`` fails only the
    listed ``(method, first path segment)`` pairs.
    """

    def __init__(self) -> None:
        self.collections: dict[str, dict[int, dict[str, Any]]] = {
            "movies": {},
            "towatch": {},
        }
        self.comments: dict[tuple[str, str], dict[str, Any]] = {}
        self.ratings: dict[tuple[str, str], int] = {}
        self.fail = False
        self.fail_routes: set[tuple[str, str]] = set()
        self.requests: list[httpx.Request] = []

    def seed(self, collection: str, *entries: dict[str, Any]) -> None:
        for entry in entries:
            self.collections[collection][int(entry["id"])] = dict(entry)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = [part for part in request.url.path.split("/") if part]
        method = request.method
        if self.fail or (method, parts[0]) in self.fail_routes:
            return httpx.Response(503, json={"success": False, "error": "unavailable"})
        body = json.loads(request.content) if request.content else None

        if parts[0] in self.collections:
            store = self.collections[parts[0]]
            if len(parts) == 1 and method == "GET":
                return _ok(movies=list(store.values()))
            if len(parts) == 1 and method == "POST":
                store[int(body["id"])] = body
                return _ok(movie=body)
            entry_id = int(parts[1])
            if method == "DELETE":
                store.pop(entry_id, None)
                return _ok()
            if method == "PATCH":
                if entry_id not in store:
                    return httpx.Response(
                        404, json={"success": False, "error": "Movie not found"}
                    )
                store[entry_id] = {**store[entry_id], **body}
                return _ok(movie=store[entry_id])

        if parts[0] == "comments":
            if method == "GET":
                return _ok(comments=list(self.comments.values()))
            if method == "POST":
                self.comments[(str(body["movieId"]), body["id"])] = body
                return _ok(comment=body)
            if method == "DELETE":
                self.comments.pop((parts[1], parts[2]), None)
                return _ok()

        if parts[0] == "ratings":
            if method == "POST":
                self.ratings[(str(body["movieId"]), body["userIdentifier"])] = body["rating"]
                return _ok(rating=body)
            if len(parts) == 1:
                return _ok(averages=self.averages())
            values = [
                rating for (movie_id, _), rating in self.ratings.items() if movie_id == parts[1]
            ]
            return _ok(**RatingAggregate.from_ratings(values).model_dump())

        if parts[0] == "user-ratings":
            return _ok(
                userRatings={
                    movie_id: rating
                    for (movie_id, user), rating in self.ratings.items()
                    if user == parts[1]
                }
            )

        return httpx.Response(404, json={"success": False, "error": "no route"})

    def averages(self) -> dict[str, dict[str, float]]:
        grouped: dict[str, list[int]] = {}
        for (movie_id, _), rating in self.ratings.items():
            grouped.setdefault(movie_id, []).append(rating)
        return {
            movie_id: RatingAggregate.from_ratings(values).model_dump()
            for movie_id, values in grouped.items()
        }

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_api() -> FakeCatalogApi:
    return FakeCatalogApi()


@pytest.fixture
def build_settings(tmp_path):
    """Return a factory for settings isolated to ``tmp_path``."""

    def factory(name: str = "cache", **overrides: Any) -> Settings:
        base: dict[str, Any] = {
            "API_BASE_URL": "https://api.example.com",
            "API_TOKEN": "test-token",
            "CACHE_DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / f'{name}.db'}",
            "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'store.db'}",
        }
        base.update(overrides)
        return Settings(_env_file=None, **base)  # type: ignore[arg-type]

    return factory
