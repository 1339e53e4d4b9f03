"""Reference backend serving the catalog collection API."""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import Settings, settings as default_settings
from .database import Database
from .models import RatingAggregate, RatingRecord
from .services.kv_store import KeyValueStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

Handler = Callable[[], Awaitable[dict[str, Any]]]


class EntryNotFound(Exception):
    """Raised when a PATCH targets a key that is not stored."""


def _failure(error: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": error}, status_code=status_code)


async def _respond(action: str, handler: Handler) -> JSONResponse:
    """Wrap a route body in the ``{"success": ...}`` envelope."""

    try:
        payload = await handler()
    except EntryNotFound as exc:
        return _failure(str(exc), 404)
    except Exception as exc:  # pragma: no cover
        logger.exception("Error %s", action)
        return _failure(str(exc), 500)
    return JSONResponse({"success": True, **payload})


def create_app(
    app_settings: Settings | None = None,
    *,
    database: Database | None = None,
) -> FastAPI:
    """Build the backend; a supplied ``database`` must already have its tables."""

    config = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        owned: Database | None = None
        if getattr(fastapi_app.state, "store", None) is None:
            owned = Database(config.database_url)
            await owned.create_all()
            fastapi_app.state.store = KeyValueStore(owned.session_factory)
        try:
            yield
        finally:  # pragma: no cover
            if owned is not None:
                fastapi_app.state.store = None
                await owned.dispose()

    fastapi_app = FastAPI(
        title=config.app_name,
        description="Watched and to-watch catalog store",
        version="1.0.0",
        lifespan=lifespan,
    )
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["Content-Length"],
        max_age=600,
    )
    fastapi_app.state.store = (
        KeyValueStore(database.session_factory) if database is not None else None
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_store(app: FastAPI) -> KeyValueStore:
    store = getattr(app.state, "store", None)
    if not isinstance(store, KeyValueStore):
        raise RuntimeError("Key-value store not initialised")
    return store


def register_routes(fastapi_app: FastAPI) -> None:
    def register_collection(path: str, prefix: str, label: str) -> None:
        async def list_entries() -> JSONResponse:
            async def handler() -> dict[str, Any]:
                return {"movies": await get_store(fastapi_app).get_by_prefix(f"{prefix}:")}

            return await _respond(f"fetching {label}", handler)

        async def add_entry(request: Request) -> JSONResponse:
            async def handler() -> dict[str, Any]:
                entry = await request.json()
                await get_store(fastapi_app).set(f"{prefix}:{entry['id']}", entry)
                return {"movie": entry}

            return await _respond(f"adding {label}", handler)

        async def delete_entry(entry_id: str) -> JSONResponse:
            async def handler() -> dict[str, Any]:
                await get_store(fastapi_app).delete(f"{prefix}:{entry_id}")
                return {}

            return await _respond(f"deleting {label}", handler)

        async def patch_entry(entry_id: str, request: Request) -> JSONResponse:
            async def handler() -> dict[str, Any]:
                updates = await request.json()
                store = get_store(fastapi_app)
                entry = await store.get(f"{prefix}:{entry_id}")
                if not entry:
                    raise EntryNotFound("Movie not found")
                updated = {**entry, **updates}
                await store.set(f"{prefix}:{entry_id}", updated)
                return {"movie": updated}

            return await _respond(f"updating {label}", handler)

        fastapi_app.add_api_route(path, list_entries, methods=["GET"])
        fastapi_app.add_api_route(path, add_entry, methods=["POST"])
        fastapi_app.add_api_route(f"{path}/{{entry_id}}", delete_entry, methods=["DELETE"])
        fastapi_app.add_api_route(f"{path}/{{entry_id}}", patch_entry, methods=["PATCH"])

    @fastapi_app.get("/health")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    register_collection("/movies", "movie", "movie")
    register_collection("/towatch", "towatch", "to watch movie")

    @fastapi_app.patch("/movies/{entry_id}/poster")
    async def update_poster(entry_id: str, request: Request) -> JSONResponse:
        async def handler() -> dict[str, Any]:
            body = await request.json()
            store = get_store(fastapi_app)
            entry = await store.get(f"movie:{entry_id}")
            if not entry:
                raise EntryNotFound("Movie not found")
            updated = {**entry, "image": body.get("image")}
            await store.set(f"movie:{entry_id}", updated)
            return {"movie": updated}

        return await _respond("updating movie poster", handler)

    @fastapi_app.get("/comments")
    async def list_comments() -> JSONResponse:
        async def handler() -> dict[str, Any]:
            return {"comments": await get_store(fastapi_app).get_by_prefix("comment:")}

        return await _respond("fetching comments", handler)

    @fastapi_app.get("/comments/{movie_id}")
    async def list_movie_comments(movie_id: str) -> JSONResponse:
        async def handler() -> dict[str, Any]:
            store = get_store(fastapi_app)
            return {"comments": await store.get_by_prefix(f"comment:{movie_id}:")}

        return await _respond("fetching comments", handler)

    @fastapi_app.post("/comments")
    async def add_comment(request: Request) -> JSONResponse:
        async def handler() -> dict[str, Any]:
            comment = await request.json()
            key = f"comment:{comment['movieId']}:{comment['id']}"
            await get_store(fastapi_app).set(key, comment)
            return {"comment": comment}

        return await _respond("adding comment", handler)

    @fastapi_app.delete("/comments/{movie_id}/{comment_id}")
    async def delete_comment(movie_id: str, comment_id: str) -> JSONResponse:
        async def handler() -> dict[str, Any]:
            await get_store(fastapi_app).delete(f"comment:{movie_id}:{comment_id}")
            return {}

        return await _respond("deleting comment", handler)

    @fastapi_app.post("/ratings")
    async def submit_rating(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or not all(
            body.get(field) for field in ("movieId", "rating", "userIdentifier")
        ):
            return _failure("Missing required fields", 400)
        try:
            record = RatingRecord.model_validate(
                {key: body[key] for key in ("movieId", "rating", "userIdentifier")}
            )
        except ValidationError:
            return _failure("Rating must be between 1 and 5", 400)

        async def handler() -> dict[str, Any]:
            payload = record.model_dump(by_alias=True)
            key = f"rating:{record.movie_id}:{record.user_identifier}"
            await get_store(fastapi_app).set(key, payload)
            return {"rating": payload}

        return await _respond("submitting rating", handler)

    @fastapi_app.get("/ratings")
    async def rating_averages() -> JSONResponse:
        async def handler() -> dict[str, Any]:
            grouped: dict[str, list[int]] = defaultdict(list)
            for rating in await get_store(fastapi_app).get_by_prefix("rating:"):
                grouped[str(rating["movieId"])].append(rating["rating"])
            averages = {
                movie_id: RatingAggregate.from_ratings(values).model_dump()
                for movie_id, values in grouped.items()
            }
            return {"averages": averages}

        return await _respond("fetching all ratings", handler)

    @fastapi_app.get("/ratings/{movie_id}")
    async def movie_ratings(movie_id: str) -> JSONResponse:
        async def handler() -> dict[str, Any]:
            ratings = await get_store(fastapi_app).get_by_prefix(f"rating:{movie_id}:")
            aggregate = RatingAggregate.from_ratings([rating["rating"] for rating in ratings])
            return {"ratings": ratings, **aggregate.model_dump()}

        return await _respond("fetching ratings", handler)

    @fastapi_app.get("/user-ratings/{user_identifier}")
    async def user_ratings(user_identifier: str) -> JSONResponse:
        async def handler() -> dict[str, Any]:
            ratings = await get_store(fastapi_app).get_by_prefix("rating:")
            return {
                "userRatings": {
                    str(rating["movieId"]): rating["rating"]
                    for rating in ratings
                    if rating.get("userIdentifier") == user_identifier
                }
            }

        return await _respond("fetching user ratings", handler)


app = create_app()
