"""Client for the remote catalog collection API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import quote

import httpx

from ..config import Settings
from ..models import Collection

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Ok:
    """Successful remote call carrying the decoded JSON payload."""

    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return True


@dataclass(slots=True)
class Err:
    """Failed remote call: transport error, non-2xx status or ``success: false``."""

    reason: str
    status: int | None = None

    @property
    def ok(self) -> bool:
        return False


RemoteResult = Ok | Err


class ResourceEndpoint:
    """CRUD access to one resource family of the collection API."""

    def __init__(self, client: "RemoteStoreClient", path: str) -> None:
        self._client = client
        self.path = path.rstrip("/")

    def item_path(self, *id_parts: object) -> str:
        segments = [quote(str(part), safe="") for part in id_parts]
        return "/".join([self.path, *segments])

    async def list(self) -> RemoteResult:
        return await self._client.request("GET", self.path)

    async def create(self, record: Mapping[str, Any]) -> RemoteResult:
        return await self._client.request("POST", self.path, json=dict(record))

    async def update(self, record_id: object, fields: Mapping[str, Any]) -> RemoteResult:
        """Patch only the supplied fields of a stored record."""

        return await self._client.request(
            "PATCH", self.item_path(record_id), json=dict(fields)
        )

    async def delete(self, *id_parts: object) -> RemoteResult:
        return await self._client.request("DELETE", self.item_path(*id_parts))


class RemoteStoreClient:
    """Thin wrapper around the catalog HTTP API.

    Every method resolves to :class:`Ok` or :class:`Err`; HTTP and decoding
    problems never escape as exceptions. Calls are attempted exactly once.
    """

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client
        self.movies = ResourceEndpoint(self, "/movies")
        self.towatch = ResourceEndpoint(self, "/towatch")
        self.comments = ResourceEndpoint(self, "/comments")
        self.ratings = ResourceEndpoint(self, "/ratings")

    def collection(self, collection: Collection) -> ResourceEndpoint:
        """Return the endpoint backing ``collection``."""

        if collection == "towatch":
            return self.towatch
        if collection == "main":
            return self.movies
        raise ValueError(f"Unknown collection: {collection}")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.api_token}",
            "Content-Type": "application/json",
            "User-Agent": f"{self._settings.app_name} (watchlog)",
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
    ) -> RemoteResult:
        """Issue a single request and fold every failure mode into :class:`Err`."""

        try:
            response = await self._client.request(
                method, path, headers=self._headers(), json=json
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return Err(reason=f"{exc.__class__.__name__}: {exc}")

        if not response.is_success:
            logger.warning(
                "%s %s returned HTTP %s: %s",
                method,
                path,
                response.status_code,
                response.text,
            )
            return Err(
                reason=self._error_message(response) or f"HTTP {response.status_code}",
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            logger.warning("Unexpected non-JSON response for %s %s", method, path)
            return Err(reason="Invalid JSON payload", status=response.status_code)
        if not isinstance(data, dict):
            logger.warning("Unexpected response structure for %s %s", method, path)
            return Err(reason="Unexpected payload structure", status=response.status_code)
        if not data.get("success"):
            error = str(data.get("error") or "Request was not successful")
            logger.warning("%s %s rejected: %s", method, path, error)
            return Err(reason=error, status=response.status_code)
        return Ok(payload=data)

    @staticmethod
    def _error_message(response: httpx.Response) -> str | None:
        try:
            data = response.json()
        except ValueError:
            return None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return None

    async def submit_rating(
        self, movie_id: int, rating: int, user_identifier: str
    ) -> RemoteResult:
        return await self.ratings.create(
            {"movieId": movie_id, "rating": rating, "userIdentifier": user_identifier}
        )

    async def fetch_rating_averages(self) -> RemoteResult:
        """Return ``{"averages": {movieId: {"average", "count"}}}``."""

        return await self.ratings.list()

    async def fetch_movie_ratings(self, movie_id: int) -> RemoteResult:
        return await self.request("GET", self.ratings.item_path(movie_id))

    async def fetch_user_ratings(self, user_identifier: str) -> RemoteResult:
        """Return ``{"userRatings": {movieId: rating}}`` for one device."""

        return await self.request(
            "GET", f"/user-ratings/{quote(user_identifier, safe='')}"
        )
