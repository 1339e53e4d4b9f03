"""Runtime lookups against an OMDb-compatible metadata API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import Settings
from ..utils import format_season_runtime

logger = logging.getLogger(__name__)

MISSING = "N/A"


class MetadataLookupError(RuntimeError):
    """Raised when the metadata API cannot be reached or answers with an error."""


@dataclass(slots=True)
class RuntimeMatch:
    """Identifier and runtime text resolved for one entry."""

    imdb_id: str
    runtime: str | None


class MetadataClient:
    """Resolves IMDb ids and runtime or season counts by title and year."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        if not settings.metadata_api_key:
            raise ValueError("Metadata API key is required when initialising MetadataClient")
        self._settings = settings
        self._client = http_client

    async def lookup_runtime(
        self, title: str, year: int | None, imdb_id: str | None = None
    ) -> RuntimeMatch | None:
        """Return the runtime for an entry, or None when nothing usable is known.

        Raises :class:`MetadataLookupError` when the lookup itself fails.
        """

        resolved_id = imdb_id
        if not resolved_id:
            search = await self._get({"t": title, "y": year} if year else {"t": title})
            if search is None:
                return None
            resolved_id = search.get("imdbID")
            if not resolved_id:
                logger.info("No metadata match for %s (%s)", title, year)
                return None

        details = await self._get({"i": resolved_id})
        if details is None:
            return RuntimeMatch(imdb_id=resolved_id, runtime=None)
        return RuntimeMatch(imdb_id=resolved_id, runtime=self._extract_runtime(details))

    @staticmethod
    def _extract_runtime(details: dict[str, Any]) -> str | None:
        if details.get("Type") == "series":
            seasons = details.get("totalSeasons")
            if seasons and seasons != MISSING:
                return format_season_runtime(seasons)
            return None
        runtime = details.get("Runtime")
        if runtime and runtime != MISSING:
            return str(runtime)
        return None

    async def _get(self, params: dict[str, Any]) -> dict[str, Any] | None:
        """Return the response body, None for a "not found" answer.

        Transport failures, HTTP errors and undecodable bodies raise
        :class:`MetadataLookupError`.
        """

        query = {**params, "apikey": self._settings.metadata_api_key}
        try:
            response = await self._client.get("/", params=query)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Metadata lookup %s failed: %s", params, exc)
            raise MetadataLookupError(f"Metadata lookup failed: {exc}") from exc
        except ValueError as exc:
            logger.warning("Metadata lookup %s returned non-JSON data", params)
            raise MetadataLookupError("Metadata API returned non-JSON data") from exc
        if not isinstance(data, dict) or data.get("Response") != "True":
            return None
        return data
