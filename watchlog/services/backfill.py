"""Bulk runtime backfill for entries missing runtime information."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .metadata import MetadataClient, MetadataLookupError
from .reconciler import CatalogReconciler
from .remote import Ok

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BackfillSummary:
    """Per-run counts reported back to the user."""

    candidates: int = 0
    success: int = 0
    errors: int = 0
    skipped: int = 0


class RuntimeBackfill:
    """Fills in runtimes one entry at a time with a fixed delay between lookups.

    Partial failure is expected: each entry is counted as a success, an error
    or a skip, and the run always completes.
    """

    def __init__(
        self,
        reconciler: CatalogReconciler,
        metadata: MetadataClient,
        *,
        delay: float = 0.2,
    ) -> None:
        self._reconciler = reconciler
        self._metadata = metadata
        self._delay = delay

    async def run(self) -> BackfillSummary:
        collection = self._reconciler.active_collection
        pending = [
            entry
            for entry in self._reconciler.entries(collection)
            if not (entry.runtime or "").strip()
        ]
        summary = BackfillSummary(candidates=len(pending))
        if not pending:
            logger.info("All %s entries already have runtime information", collection)
            return summary

        logger.info(
            "Starting runtime backfill for %s of %s entries in %s",
            len(pending),
            len(self._reconciler.entries(collection)),
            collection,
        )
        for index, entry in enumerate(pending):
            if index:
                await asyncio.sleep(self._delay)
            try:
                match = await self._metadata.lookup_runtime(
                    entry.title, entry.year, entry.imdb_id
                )
            except MetadataLookupError as exc:
                logger.warning("Runtime lookup failed for %s: %s", entry.title, exc)
                summary.errors += 1
                continue

            if match is None or not match.runtime:
                logger.info("No runtime information available for %s", entry.title)
                summary.skipped += 1
                continue

            result = await self._reconciler.update_fields(
                entry.id,
                {"runtime": match.runtime, "imdb_id": match.imdb_id},
                collection,
            )
            if isinstance(result, Ok):
                summary.success += 1
            else:
                summary.errors += 1

        logger.info(
            "Runtime backfill finished: %s updated, %s errors, %s skipped",
            summary.success,
            summary.errors,
            summary.skipped,
        )
        await self._reconciler.load_collection("main")
        await self._reconciler.load_collection("towatch")
        await self._reconciler.load_ratings()
        return summary
