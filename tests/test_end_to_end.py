"""Client session talking to the reference backend in-process."""

from __future__ import annotations

import httpx
import pytest

from watchlog.client import open_session
from watchlog.database import Database
from watchlog.models import CatalogEntry
from watchlog.server import create_app


@pytest.mark.anyio("asyncio")
async def test_session_round_trip_against_backend(build_settings) -> None:
    settings = build_settings()
    database = Database(settings.database_url)
    await database.create_all()
    transport = httpx.ASGITransport(app=create_app(settings, database=database))

    async with open_session(settings, transport=transport) as session:
        reconciler = session.reconciler
        reconciler.switch_collection("towatch")
        await reconciler.add_entry(
            CatalogEntry(id=1, title="Past Lives", year=2023, genre="Drama", rating=7.8)
        )
        await reconciler.update_rating(1, 4)
        outcome = await reconciler.mark_as_watched(reconciler.to_watch[0])
        await reconciler.add_comment(outcome.entry.id, "Quietly devastating", "sam")
        assert outcome.synced

    async with open_session(settings, transport=transport) as session:
        reconciler = session.reconciler
        assert reconciler.to_watch == []
        watched = reconciler.movies[0]
        assert (watched.id, watched.title) == (1, "Past Lives")
        assert watched.user_rating == 4
        assert (watched.community_rating, watched.rating_count) == (4.0, 1)
        assert [comment.text for comment in reconciler.comments_for(1)] == [
            "Quietly devastating"
        ]

    await database.dispose()
