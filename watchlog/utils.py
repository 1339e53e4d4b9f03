"""Utility helpers for the Watchlog client."""

from __future__ import annotations

import re
import secrets
import time
import unicodedata
from typing import Literal

RuntimeBucket = Literal["all", "short", "medium", "long", "oneSeason", "multiSeason"]

RUNTIME_NUMBER_RE = re.compile(r"(\d+)")
SEASON_COUNT_RE = re.compile(r"(\d+)\s+Season")

SHORT_RUNTIME_LIMIT = 90
MEDIUM_RUNTIME_LIMIT = 150


def parse_runtime_minutes(runtime: str | None) -> int:
    """Return the first integer found in a runtime string, or 0."""

    if not runtime:
        return 0
    match = RUNTIME_NUMBER_RE.search(runtime)
    return int(match.group(1)) if match else 0


def is_season_runtime(runtime: str | None) -> bool:
    """Return True when the runtime text describes seasons rather than minutes."""

    return bool(runtime) and "season" in runtime.lower()


def season_count(runtime: str | None) -> int | None:
    """Return the number of seasons for ``"<n> Season(s)"`` values."""

    if not runtime:
        return None
    match = SEASON_COUNT_RE.search(runtime)
    return int(match.group(1)) if match else None


def classify_runtime(runtime: str | None, bucket: RuntimeBucket) -> bool:
    """Return whether ``runtime`` falls into the requested runtime bucket.

    Runtime values are free text: minutes are stored as ``"<n> min"`` and
    series as ``"<n> Season"``/``"<n> Seasons"``. The kind is sniffed from the
    text, so all of that guessing lives here.
    """

    if bucket == "all":
        return True

    seasons = is_season_runtime(runtime)
    if bucket in ("short", "medium", "long"):
        if seasons:
            return False
        minutes = parse_runtime_minutes(runtime)
        if bucket == "short":
            return 0 < minutes <= SHORT_RUNTIME_LIMIT
        if bucket == "medium":
            return SHORT_RUNTIME_LIMIT < minutes <= MEDIUM_RUNTIME_LIMIT
        return minutes > MEDIUM_RUNTIME_LIMIT

    if not seasons:
        return False
    count = season_count(runtime)
    if count is None:
        return False
    if bucket == "oneSeason":
        return count == 1
    if bucket == "multiSeason":
        return count > 1
    raise ValueError(f"Unknown runtime bucket: {bucket}")


def format_season_runtime(total_seasons: str | int) -> str:
    """Return the stored runtime text for a series with ``total_seasons``."""

    value = str(total_seasons).strip()
    suffix = "" if value == "1" else "s"
    return f"{value} Season{suffix}"


def title_sort_key(title: str) -> tuple[str, str]:
    """Return a collation key approximating a locale-aware title comparison."""

    normalized = unicodedata.normalize("NFKD", title)
    folded = "".join(char for char in normalized if not unicodedata.combining(char))
    return folded.casefold(), title


def generate_user_identifier() -> str:
    """Return a fresh anonymous device identifier."""

    return f"user_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


def generate_comment_id() -> str:
    """Return a time-derived comment identifier."""

    return str(time.time_ns() // 1_000)


def now_millis() -> int:
    return int(time.time() * 1000)
