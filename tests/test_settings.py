"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from watchlog.config import Settings


def test_defaults_without_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "API_BASE_URL",
        "API_TOKEN",
        "METADATA_API_KEY",
        "PAGE_SIZE_COMPACT",
        "PAGE_SIZE_WIDE",
        "RECENT_ENTRY_COUNT",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.api_token == "public-anon-key"
    assert str(settings.api_base_url).startswith("http://localhost:8000")
    assert settings.metadata_api_key is None
    assert settings.page_sizes == (12, 15)
    assert settings.recent_entry_count == 10


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_TOKEN", "  secret-token  ")
    monkeypatch.setenv("PAGE_SIZE_WIDE", "20")

    settings = Settings(_env_file=None)

    assert settings.api_token == "secret-token"
    assert settings.page_sizes == (12, 20)


def test_blank_token_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, API_TOKEN="   ")


def test_blank_metadata_key_is_treated_as_missing() -> None:
    settings = Settings(_env_file=None, METADATA_API_KEY=" ")

    assert settings.metadata_api_key is None


@pytest.mark.parametrize(
    "overrides",
    [{"PAGE_SIZE_COMPACT": 0}, {"HTTP_TIMEOUT": 0}, {"ENVIRONMENT": "staging"}],
)
def test_out_of_range_values_are_rejected(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)
