"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Watchlog", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=8000, alias="PORT")

    api_base_url: HttpUrl = Field(
        default="http://localhost:8000", alias="API_BASE_URL"
    )
    api_token: str = Field(default="public-anon-key", alias="API_TOKEN")
    http_timeout_seconds: float = Field(
        default=20.0, alias="HTTP_TIMEOUT", gt=0, le=300
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./watchlog.db", alias="DATABASE_URL"
    )
    cache_database_url: str = Field(
        default="sqlite+aiosqlite:///./watchlog-cache.db",
        alias="CACHE_DATABASE_URL",
    )

    metadata_api_url: HttpUrl = Field(
        default="https://www.omdbapi.com", alias="METADATA_API_URL"
    )
    metadata_api_key: str | None = Field(default=None, alias="METADATA_API_KEY")
    metadata_lookup_delay: float = Field(
        default=0.2, alias="METADATA_LOOKUP_DELAY", ge=0, le=10
    )

    page_size_compact: int = Field(
        default=12, alias="PAGE_SIZE_COMPACT", ge=1, le=100
    )
    page_size_wide: int = Field(default=15, alias="PAGE_SIZE_WIDE", ge=1, le=100)
    recent_entry_count: int = Field(
        default=10, alias="RECENT_ENTRY_COUNT", ge=0, le=100
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("api_token", mode="before")
    @classmethod
    def _strip_token(cls, value: object) -> object:
        """Reject blank bearer tokens; every request must carry one."""

        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValueError("API_TOKEN must not be blank")
            return stripped
        return value

    @field_validator("metadata_api_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def page_sizes(self) -> tuple[int, int]:
        """Return the compact and wide page sizes in display order."""

        return (self.page_size_compact, self.page_size_wide)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
