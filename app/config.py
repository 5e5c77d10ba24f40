"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DATA_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="TMDB Addon", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_image_url: str = Field(
        default="https://image.tmdb.org/t/p", alias="TMDB_IMAGE_URL"
    )
    metadata_addon_url: HttpUrl | None = Field(
        default="https://cinemeta-live.strem.io", alias="METADATA_ADDON_URL"
    )
    rpdb_api_url: HttpUrl = Field(
        default="https://api.ratingposterdb.com", alias="RPDB_API_URL"
    )
    host_name: HttpUrl | None = Field(default=None, alias="HOST_NAME")
    default_language: str = Field(default="en-US", alias="DEFAULT_LANGUAGE")

    meta_ttl_seconds: int = Field(default=86_400, alias="META_TTL", ge=0)
    catalog_ttl_seconds: int = Field(default=43_200, alias="CATALOG_TTL", ge=0)
    no_cache: bool = Field(default=False, alias="NO_CACHE")
    cache_backend: Literal["memory", "database"] = Field(
        default="memory", alias="CACHE_BACKEND"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./tmdb_cache.db", alias="DATABASE_URL"
    )

    episode_order_overrides_path: Path = Field(
        default=DATA_DIR / "episode_orders.json",
        alias="EPISODE_ORDER_OVERRIDES_PATH",
    )
    cross_ref_overrides_path: Path = Field(
        default=DATA_DIR / "cross_ref_ids.json",
        alias="CROSS_REF_OVERRIDES_PATH",
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_key", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("metadata_addon_url", "host_name", mode="before")
    @classmethod
    def _blank_url_disables(cls, value: object) -> object:
        """Allow an empty environment value to switch an optional URL off."""

        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("default_language")
    @classmethod
    def _validate_language(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("DEFAULT_LANGUAGE may not be empty")
        return cleaned

    @property
    def public_base_url(self) -> str:
        """Return the externally reachable addon URL used in deep links."""

        if self.host_name is not None:
            return str(self.host_name).rstrip("/")
        return f"http://127.0.0.1:{self.server_port}"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
