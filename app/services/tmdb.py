"""Thin async client for The Movie Database (TMDB) v3 API."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Sequence

import httpx

from ..config import Settings

logger = logging.getLogger(__name__)

MOVIE_APPEND = ("videos", "credits", "release_dates")
SERIES_APPEND = ("videos", "credits", "external_ids", "content_ratings")
RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


def provider_path(media_type: str) -> str:
    """Return the TMDB path segment for a Stremio content type."""

    return "movie" if media_type == "movie" else "tv"


def season_key(season_number: int) -> str:
    return f"season/{season_number}"


class TMDBClient:
    """Wrapper around the subset of TMDB endpoints the addon needs.

    Every call returns the decoded JSON object, or ``None`` when TMDB could not
    be reached or answered with an error. Failures are logged here so callers
    only deal with the absence.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        max_retries: int = 2,
    ):
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client
        self._max_retries = max_retries

    async def _get(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        query: dict[str, Any] = {"api_key": self._settings.tmdb_api_key}
        if params:
            query.update({key: value for key, value in params.items() if value is not None})

        attempt = 0
        while True:
            try:
                response = await self._client.get(path, params=query)
            except httpx.HTTPError as exc:
                attempt += 1
                if attempt <= self._max_retries:
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                logger.warning("TMDB request %s failed: %s", path, exc)
                return None

            if response.status_code in RETRYABLE_STATUSES:
                attempt += 1
                if attempt <= self._max_retries:
                    backoff = self._backoff(attempt)
                    logger.info(
                        "TMDB returned %s for %s. Retrying in %.1fs",
                        response.status_code,
                        path,
                        backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
            break

        if response.status_code == 404:
            logger.info("TMDB resource %s not found", path)
            return None
        if response.status_code >= 400:
            logger.warning(
                "TMDB request %s failed (%s): %s",
                path,
                response.status_code,
                response.text,
            )
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("TMDB returned malformed JSON for %s", path)
            return None
        if not isinstance(payload, dict):
            logger.warning("TMDB returned an unexpected payload for %s", path)
            return None
        return payload

    @staticmethod
    def _backoff(attempt: int) -> float:
        return min(2 ** (attempt - 1), 5) + (0.1 * attempt)

    async def info(
        self,
        media_type: str,
        provider_id: str,
        language: str,
        append: Iterable[str] = (),
    ) -> dict[str, Any] | None:
        """Fetch a movie or series with ``append_to_response`` sub-resources."""

        append_to_response = ",".join(append) or None
        return await self._get(
            f"/{provider_path(media_type)}/{provider_id}",
            {"language": language, "append_to_response": append_to_response},
        )

    async def movie_info(self, provider_id: str, language: str) -> dict[str, Any] | None:
        return await self.info("movie", provider_id, language, MOVIE_APPEND)

    async def tv_info(self, provider_id: str, language: str) -> dict[str, Any] | None:
        return await self.info("series", provider_id, language, SERIES_APPEND)

    async def tv_seasons(
        self, provider_id: str, language: str, season_numbers: Sequence[int]
    ) -> dict[str, Any] | None:
        """Fetch several seasons at once through ``season/N`` sub-resources."""

        return await self.info(
            "series",
            provider_id,
            language,
            [season_key(number) for number in season_numbers],
        )

    async def external_ids(
        self, media_type: str, provider_id: str
    ) -> dict[str, Any] | None:
        return await self._get(f"/{provider_path(media_type)}/{provider_id}/external_ids")

    async def content_ratings(self, provider_id: str) -> dict[str, Any] | None:
        return await self._get(f"/tv/{provider_id}/content_ratings")

    async def release_dates(self, provider_id: str) -> dict[str, Any] | None:
        return await self._get(f"/movie/{provider_id}/release_dates")

    async def episode_group(self, group_id: str, language: str) -> dict[str, Any] | None:
        return await self._get(f"/tv/episode_group/{group_id}", {"language": language})

    async def genre_list(self, media_type: str, language: str) -> list[dict[str, Any]] | None:
        payload = await self._get(
            f"/genre/{provider_path(media_type)}/list", {"language": language}
        )
        if payload is None:
            return None
        genres = payload.get("genres")
        return genres if isinstance(genres, list) else []

    async def find_by_external_id(
        self, media_type: str, external_id: str, source: str = "imdb_id"
    ) -> str | None:
        """Resolve an external id (IMDb by default) to a TMDB id."""

        payload = await self._get(f"/find/{external_id}", {"external_source": source})
        if payload is None:
            return None
        key = "movie_results" if media_type == "movie" else "tv_results"
        results = payload.get(key) or []
        for result in results:
            if isinstance(result, dict) and result.get("id") is not None:
                return str(result["id"])
        return None

    async def discover(
        self,
        media_type: str,
        language: str,
        page: int,
        *,
        filters: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        params: dict[str, Any] = {
            "language": language,
            "page": page,
            "sort_by": "popularity.desc",
            "include_adult": "false",
        }
        if filters:
            params.update(filters)
        return await self._get(f"/discover/{provider_path(media_type)}", params)

    async def trending(
        self, media_type: str, language: str, page: int, time_window: str = "day"
    ) -> dict[str, Any] | None:
        return await self._get(
            f"/trending/{provider_path(media_type)}/{time_window}",
            {"language": language, "page": page},
        )

    async def search(
        self,
        media_type: str,
        language: str,
        query: str,
        page: int = 1,
        *,
        include_adult: bool = False,
    ) -> dict[str, Any] | None:
        """Run a title search against ``/search/{movie|tv}``."""

        return await self._get(
            f"/search/{provider_path(media_type)}",
            {
                "language": language,
                "query": query,
                "page": page,
                "include_adult": "true" if include_adult else "false",
            },
        )
