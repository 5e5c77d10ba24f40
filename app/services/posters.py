"""Rating poster (RPDB) lookups."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class PosterService:
    """Builds rating-poster URLs and checks they exist before use."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str) -> None:
        self._client = http_client
        self._base_url = base_url.rstrip("/")

    def poster_url(
        self, media_type: str, provider_id: str, language: str, ranking_key: str
    ) -> str:
        lang = language.split("-", 1)[0].lower() if language else "en"
        return (
            f"{self._base_url}/{ranking_key}/tmdb/poster-default/"
            f"{media_type}-{provider_id}.jpg?fallback=true&lang={lang}"
        )

    async def exists(self, url: str) -> bool:
        try:
            response = await self._client.head(url)
        except httpx.HTTPError as exc:
            logger.debug("Poster check for %s failed: %s", url, exc)
            return False
        return response.status_code == 200

    async def resolve(
        self,
        media_type: str,
        provider_id: str,
        language: str,
        ranking_key: str | None,
        fallback: str | None,
    ) -> str | None:
        """Return the rating poster when available, else ``fallback``."""

        if not ranking_key:
            return fallback
        url = self.poster_url(media_type, provider_id, language, ranking_key)
        if await self.exists(url):
            return url
        logger.debug(
            "No rating poster for %s %s, using provider artwork", media_type, provider_id
        )
        return fallback
