"""Helper client for reading ratings from Cinemeta-compatible add-ons."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any
from urllib.parse import quote

import httpx

from ..ratings import round_rating

logger = logging.getLogger(__name__)


class MetadataAddonClient:
    """Wrapper around the ``meta`` resource of a Cinemeta-compatible add-on."""

    _META_PATH = "/meta/{type}/{id}.json"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        default_base_url: str | None = None,
        *,
        concurrency: int = 8,
    ) -> None:
        self._client = http_client
        self._default_base_url = self._normalize_base_url(default_base_url)
        self._semaphore = asyncio.Semaphore(concurrency)

    @property
    def default_base_url(self) -> str | None:
        """Return the default metadata add-on URL, if configured."""

        return self._default_base_url

    async def rating(
        self,
        cross_ref_id: str,
        media_type: str,
        *,
        base_url: str | None = None,
    ) -> str | None:
        """Return the community rating the add-on reports for ``cross_ref_id``."""

        normalized_id = (cross_ref_id or "").strip()
        if not normalized_id:
            return None

        effective_base = self._normalize_base_url(base_url) or self._default_base_url
        if not effective_base:
            return None

        path = self._META_PATH.format(
            type=media_type,
            id=quote(normalized_id, safe=""),
        )
        url = f"{effective_base}{path}"

        response: httpx.Response | None = None
        max_attempts = 2
        for attempt in range(1, max_attempts + 1):
            try:
                async with self._semaphore:
                    response = await self._client.get(url)
                response.raise_for_status()
                break
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status == 429 and attempt < max_attempts:
                    await asyncio.sleep(0.1)
                    continue
                logger.warning(
                    "Rating lookup failed for %s via %s: %s",
                    normalized_id,
                    effective_base,
                    exc,
                )
                return None
            except httpx.HTTPError as exc:
                logger.warning(
                    "Rating lookup failed for %s via %s: %s",
                    normalized_id,
                    effective_base,
                    exc,
                )
                return None
        else:
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("Rating lookup for %s returned malformed JSON", normalized_id)
            return None
        meta = payload.get("meta") if isinstance(payload, dict) else None
        if not isinstance(meta, dict):
            return None
        return self._parse_rating(meta.get("imdbRating"))

    @staticmethod
    def _parse_rating(value: Any) -> str | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return round_rating(value) if math.isfinite(value) else None
        if not isinstance(value, str):
            return None
        text = value.strip()
        if not text:
            return None
        try:
            float(text)
        except ValueError:
            return None
        return text

    @staticmethod
    def _normalize_base_url(value: str | None) -> str | None:
        if not value:
            return None
        normalized = value.strip()
        if not normalized:
            return None
        normalized = normalized.split("?", 1)[0].rstrip("/")
        lowered = normalized.lower()
        for suffix in ("/manifest.json", "/manifest"):
            if lowered.endswith(suffix):
                normalized = normalized[: -len(suffix)].rstrip("/")
                break
        return normalized or None
