"""Cache-wrapped entry points used by the HTTP layer."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Iterable

from pydantic import ValidationError

from ..cache import CATALOG_KIND, META_KIND, CacheStore, build_cache_key
from ..models import (
    CONTENT_TYPES,
    CatalogEntry,
    MovieRecord,
    RequestConfig,
    SeriesRecord,
    record_from_payload,
)
from .catalog import CatalogBuilder
from .metadata import MetadataAssembler
from .posters import PosterService
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

CROSS_REF_RE = re.compile(r"^tt\d+$")


class AddonService:
    """Resolves ids, consults the cache and falls back to assembly on a miss."""

    def __init__(
        self,
        gateway: TMDBClient,
        assembler: MetadataAssembler,
        catalogs: CatalogBuilder,
        cache: CacheStore,
        posters: PosterService | None = None,
    ) -> None:
        self._gateway = gateway
        self._assembler = assembler
        self._catalogs = catalogs
        self._cache = cache
        self._posters = posters

    @property
    def cache(self) -> CacheStore:
        return self._cache

    async def resolve_provider_id(self, media_type: str, meta_id: str) -> str | None:
        """Accept ``tmdb:<id>``, a bare TMDB id or an IMDb ``tt`` id."""

        # Episode ids such as ``tt0944947:1:2`` address their series.
        candidate = (meta_id or "").strip()
        if candidate.startswith("tmdb:"):
            provider_id = candidate.split(":", 2)[1]
            return provider_id or None
        head = candidate.split(":", 1)[0]
        if head.isdigit():
            return head
        if CROSS_REF_RE.match(head):
            provider_id = await self._gateway.find_by_external_id(media_type, head)
            if provider_id is None:
                logger.info("No TMDB %s found for %s", media_type, head)
            return provider_id
        return None

    async def get_unified_record(
        self,
        media_type: str,
        language: str,
        meta_id: str,
        ranking_key: str | None = None,
    ) -> MovieRecord | SeriesRecord | None:
        if media_type not in CONTENT_TYPES:
            raise ValueError(f"Unsupported content type {media_type!r}")
        provider_id = await self.resolve_provider_id(media_type, meta_id)
        if provider_id is None:
            return None

        async def compute() -> dict[str, Any] | None:
            # The rating poster is user specific, so it is applied after the cache.
            record = await self._assembler.assemble(media_type, language, provider_id)
            if record is None:
                return None
            return record.model_dump(mode="json")

        key = build_cache_key(META_KIND, language, media_type, provider_id)
        payload = await self._cache.wrap_meta(key, compute)
        if payload is None:
            return None
        try:
            record = record_from_payload(payload)
        except ValidationError as exc:
            logger.warning("Discarding unreadable cached record %s: %s", key, exc)
            payload = await self._cache.refresh_meta(key, compute)
            if payload is None:
                return None
            record = record_from_payload(payload)
        if ranking_key and self._posters is not None:
            record.poster = await self._posters.resolve(
                media_type, provider_id, language, ranking_key, record.poster
            )
        return record

    async def get_series_details(
        self,
        language: str,
        meta_ids: Iterable[str],
        ranking_key: str | None = None,
    ) -> list[SeriesRecord]:
        """Look up several series at once, skipping ids that resolve to nothing."""

        wanted = [meta_id.strip() for meta_id in meta_ids if meta_id and meta_id.strip()]
        records = await asyncio.gather(
            *(
                self.get_unified_record("series", language, meta_id, ranking_key)
                for meta_id in wanted
            )
        )
        return [record for record in records if isinstance(record, SeriesRecord)]

    async def get_catalog_page(
        self,
        media_type: str,
        language: str,
        page: int,
        list_id: str,
        genre: str | None,
        config: RequestConfig,
        search: str | None = None,
    ) -> list[CatalogEntry]:
        if media_type not in CONTENT_TYPES:
            raise ValueError(f"Unsupported content type {media_type!r}")
        query = (search or "").strip() or None

        async def compute() -> list[dict[str, Any]] | None:
            entries = await self._catalogs.build_page(
                media_type, language, page, list_id, genre, config, search=query
            )
            if entries is None:
                return None
            return [entry.model_dump(mode="json") for entry in entries]

        discriminators: list[object | None] = [
            genre or None,
            page,
            "adult" if config.include_adult else None,
        ]
        if query:
            discriminators.append(f"search={query}")
        key = build_cache_key(CATALOG_KIND, language, media_type, list_id, *discriminators)
        payload = await self._cache.wrap_catalog(key, compute)
        if not payload:
            return []
        try:
            entries = [CatalogEntry.model_validate(item) for item in payload]
        except ValidationError as exc:
            logger.warning("Discarding unreadable cached catalog %s: %s", key, exc)
            payload = await self._cache.refresh_catalog(key, compute)
            if not payload:
                return []
            entries = [CatalogEntry.model_validate(item) for item in payload]

        if config.ranking_key and self._posters is not None:
            posters = await asyncio.gather(
                *(
                    self._posters.resolve(
                        media_type,
                        entry.provider_id,
                        language,
                        config.ranking_key,
                        entry.poster,
                    )
                    for entry in entries
                )
            )
            for entry, poster in zip(entries, posters):
                entry.poster = poster
        return entries

    async def reset_cache(self) -> None:
        await self._cache.reset()
