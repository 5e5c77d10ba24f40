"""Catalog listings built from TMDB discover, trending and search endpoints."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from ..models import CatalogEntry, RequestConfig
from ..normalizer import image_url, map_genre_ids, parse_year
from ..ratings import format_vote_average
from .genres import GenreDirectory
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

TOP_CATALOG_ID = "tmdb.top"
YEAR_CATALOG_ID = "tmdb.year"
TRENDING_CATALOG_ID = "tmdb.trending"
CATALOG_IDS = (TOP_CATALOG_ID, YEAR_CATALOG_ID, TRENDING_CATALOG_ID)
PAGE_SIZE = 20


def page_from_skip(skip: Any) -> int:
    """Translate Stremio's ``skip`` offset into a 1-based TMDB page."""

    try:
        offset = int(skip)
    except (TypeError, ValueError):
        return 1
    if offset <= 0:
        return 1
    return offset // PAGE_SIZE + 1


class CatalogBuilder:
    """Produces catalog pages of lightweight entries (no episodes)."""

    def __init__(
        self,
        gateway: TMDBClient,
        genres: GenreDirectory,
        *,
        image_base_url: str | None = None,
    ) -> None:
        self._gateway = gateway
        self._genres = genres
        self._image_base_url = image_base_url

    async def build_page(
        self,
        media_type: str,
        language: str,
        page: int,
        list_id: str,
        genre: str | None,
        config: RequestConfig,
        search: str | None = None,
    ) -> list[CatalogEntry] | None:
        """Return the entries of one catalog page, or ``None`` if TMDB failed.

        A non-blank ``search`` replaces the listing named by ``list_id`` with
        TMDB's title search for ``media_type``.
        """

        filters: dict[str, Any] = {}
        if config.include_adult:
            filters["include_adult"] = "true"

        query = (search or "").strip()
        if query:
            payload = await self._gateway.search(
                media_type, language, query, page, include_adult=config.include_adult
            )
        elif list_id == TOP_CATALOG_ID:
            if genre:
                genre_id = await self._genres.genre_id(media_type, language, genre)
                if genre_id is None:
                    logger.info("Unknown %s genre %r requested", media_type, genre)
                    return []
                filters["with_genres"] = genre_id
            payload = await self._gateway.discover(media_type, language, page, filters=filters)
        elif list_id == YEAR_CATALOG_ID:
            year = self._parse_year_filter(genre)
            if year is None:
                return []
            year_key = "primary_release_year" if media_type == "movie" else "first_air_date_year"
            filters[year_key] = year
            payload = await self._gateway.discover(media_type, language, page, filters=filters)
        elif list_id == TRENDING_CATALOG_ID:
            payload = await self._gateway.trending(media_type, language, page)
        else:
            logger.info("Unsupported catalog %s requested", list_id)
            return []

        if payload is None:
            return None

        table = await self._genres.table(media_type, language)
        entries = [
            self._to_entry(media_type, result, table)
            for result in payload.get("results") or []
            if isinstance(result, Mapping) and result.get("id") is not None
        ]
        if list_id == TRENDING_CATALOG_ID and genre and not query:
            entries = [entry for entry in entries if genre in entry.genres]
        return entries

    @staticmethod
    def _parse_year_filter(genre: str | None) -> int | None:
        if not genre:
            return datetime.now(timezone.utc).year
        try:
            year = int(genre)
        except ValueError:
            return None
        if 1870 <= year <= 2100:
            return year
        return None

    def _image(self, path: Any, size: str) -> str | None:
        if self._image_base_url:
            return image_url(path, size, self._image_base_url)
        return image_url(path, size)

    def _to_entry(
        self, media_type: str, result: Mapping[str, Any], table: Mapping[int, str]
    ) -> CatalogEntry:
        released = result.get("release_date") or result.get("first_air_date")
        return CatalogEntry(
            id=f"tmdb:{result['id']}",
            type="movie" if media_type == "movie" else "series",
            name=str(result.get("title") or result.get("name") or ""),
            poster=self._image(result.get("poster_path"), "w500"),
            background=self._image(result.get("backdrop_path"), "original"),
            description=result.get("overview") or None,
            genres=map_genre_ids(result.get("genre_ids"), table),
            year=parse_year(released),
            rating=format_vote_average(result.get("vote_average")),
            released=released if isinstance(released, str) and released else None,
        )
