"""Per-(type, language) genre tables fetched once from TMDB."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)


class GenreGateway(Protocol):
    async def genre_list(
        self, media_type: str, language: str
    ) -> list[dict[str, Any]] | None: ...


class GenreDirectory:
    """Caches TMDB genre lists in process memory.

    Failed lookups are not cached, so a transient TMDB error is retried on the
    next request.
    """

    def __init__(self, gateway: GenreGateway) -> None:
        self._gateway = gateway
        self._tables: dict[tuple[str, str], Mapping[int, str]] = {}

    async def table(self, media_type: str, language: str) -> Mapping[int, str]:
        key = (media_type, language)
        cached = self._tables.get(key)
        if cached is not None:
            return cached

        genres = await self._gateway.genre_list(media_type, language)
        if genres is None:
            logger.warning("Genre list for %s (%s) unavailable", media_type, language)
            return MappingProxyType({})

        table: dict[int, str] = {}
        for genre in genres:
            if not isinstance(genre, dict):
                continue
            genre_id = genre.get("id")
            name = genre.get("name")
            if isinstance(genre_id, int) and isinstance(name, str) and name:
                table[genre_id] = name
        frozen = MappingProxyType(table)
        self._tables[key] = frozen
        return frozen

    async def genre_id(self, media_type: str, language: str, name: str) -> int | None:
        """Reverse lookup used to translate catalog genre filters."""

        wanted = name.strip().casefold()
        for genre_id, genre_name in (await self.table(media_type, language)).items():
            if genre_name.casefold() == wanted:
                return genre_id
        return None

    def clear(self) -> None:
        self._tables.clear()
