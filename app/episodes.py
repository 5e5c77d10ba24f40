"""Episode list assembly for series.

Two strategies exist. By default seasons are requested in batches through
TMDB's ``append_to_response`` (TMDB accepts at most twenty sub-resources per
call) and episodes are numbered by their position inside the season. When an
episode order override is configured, the curated episode group replaces the
season structure entirely.

Air dates are date-only upstream. They are read as midnight UTC and moved
forward by ``AIR_DATE_SKEW`` so that clients west of UTC do not show an
episode as released the day before it aired.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Mapping, Protocol, Sequence

from .models import EpisodeRecord
from .normalizer import image_url, parse_release_date
from .overrides import EpisodeOrderOverride, OverrideTables
from .services.tmdb import season_key
from .utils import chunked

logger = logging.getLogger(__name__)

SEASON_BATCH_SIZE = 20
AIR_DATE_SKEW = timedelta(hours=5, minutes=45)
STILL_SIZE = "w500"


class EpisodeGateway(Protocol):
    async def tv_seasons(
        self, provider_id: str, language: str, season_numbers: Sequence[int]
    ) -> dict[str, Any] | None: ...

    async def episode_group(self, group_id: str, language: str) -> dict[str, Any] | None: ...


def normalize_air_date(raw: Any, ordinal: int = 0) -> datetime | None:
    """Convert a TMDB ``YYYY-MM-DD`` air date into an aware UTC datetime."""

    midnight = parse_release_date(raw)
    if midnight is None:
        return None
    return midnight + AIR_DATE_SKEW + timedelta(milliseconds=ordinal)


def _season_numbers(seasons: Sequence[Mapping[str, Any]]) -> list[int]:
    numbers: list[int] = []
    for season in seasons:
        number = season.get("season_number") if isinstance(season, Mapping) else None
        if isinstance(number, int) and number not in numbers:
            numbers.append(number)
    return numbers


class EpisodeAssembler:
    """Builds the ordered episode list of a series."""

    def __init__(
        self,
        gateway: EpisodeGateway,
        overrides: OverrideTables,
        *,
        image_base_url: str | None = None,
        batch_size: int = SEASON_BATCH_SIZE,
    ) -> None:
        self._gateway = gateway
        self._overrides = overrides
        self._image_base_url = image_base_url
        self._batch_size = batch_size

    async def assemble_episodes(
        self,
        language: str,
        provider_id: str,
        cross_ref_id: str | None,
        seasons: Sequence[Mapping[str, Any]],
    ) -> list[EpisodeRecord]:
        order = self._overrides.episode_order(provider_id)
        if order is not None:
            return await self._from_episode_group(language, provider_id, cross_ref_id, order)
        return await self._from_seasons(language, provider_id, cross_ref_id, seasons)

    def _still(self, path: Any) -> str | None:
        if self._image_base_url:
            return image_url(path, STILL_SIZE, self._image_base_url)
        return image_url(path, STILL_SIZE)

    async def _from_episode_group(
        self,
        language: str,
        provider_id: str,
        cross_ref_id: str | None,
        order: EpisodeOrderOverride,
    ) -> list[EpisodeRecord]:
        payload = await self._gateway.episode_group(order.episode_group_id, language)
        if payload is None:
            logger.warning(
                "Episode group %s for %s could not be fetched",
                order.episode_group_id,
                provider_id,
            )
            return []

        base_id = cross_ref_id or f"tmdb:{provider_id}"
        groups = [group for group in payload.get("groups") or [] if isinstance(group, Mapping)]
        groups.sort(key=lambda group: group.get("order") or 0)

        episodes: list[EpisodeRecord] = []
        for group in groups:
            group_order = int(group.get("order") or 0)
            raw_episodes = [
                episode for episode in group.get("episodes") or [] if isinstance(episode, Mapping)
            ]
            group_premiere = raw_episodes[0].get("air_date") if raw_episodes else None
            for index, raw in enumerate(raw_episodes):
                if order.watch_order_only:
                    episode_id = f"{base_id}:{raw.get('season_number')}:{raw.get('episode_number')}"
                    released = normalize_air_date(group_premiere, index)
                else:
                    episode_id = f"{base_id}:{group_order}:{index + 1}"
                    released = normalize_air_date(raw.get("air_date"), index)
                episodes.append(
                    EpisodeRecord(
                        id=episode_id,
                        name=raw.get("name"),
                        season=group_order,
                        episode=index + 1,
                        thumbnail=self._still(raw.get("still_path")),
                        description=raw.get("overview"),
                        rating=raw.get("vote_average"),
                        released=released,
                    )
                )
        return episodes

    async def _from_seasons(
        self,
        language: str,
        provider_id: str,
        cross_ref_id: str | None,
        seasons: Sequence[Mapping[str, Any]],
    ) -> list[EpisodeRecord]:
        batches = chunked(_season_numbers(seasons), self._batch_size)
        if not batches:
            return []

        # gather keeps batch order no matter which request finishes first
        results = await asyncio.gather(
            *(self._fetch_batch(language, provider_id, cross_ref_id, batch) for batch in batches)
        )
        return [episode for batch in results for episode in batch]

    async def _fetch_batch(
        self,
        language: str,
        provider_id: str,
        cross_ref_id: str | None,
        season_numbers: list[int],
    ) -> list[EpisodeRecord]:
        try:
            payload = await self._gateway.tv_seasons(provider_id, language, season_numbers)
        except Exception:
            logger.exception(
                "Season batch %s-%s for %s failed",
                season_numbers[0],
                season_numbers[-1],
                provider_id,
            )
            return []
        if payload is None:
            logger.warning(
                "Season batch %s-%s for %s returned nothing",
                season_numbers[0],
                season_numbers[-1],
                provider_id,
            )
            return []

        base_id = cross_ref_id or f"tmdb:{provider_id}"
        episodes: list[EpisodeRecord] = []
        for number in season_numbers:
            season = payload.get(season_key(number))
            if not isinstance(season, Mapping):
                continue
            raw_episodes = [
                episode for episode in season.get("episodes") or [] if isinstance(episode, Mapping)
            ]
            for index, raw in enumerate(raw_episodes):
                season_number = raw.get("season_number")
                if not isinstance(season_number, int):
                    season_number = number
                episodes.append(
                    EpisodeRecord(
                        id=f"{base_id}:{season_number}:{index + 1}",
                        name=raw.get("name"),
                        season=season_number,
                        episode=index + 1,
                        thumbnail=self._still(raw.get("still_path")),
                        description=raw.get("overview"),
                        rating=raw.get("vote_average"),
                        released=normalize_air_date(raw.get("air_date")),
                    )
                )
        return episodes
