"""Assembly of unified movie/series records from TMDB responses."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from ..episodes import EpisodeAssembler
from ..models import EpisodeRecord, Link, MovieRecord, SeriesRecord
from ..normalizer import (
    assemble_links,
    credit_links,
    cross_ref_link,
    genre_links,
    image_url,
    logo_url,
    parse_cast,
    parse_countries,
    parse_created_by,
    parse_director,
    parse_genres,
    parse_release_date,
    parse_runtime,
    parse_series_year,
    parse_slug,
    parse_trailer_streams,
    parse_trailers,
    parse_writer,
    parse_year,
    share_link,
)
from ..overrides import OverrideTables
from ..ratings import (
    RatingResolver,
    find_content_rating,
    find_release_certification,
    resolve_certification,
)
from .posters import PosterService
from .tmdb import TMDBClient

logger = logging.getLogger(__name__)

POSTER_SIZE = "w500"
BACKGROUND_SIZE = "original"


class MetadataAssembler:
    """Merges the TMDB info, credits, ids, ratings and episodes of one title."""

    def __init__(
        self,
        gateway: TMDBClient,
        overrides: OverrideTables,
        ratings: RatingResolver,
        episodes: EpisodeAssembler,
        posters: PosterService | None = None,
        *,
        manifest_url: str,
        image_base_url: str | None = None,
    ) -> None:
        self._gateway = gateway
        self._overrides = overrides
        self._ratings = ratings
        self._episodes = episodes
        self._posters = posters
        self._manifest_url = manifest_url
        self._image_base_url = image_base_url

    async def assemble(
        self,
        media_type: str,
        language: str,
        provider_id: str,
        ranking_key: str | None = None,
    ) -> MovieRecord | SeriesRecord | None:
        """Return the unified record, or ``None`` when TMDB has nothing for the id."""

        if media_type == "movie":
            raw = await self._gateway.movie_info(provider_id, language)
        else:
            raw = await self._gateway.tv_info(provider_id, language)
        if raw is None:
            logger.error(
                "Metadata for %s %s (%s) could not be retrieved",
                media_type,
                provider_id,
                language,
            )
            return None

        if media_type == "movie":
            return await self._build_movie(raw, language, provider_id, ranking_key)
        return await self._build_series(raw, language, provider_id, ranking_key)

    def _resolve_cross_ref(self, provider_id: str, reported: Any) -> str | None:
        override = self._overrides.cross_ref_id(provider_id)
        if override:
            return override
        if isinstance(reported, str) and reported.strip():
            return reported.strip()
        return None

    def _image(self, path: Any, size: str) -> str | None:
        if self._image_base_url:
            return image_url(path, size, self._image_base_url)
        return image_url(path, size)

    async def _resolve_poster(
        self,
        media_type: str,
        provider_id: str,
        language: str,
        ranking_key: str | None,
        poster_path: Any,
    ) -> str | None:
        fallback = self._image(poster_path, POSTER_SIZE)
        if self._posters is None:
            return fallback
        return await self._posters.resolve(
            media_type, provider_id, language, ranking_key, fallback
        )

    async def _safe_episodes(
        self,
        language: str,
        provider_id: str,
        cross_ref_id: str | None,
        seasons: Any,
    ) -> list[EpisodeRecord]:
        try:
            return await self._episodes.assemble_episodes(
                language,
                provider_id,
                cross_ref_id,
                [season for season in seasons or [] if isinstance(season, Mapping)],
            )
        except Exception:
            logger.exception("Episodes could not be retrieved for %s - series", provider_id)
            return []

    def _links(
        self,
        media_type: str,
        title: str,
        rating: str,
        cross_ref_id: str | None,
        genres: list[str],
        credits: Mapping[str, Any] | None,
    ) -> list[Link]:
        return assemble_links(
            cross_ref_link(rating, cross_ref_id),
            share_link(title, cross_ref_id, media_type),
            genre_links(genres, media_type, self._manifest_url),
            credit_links(parse_cast(credits), parse_director(credits)),
        )

    async def _build_movie(
        self,
        raw: Mapping[str, Any],
        language: str,
        provider_id: str,
        ranking_key: str | None,
    ) -> MovieRecord:
        cross_ref_id = self._resolve_cross_ref(provider_id, raw.get("imdb_id"))
        certification = resolve_certification(
            find_release_certification, raw.get("release_dates"), language
        )
        rating, poster = await asyncio.gather(
            self._ratings.resolve_rating(cross_ref_id, "movie", raw.get("vote_average")),
            self._resolve_poster(
                "movie", provider_id, language, ranking_key, raw.get("poster_path")
            ),
        )

        title = str(raw.get("title") or "")
        credits = raw.get("credits")
        genres = parse_genres(raw.get("genres"))
        runtime = raw.get("runtime")
        return MovieRecord(
            provider_id=str(provider_id),
            cross_ref_id=cross_ref_id,
            name=title,
            description=raw.get("overview") or None,
            genres=genres,
            cast=parse_cast(credits),
            director=parse_director(credits),
            writer=parse_writer(credits),
            country=parse_countries(raw.get("production_countries")),
            year=parse_year(raw.get("release_date")),
            released=parse_release_date(raw.get("release_date")),
            runtime_minutes=runtime if isinstance(runtime, int) and runtime > 0 else None,
            runtime=parse_runtime(runtime),
            poster=poster,
            background=self._image(raw.get("backdrop_path"), BACKGROUND_SIZE),
            logo=logo_url(cross_ref_id),
            rating=rating,
            certification=certification,
            links=self._links("movie", title, rating, cross_ref_id, genres, credits),
            trailers=parse_trailers(raw.get("videos")),
            trailer_streams=parse_trailer_streams(raw.get("videos")),
            slug=parse_slug("movie", title, cross_ref_id),
        )

    async def _build_series(
        self,
        raw: Mapping[str, Any],
        language: str,
        provider_id: str,
        ranking_key: str | None,
    ) -> SeriesRecord:
        external_ids = raw.get("external_ids") or {}
        cross_ref_id = self._resolve_cross_ref(provider_id, external_ids.get("imdb_id"))
        certification = resolve_certification(
            find_content_rating, raw.get("content_ratings"), language
        )
        rating, poster, episodes = await asyncio.gather(
            self._ratings.resolve_rating(cross_ref_id, "series", raw.get("vote_average")),
            self._resolve_poster(
                "series", provider_id, language, ranking_key, raw.get("poster_path")
            ),
            self._safe_episodes(language, provider_id, cross_ref_id, raw.get("seasons")),
        )

        title = str(raw.get("name") or "")
        credits = raw.get("credits")
        genres = parse_genres(raw.get("genres"))
        runtime = _series_runtime(raw)
        year = parse_series_year(
            raw.get("status"), raw.get("first_air_date"), raw.get("last_air_date")
        )
        return SeriesRecord(
            provider_id=str(provider_id),
            cross_ref_id=cross_ref_id,
            name=title,
            description=raw.get("overview") or None,
            genres=genres,
            cast=parse_cast(credits),
            director=parse_director(credits),
            writer=parse_created_by(raw.get("created_by")),
            country=parse_countries(raw.get("production_countries")),
            year=year,
            released=parse_release_date(raw.get("first_air_date")),
            runtime_minutes=runtime,
            runtime=parse_runtime(runtime),
            poster=poster,
            background=self._image(raw.get("backdrop_path"), BACKGROUND_SIZE),
            logo=logo_url(cross_ref_id),
            rating=rating,
            certification=certification,
            links=self._links("series", title, rating, cross_ref_id, genres, credits),
            trailers=parse_trailers(raw.get("videos")),
            trailer_streams=parse_trailer_streams(raw.get("videos")),
            slug=parse_slug("series", title, cross_ref_id),
            status=raw.get("status"),
            episodes=episodes,
        )


def _series_runtime(raw: Mapping[str, Any]) -> int | None:
    """Series report runtimes per episode; fall back to the next/last episode."""

    run_times = raw.get("episode_run_time") or []
    candidates: list[Any] = [run_times[0] if run_times else None]
    for key in ("next_episode_to_air", "last_episode_to_air"):
        episode = raw.get(key)
        if isinstance(episode, Mapping):
            candidates.append(episode.get("runtime"))
    for candidate in candidates:
        if isinstance(candidate, int) and not isinstance(candidate, bool) and candidate > 0:
            return candidate
    return None
