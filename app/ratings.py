"""Rating and certification resolution with fallback chains."""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Mapping, Protocol

from .utils import region_from_language

logger = logging.getLogger(__name__)

DEFAULT_REGION = "US"


class RatingSource(Protocol):
    async def rating(self, cross_ref_id: str, media_type: str) -> str | None: ...


def round_rating(value: int | float) -> str:
    """Render ``value`` with one decimal place, rounding ties up."""

    return str(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_vote_average(value: Any) -> str:
    """Format TMDB's vote average with one decimal place."""

    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        value = 0.0
    return round_rating(value)


class RatingResolver:
    """Prefers the community rating of the secondary source, else TMDB's average."""

    def __init__(self, source: RatingSource | None = None) -> None:
        self._source = source

    async def resolve_rating(
        self,
        cross_ref_id: str | None,
        media_type: str,
        fallback_vote_average: Any,
    ) -> str:
        if cross_ref_id and self._source is not None:
            try:
                rating = await self._source.rating(cross_ref_id, media_type)
            except Exception:
                logger.exception("Rating source failed for %s", cross_ref_id)
                rating = None
            if rating:
                return rating
        return format_vote_average(fallback_vote_average)


def find_release_certification(release_dates: Mapping[str, Any] | None, region: str) -> str:
    """Return the first non-empty movie certification for ``region``."""

    if not release_dates:
        return ""
    for entry in release_dates.get("results") or []:
        if not isinstance(entry, Mapping) or entry.get("iso_3166_1") != region:
            continue
        for release in entry.get("release_dates") or []:
            certification = release.get("certification") if isinstance(release, Mapping) else None
            if certification:
                return str(certification)
    return ""


def find_content_rating(content_ratings: Mapping[str, Any] | None, region: str) -> str:
    """Return the series content rating for ``region``."""

    if not content_ratings:
        return ""
    for entry in content_ratings.get("results") or []:
        if isinstance(entry, Mapping) and entry.get("iso_3166_1") == region:
            return str(entry.get("rating") or "")
    return ""


CertificationFinder = Callable[[Mapping[str, Any] | None, str], str]


def resolve_certification(
    finder: CertificationFinder,
    payload: Mapping[str, Any] | None,
    language: str,
) -> str:
    """Look up the request region first, then ``US``; empty when neither has one."""

    region = region_from_language(language)
    if region and region != DEFAULT_REGION:
        certification = finder(payload, region)
        if certification:
            return certification
    return finder(payload, DEFAULT_REGION)
