"""Pure helpers turning raw TMDB payload fragments into unified fields.

Everything here is total over whatever TMDB returns: missing or malformed
optional fragments degrade to empty lists or ``None``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Mapping
from urllib.parse import quote

from .models import Link, Trailer, TrailerStream
from .utils import slugify

IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
LOGO_BASE_URL = "https://images.metahub.space/logo/medium"
IMDB_TITLE_URL = "https://imdb.com/title"
SHARE_BASE_URL = "https://www.strem.io/s"

CAST_LIMIT = 5
CREW_LIMIT = 3
WRITING_JOBS = {"Writer", "Screenplay", "Story", "Novel", "Teleplay"}
PLAYABLE_SITES = {"YouTube"}
ENDED_STATUSES = {"Ended", "Canceled"}


def _entries(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, Mapping)]


def _names(entries: Iterable[Mapping[str, Any]], limit: int | None = None) -> list[str]:
    names: list[str] = []
    for entry in entries:
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip() or name in names:
            continue
        names.append(name)
        if limit is not None and len(names) >= limit:
            break
    return names


def parse_cast(credits: Mapping[str, Any] | None, limit: int = CAST_LIMIT) -> list[str]:
    if not credits:
        return []
    return _names(_entries(credits.get("cast")), limit)


def parse_director(
    credits: Mapping[str, Any] | None, limit: int = CREW_LIMIT
) -> list[str]:
    if not credits:
        return []
    crew = [entry for entry in _entries(credits.get("crew")) if entry.get("job") == "Director"]
    return _names(crew, limit)


def parse_writer(credits: Mapping[str, Any] | None, limit: int = CREW_LIMIT) -> list[str]:
    if not credits:
        return []
    crew = [
        entry
        for entry in _entries(credits.get("crew"))
        if entry.get("job") in WRITING_JOBS
    ]
    return _names(crew, limit)


def parse_created_by(created_by: Any, limit: int = CREW_LIMIT) -> list[str]:
    """Series list their creators instead of writing credits."""

    return _names(_entries(created_by), limit)


def parse_countries(production_countries: Any) -> list[str]:
    return _names(_entries(production_countries))


def parse_genres(genres: Any) -> list[str]:
    return _names(_entries(genres))


def map_genre_ids(genre_ids: Any, table: Mapping[int, str] | None) -> list[str]:
    """Translate the ``genre_ids`` of a listing result through a lookup table."""

    if not isinstance(genre_ids, list) or not table:
        return []
    names: list[str] = []
    for genre_id in genre_ids:
        name = table.get(genre_id) if isinstance(genre_id, int) else None
        if name and name not in names:
            names.append(name)
    return names


def _youtube_videos(videos: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    if not videos:
        return []
    return [
        entry
        for entry in _entries(videos.get("results"))
        if entry.get("site") in PLAYABLE_SITES and entry.get("key")
    ]


def parse_trailers(videos: Mapping[str, Any] | None) -> list[Trailer]:
    return [
        Trailer(source=str(entry["key"]), type="Trailer")
        for entry in _youtube_videos(videos)
        if entry.get("type") == "Trailer"
    ]


def parse_trailer_streams(videos: Mapping[str, Any] | None) -> list[TrailerStream]:
    return [
        TrailerStream(title=str(entry.get("name") or "Trailer"), yt_id=str(entry["key"]))
        for entry in _youtube_videos(videos)
        if entry.get("type") in {"Trailer", "Teaser"}
    ]


def parse_runtime(minutes: Any) -> str | None:
    """Format runtime minutes as ``1h39min`` / ``45min``."""

    if not isinstance(minutes, int) or isinstance(minutes, bool) or minutes <= 0:
        return None
    hours, rest = divmod(minutes, 60)
    if hours:
        return f"{hours}h{rest:02d}min"
    return f"{rest}min"


def parse_year(date_value: Any) -> str | None:
    if not isinstance(date_value, str) or len(date_value) < 4 or not date_value[:4].isdigit():
        return None
    return date_value[:4]


def parse_release_date(date_value: Any) -> datetime | None:
    if not isinstance(date_value, str) or not date_value:
        return None
    try:
        day = date.fromisoformat(date_value[:10])
    except ValueError:
        return None
    return datetime.combine(day, time(0, 0), tzinfo=timezone.utc)


def parse_series_year(status: Any, first_air_date: Any, last_air_date: Any) -> str | None:
    """Return ``2008-2013`` for finished series and ``2019-`` for running ones."""

    start = parse_year(first_air_date)
    if start is None:
        return None
    if status in ENDED_STATUSES:
        end = parse_year(last_air_date)
        if end is None or end == start:
            return start
        return f"{start}-{end}"
    return f"{start}-"


def parse_slug(media_type: str, title: str | None, cross_ref_id: str | None) -> str | None:
    if not title:
        return None
    slug = slugify(title) or "title"
    suffix = (cross_ref_id or "").removeprefix("tt")
    if suffix:
        return f"{media_type}/{slug}-{suffix}"
    return f"{media_type}/{slug}"


def image_url(path: Any, size: str, base_url: str = IMAGE_BASE_URL) -> str | None:
    if not isinstance(path, str) or not path:
        return None
    if path.startswith("http"):
        return path
    return f"{base_url.rstrip('/')}/{size}{path}"


def logo_url(cross_ref_id: str | None) -> str | None:
    if not cross_ref_id:
        return None
    return f"{LOGO_BASE_URL}/{cross_ref_id}/img"


def cross_ref_link(rating: str | None, cross_ref_id: str | None) -> Link | None:
    """IMDb link whose label carries the resolved rating."""

    if not cross_ref_id:
        return None
    return Link(
        category="imdb",
        name=rating or "",
        url=f"{IMDB_TITLE_URL}/{cross_ref_id}",
    )


def share_link(title: str | None, cross_ref_id: str | None, media_type: str) -> Link | None:
    slug = parse_slug(media_type, title, cross_ref_id)
    if slug is None or not cross_ref_id:
        return None
    return Link(category="share", name=title or "", url=f"{SHARE_BASE_URL}/{slug}")


def genre_links(
    genres: Iterable[str], media_type: str, manifest_url: str
) -> list[Link]:
    """Deep links opening the addon's top catalog filtered by each genre."""

    encoded_manifest = quote(manifest_url, safe="")
    return [
        Link(
            category="Genres",
            name=genre,
            url=(
                f"stremio:///discover/{encoded_manifest}/{media_type}/tmdb.top"
                f"?genre={quote(genre, safe='')}"
            ),
        )
        for genre in genres
    ]


def credit_links(
    cast: Iterable[str], directors: Iterable[str], writers: Iterable[str] = ()
) -> list[Link]:
    links: list[Link] = []
    for category, names in (("Cast", cast), ("Directors", directors), ("Writers", writers)):
        for name in names:
            links.append(
                Link(
                    category=category,
                    name=name,
                    url=f"stremio:///search?search={quote(name, safe='')}",
                )
            )
    return links


def assemble_links(*groups: Link | None | Iterable[Link]) -> list[Link]:
    """Flatten single links and link lists, dropping absent entries."""

    links: list[Link] = []
    for group in groups:
        if group is None:
            continue
        if isinstance(group, Link):
            links.append(group)
        else:
            links.extend(group)
    return links
