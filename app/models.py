"""Pydantic models describing unified metadata payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
)

ContentType = Literal["movie", "series"]
CONTENT_TYPES: tuple[str, ...] = ("movie", "series")


class Link(BaseModel):
    """A categorised deep link shown on the detail page."""

    category: str
    name: str
    url: str


class Trailer(BaseModel):
    """Informational trailer reference (YouTube key)."""

    source: str
    type: str = "Trailer"


class TrailerStream(BaseModel):
    """Playable trailer stream."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    yt_id: str = Field(alias="ytId")


class EpisodeRecord(BaseModel):
    """A single episode of a series."""

    id: str
    name: str | None = None
    season: int
    episode: int
    thumbnail: str | None = None
    description: str | None = None
    rating: str | None = None
    released: datetime | None = None

    @field_validator("rating", mode="before")
    @classmethod
    def _stringify_rating(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def to_video(self) -> dict[str, object]:
        """Return the Stremio ``videos`` entry for this episode."""

        released = self.released.isoformat() if self.released else None
        return {
            "id": self.id,
            "name": self.name,
            "season": self.season,
            "number": self.episode,
            "episode": self.episode,
            "thumbnail": self.thumbnail,
            "overview": self.description,
            "description": self.description,
            "rating": self.rating,
            "firstAired": released,
            "released": released,
        }


class _BaseRecord(BaseModel):
    """Fields shared by every unified record."""

    provider_id: str
    cross_ref_id: str | None = None
    name: str = ""
    description: str | None = None
    genres: list[str] = Field(default_factory=list)
    cast: list[str] = Field(default_factory=list)
    director: list[str] = Field(default_factory=list)
    writer: list[str] = Field(default_factory=list)
    country: list[str] = Field(default_factory=list)
    year: str | None = None
    released: datetime | None = None
    runtime_minutes: int | None = None
    runtime: str | None = None
    poster: str | None = None
    background: str | None = None
    logo: str | None = None
    rating: str | None = None
    certification: str = ""
    links: list[Link] = Field(default_factory=list)
    trailers: list[Trailer] = Field(default_factory=list)
    trailer_streams: list[TrailerStream] = Field(default_factory=list)
    slug: str | None = None

    @property
    def meta_id(self) -> str:
        return f"tmdb:{self.provider_id}"

    def _common_payload(self) -> dict[str, Any]:
        return {
            "id": self.meta_id,
            "imdb_id": self.cross_ref_id,
            "name": self.name,
            "description": self.description,
            "genre": list(self.genres),
            "genres": list(self.genres),
            "cast": list(self.cast),
            "director": list(self.director),
            "writer": list(self.writer),
            "country": list(self.country),
            "year": self.year,
            "releaseInfo": self.year,
            "released": self.released.isoformat() if self.released else None,
            "runtime": self.runtime,
            "poster": self.poster,
            "background": self.background,
            "logo": self.logo,
            "imdbRating": self.rating,
            "ageRating": self.certification,
            "slug": self.slug,
            "links": [link.model_dump() for link in self.links],
            "trailers": [trailer.model_dump() for trailer in self.trailers],
            "trailerStreams": [
                stream.model_dump(by_alias=True) for stream in self.trailer_streams
            ],
        }


class MovieRecord(_BaseRecord):
    """Unified record for a movie. Movies never carry episodes."""

    type: Literal["movie"] = "movie"

    @property
    def episodes(self) -> tuple[EpisodeRecord, ...]:
        return ()

    def to_meta_payload(self) -> dict[str, Any]:
        payload = self._common_payload()
        payload["type"] = self.type
        payload["behaviorHints"] = {
            "defaultVideoId": self.cross_ref_id or self.meta_id,
            "hasScheduledVideos": False,
        }
        return payload


class SeriesRecord(_BaseRecord):
    """Unified record for a series including its ordered episode list."""

    type: Literal["series"] = "series"
    status: str | None = None
    episodes: list[EpisodeRecord] = Field(default_factory=list)

    def to_meta_payload(self) -> dict[str, Any]:
        payload = self._common_payload()
        payload["type"] = self.type
        payload["status"] = self.status
        payload["videos"] = [episode.to_video() for episode in self.episodes]
        payload["behaviorHints"] = {
            "defaultVideoId": None,
            "hasScheduledVideos": True,
        }
        return payload


UnifiedMediaRecord = Annotated[
    Union[MovieRecord, SeriesRecord], Field(discriminator="type")
]
RECORD_ADAPTER: TypeAdapter[MovieRecord | SeriesRecord] = TypeAdapter(
    UnifiedMediaRecord
)


def record_from_payload(payload: Mapping[str, Any]) -> MovieRecord | SeriesRecord:
    """Rebuild a unified record from its cached JSON representation."""

    return RECORD_ADAPTER.validate_python(payload)


class CatalogEntry(BaseModel):
    """Preview of a record as listed in a catalog page."""

    id: str
    type: ContentType
    name: str
    poster: str | None = None
    background: str | None = None
    description: str | None = None
    genres: list[str] = Field(default_factory=list)
    year: str | None = None
    rating: str | None = None
    released: str | None = None

    @property
    def provider_id(self) -> str:
        return self.id.removeprefix("tmdb:")

    def to_catalog_stub(self) -> dict[str, object]:
        """Return a Stremio-compatible meta object for catalog listings."""

        meta: dict[str, object] = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "genres": list(self.genres),
        }
        if self.poster:
            meta["poster"] = self.poster
        if self.background:
            meta["background"] = self.background
        if self.description:
            meta["description"] = self.description
        if self.year:
            meta["releaseInfo"] = self.year
            meta["year"] = self.year
        if self.rating:
            meta["imdbRating"] = self.rating
        if self.released:
            meta["released"] = self.released
        return meta


class RequestConfig(BaseModel):
    """Per-request options supplied by the Stremio client."""

    model_config = ConfigDict(populate_by_name=True)

    language: str | None = None
    ranking_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("rpdbkey", "ranking_key", "rankingKey"),
    )
    include_adult: bool = Field(
        default=False,
        validation_alias=AliasChoices("include_adult", "includeAdult"),
    )

    @field_validator("language", "ranking_key", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if isinstance(value, str):
            cleaned = value.strip()
            return cleaned or None
        return value

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "RequestConfig":
        return cls.model_validate(dict(params))

    def resolved_language(self, default: str) -> str:
        return self.language or default
