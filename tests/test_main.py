from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.main import (
    APPLE_SEPARATOR,
    CATALOG_CACHE_OPTIONS,
    DEFAULT_SEPARATOR,
    META_CACHE_OPTIONS,
    cache_control_header,
    decorate_rating,
    register_routes,
)
from app.models import CatalogEntry, Link, MovieRecord, RequestConfig, SeriesRecord
from app.services.addon import AddonService


class DummyAddonService(AddonService):
    """Minimal AddonService stub for route testing."""

    def __init__(self) -> None:  # pragma: no cover - nothing to initialise
        # Deliberately skip super().__init__ to avoid touching external systems.
        self.meta_calls: list[tuple[str, str, str, str | None]] = []
        self.catalog_calls: list[tuple[str, str, int, str, str | None, RequestConfig]] = []
        self.searches: list[str | None] = []

    async def get_unified_record(  # type: ignore[override]
        self,
        media_type: str,
        language: str,
        meta_id: str,
        ranking_key: str | None = None,
    ) -> MovieRecord | SeriesRecord | None:
        self.meta_calls.append((media_type, language, meta_id, ranking_key))
        if meta_id == "tmdb:0":
            return None
        if media_type == "series":
            return SeriesRecord(
                provider_id=meta_id.removeprefix("tmdb:"),
                name=f"Series {meta_id}",
                rating="8.9",
                certification="TV-MA",
            )
        return MovieRecord(
            provider_id="550",
            cross_ref_id="tt0137523",
            name="Fight Club",
            rating="8.4",
            certification="R",
            links=[Link(category="imdb", name="8.4", url="https://imdb.com/title/tt0137523")],
        )

    async def get_catalog_page(  # type: ignore[override]
        self,
        media_type: str,
        language: str,
        page: int,
        list_id: str,
        genre: str | None,
        config: RequestConfig,
        search: str | None = None,
    ) -> list[CatalogEntry]:
        self.catalog_calls.append((media_type, language, page, list_id, genre, config))
        self.searches.append(search)
        return [
            CatalogEntry(
                id="tmdb:550",
                type=media_type,
                name="Fight Club",
                year="1999",
                rating="8.4",
                genres=["Drama"],
            )
        ]


def _client() -> tuple[TestClient, DummyAddonService]:
    app = FastAPI()
    register_routes(app)
    service = DummyAddonService()
    app.state.addon_service = service
    return TestClient(app), service


def test_meta_route_returns_decorated_payload() -> None:
    client, service = _client()

    with client:
        response = client.get(
            "/meta/movie/tmdb:550.json",
            params={"language": "de-DE", "rpdbkey": "k1"},
            headers={"User-Agent": "Stremio/1.6"},
        )

    assert response.status_code == 200
    meta = response.json()["meta"]
    assert meta["id"] == "tmdb:550"
    assert meta["type"] == "movie"
    assert meta["imdbRating"] == f"R{DEFAULT_SEPARATOR}8.4"
    assert meta["links"][0]["name"] == f"R{DEFAULT_SEPARATOR}8.4"
    assert meta["behaviorHints"]["defaultVideoId"] == "tt0137523"
    assert response.headers["cache-control"] == cache_control_header(META_CACHE_OPTIONS)
    assert service.meta_calls == [("movie", "de-DE", "tmdb:550", "k1")]


def test_meta_route_reports_missing_records() -> None:
    client, _ = _client()

    with client:
        response = client.get("/meta/movie/tmdb:0.json")

    assert response.status_code == 200
    assert response.json() == {"meta": None}


def test_unsupported_content_type_is_rejected() -> None:
    client, service = _client()

    with client:
        meta = client.get("/meta/channel/tmdb:550.json")
        catalog = client.get("/catalog/tv/tmdb.top.json")

    assert meta.status_code == 400
    assert catalog.status_code == 400
    assert service.meta_calls == []
    assert service.catalog_calls == []


def test_catalog_route_parses_extra_segment() -> None:
    client, service = _client()

    with client:
        response = client.get(
            "/catalog/series/tmdb.top/genre=Sci-Fi%20%26%20Fantasy&skip=40.json",
            params={"include_adult": "true"},
        )

    assert response.status_code == 200
    assert response.json() == {
        "metas": [
            {
                "id": "tmdb:550",
                "type": "series",
                "name": "Fight Club",
                "genres": ["Drama"],
                "releaseInfo": "1999",
                "year": "1999",
                "imdbRating": "8.4",
            }
        ]
    }
    assert response.headers["cache-control"] == cache_control_header(CATALOG_CACHE_OPTIONS)
    media_type, _, page, list_id, genre, config = service.catalog_calls[0]
    assert (media_type, page, list_id, genre) == ("series", 3, "tmdb.top", "Sci-Fi & Fantasy")
    assert config.include_adult is True


def test_catalog_route_without_extra() -> None:
    client, service = _client()

    with client:
        response = client.get("/catalog/movie/tmdb.trending.json")

    assert response.status_code == 200
    _, _, page, list_id, genre, _ = service.catalog_calls[0]
    assert (page, list_id, genre) == (1, "tmdb.trending", None)


def test_catalog_route_passes_search_term() -> None:
    client, service = _client()

    with client:
        response = client.get("/catalog/movie/tmdb.top/search=fight%20club.json")

    assert response.status_code == 200
    assert service.searches == ["fight club"]
    _, _, page, list_id, genre, _ = service.catalog_calls[0]
    assert (page, list_id, genre) == (1, "tmdb.top", None)


def test_calendar_videos_returns_detailed_series() -> None:
    client, service = _client()

    with client:
        response = client.get(
            "/catalog/series/calendar-videos/tmdb:1399,tmdb:0,tmdb:1668.json",
            params={"language": "it-IT"},
            headers={"User-Agent": "Stremio-Apple/1.0"},
        )

    assert response.status_code == 200
    details = response.json()["metasDetailed"]
    assert [meta["id"] for meta in details] == ["tmdb:1399", "tmdb:1668"]
    assert details[0]["imdbRating"] == f"TV-MA{APPLE_SEPARATOR}8.9"
    assert sorted(call[2] for call in service.meta_calls) == [
        "tmdb:0",
        "tmdb:1399",
        "tmdb:1668",
    ]
    assert {call[:2] for call in service.meta_calls} == {("series", "it-IT")}
    assert service.catalog_calls == []


def test_invalid_query_config_is_a_client_error() -> None:
    client, _ = _client()

    with client:
        response = client.get("/catalog/movie/tmdb.top.json", params={"include_adult": "maybe"})

    assert response.status_code == 400


def test_healthcheck() -> None:
    client, _ = _client()

    with client:
        assert client.get("/healthz").json() == {"status": "ok"}


def test_cache_control_header() -> None:
    assert cache_control_header(META_CACHE_OPTIONS) == (
        "max-age=43200, stale-while-revalidate=86400, stale-if-error=1209600, public"
    )
    assert cache_control_header({"max-age": 0}) is None


def test_decorate_rating_separators() -> None:
    def meta() -> dict[str, object]:
        return {
            "imdbRating": "7.9",
            "ageRating": "TV-MA",
            "links": [{"category": "imdb", "name": "7.9"}, {"category": "Genres", "name": "Drama"}],
        }

    apple = decorate_rating(meta(), "Stremio-Apple/2.0")
    assert apple["imdbRating"] == f"TV-MA{APPLE_SEPARATOR}7.9"
    assert apple["links"][0]["name"] == f"TV-MA{APPLE_SEPARATOR}7.9"
    assert apple["links"][1]["name"] == "Drama"

    assert decorate_rating(meta(), None)["imdbRating"] == "7.9"

    uncertified = meta()
    uncertified["ageRating"] = ""
    assert decorate_rating(uncertified, "Stremio/1.6")["imdbRating"] == "7.9"
