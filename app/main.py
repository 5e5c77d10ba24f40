"""Entry point for the FastAPI-powered TMDB Stremio addon."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Mapping
from urllib.parse import parse_qsl, quote

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .cache import CacheBackend, CacheStore, DatabaseCacheBackend, MemoryCacheBackend
from .config import settings
from .database import Database
from .episodes import EpisodeAssembler
from .models import CONTENT_TYPES, RequestConfig
from .overrides import OverrideTables
from .ratings import RatingResolver
from .services.addon import AddonService
from .services.catalog import CatalogBuilder, page_from_skip
from .services.genres import GenreDirectory
from .services.metadata import MetadataAssembler
from .services.metadata_addon import MetadataAddonClient
from .services.posters import PosterService
from .services.tmdb import TMDBClient

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI

META_CACHE_OPTIONS = {
    "max-age": 12 * 60 * 60,
    "stale-while-revalidate": 24 * 60 * 60,
    "stale-if-error": 14 * 24 * 60 * 60,
}
CATALOG_CACHE_OPTIONS = {
    "max-age": 12 * 60 * 60,
    "stale-while-revalidate": 7 * 24 * 60 * 60,
    "stale-if-error": 14 * 24 * 60 * 60,
}
APPLE_SEPARATOR = "  ⦁  "
DEFAULT_SEPARATOR = "  "


@asynccontextmanager
async def lifespan(_: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )
    external_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(10.0, connect=5.0))
    )

    database: Database | None = None
    backend: CacheBackend | None = None
    if not settings.no_cache:
        if settings.cache_backend == "database":
            database = Database(settings.database_url)
            await database.create_all()
            backend = DatabaseCacheBackend(database.session_factory)
        else:
            backend = MemoryCacheBackend()
    cache = CacheStore.from_settings(settings, backend)

    overrides = OverrideTables.from_files(
        settings.cross_ref_overrides_path, settings.episode_order_overrides_path
    )
    gateway = TMDBClient(settings, tmdb_http_client)
    rating_source = (
        MetadataAddonClient(external_http_client, str(settings.metadata_addon_url))
        if settings.metadata_addon_url is not None
        else None
    )
    posters = PosterService(external_http_client, str(settings.rpdb_api_url))
    episodes = EpisodeAssembler(
        gateway, overrides, image_base_url=settings.tmdb_image_url
    )
    assembler = MetadataAssembler(
        gateway,
        overrides,
        RatingResolver(rating_source),
        episodes,
        posters,
        manifest_url=f"{settings.public_base_url}/manifest.json",
        image_base_url=settings.tmdb_image_url,
    )
    catalogs = CatalogBuilder(
        gateway, GenreDirectory(gateway), image_base_url=settings.tmdb_image_url
    )

    app.state.addon_service = AddonService(gateway, assembler, catalogs, cache, posters)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        if database is not None:
            await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="TMDB metadata and catalogs for Stremio",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_addon_service(app: FastAPI) -> AddonService:
    service = getattr(app.state, "addon_service", None)
    if not isinstance(service, AddonService):
        raise RuntimeError("Addon service not initialised")
    return service


def cache_control_header(options: Mapping[str, int]) -> str | None:
    directives = [f"{name}={value}" for name, value in options.items() if value]
    if not directives:
        return None
    return f"{', '.join(directives)}, public"


def _respond(payload: Any, options: Mapping[str, int] | None = None) -> JSONResponse:
    headers: dict[str, str] = {}
    header = cache_control_header(options or {})
    if header:
        headers["Cache-Control"] = header
    return JSONResponse(payload, headers=headers)


def decorate_rating(
    meta: dict[str, Any], user_agent: str | None
) -> dict[str, Any]:
    """Prefix the displayed rating with the age certification for Stremio apps."""

    if not user_agent:
        return meta
    separator = (
        APPLE_SEPARATOR if "stremio-apple" in user_agent.lower() else DEFAULT_SEPARATOR
    )
    certification = meta.get("ageRating")
    rating = meta.get("imdbRating") or ""
    label = f"{certification}{separator}{rating}" if certification else rating
    meta["imdbRating"] = label
    for link in meta.get("links") or []:
        if link.get("category") == "imdb":
            link["name"] = label
    return meta


def _parse_extra(request: Request, extra: str | None) -> dict[str, str]:
    """Parse the ``genre=...&skip=...&search=...`` segment of a catalog path."""

    if not extra:
        return {}
    # The decoded path parameter loses escaped ``&`` inside genre names.
    raw_path = request.scope.get("raw_path")
    if isinstance(raw_path, bytes):
        segment = raw_path.decode("utf-8", "replace").rsplit("/", 1)[-1].removesuffix(".json")
    else:
        segment = quote(extra, safe="=&")
    return dict(parse_qsl(segment, keep_blank_values=False))


def _request_config(request: Request) -> RequestConfig:
    try:
        return RequestConfig.from_query(request.query_params)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors()) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    async def _catalog_endpoint(
        request: Request,
        content_type: str,
        catalog_id: str,
        extra: str | None = None,
    ) -> JSONResponse:
        if content_type not in CONTENT_TYPES:
            raise HTTPException(status_code=400, detail="Unsupported content type")
        service = get_addon_service(fastapi_app)
        config = _request_config(request)
        language = config.resolved_language(settings.default_language)
        extras = _parse_extra(request, extra)
        page = page_from_skip(extras.get("skip"))
        entries = await service.get_catalog_page(
            content_type,
            language,
            page,
            catalog_id,
            extras.get("genre"),
            config,
            search=extras.get("search"),
        )
        return _respond(
            {"metas": [entry.to_catalog_stub() for entry in entries]},
            CATALOG_CACHE_OPTIONS,
        )

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/catalog/{content_type}/{catalog_id}.json")
    async def catalog(
        request: Request, content_type: str, catalog_id: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, content_type, catalog_id)

    @fastapi_app.get("/catalog/series/calendar-videos/{meta_ids}.json")
    async def calendar_videos(request: Request, meta_ids: str) -> JSONResponse:
        """Full series metas for the comma separated ids of a calendar view."""

        service = get_addon_service(fastapi_app)
        config = _request_config(request)
        language = config.resolved_language(settings.default_language)
        records = await service.get_series_details(
            language, meta_ids.split(","), config.ranking_key
        )
        user_agent = request.headers.get("user-agent")
        return _respond(
            {
                "metasDetailed": [
                    decorate_rating(record.to_meta_payload(), user_agent)
                    for record in records
                ]
            }
        )

    @fastapi_app.get("/catalog/{content_type}/{catalog_id}/{extra}.json")
    async def catalog_with_extra(
        request: Request, content_type: str, catalog_id: str, extra: str
    ) -> JSONResponse:
        return await _catalog_endpoint(request, content_type, catalog_id, extra)

    @fastapi_app.get("/meta/{content_type}/{meta_id}.json")
    async def meta(request: Request, content_type: str, meta_id: str) -> JSONResponse:
        if content_type not in CONTENT_TYPES:
            raise HTTPException(status_code=400, detail="Unsupported content type")
        service = get_addon_service(fastapi_app)
        config = _request_config(request)
        language = config.resolved_language(settings.default_language)
        record = await service.get_unified_record(
            content_type, language, meta_id, config.ranking_key
        )
        if record is None:
            return _respond({"meta": None}, META_CACHE_OPTIONS)
        payload = decorate_rating(
            record.to_meta_payload(), request.headers.get("user-agent")
        )
        return _respond({"meta": payload}, META_CACHE_OPTIONS)


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
