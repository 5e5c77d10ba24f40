"""Get-or-compute cache in front of the expensive TMDB assembly calls.

Entries carry an absolute expiry and are dropped lazily: an expired entry is
treated as absent on read and replaced by the next write. There is no
single-flight guarantee; concurrent misses for the same key each run their
``compute`` and the last write wins. Values for a key are recomputations of
the same upstream state, so the duplicate work is tolerated.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings
from .db_models import CacheRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

META_KIND = "meta"
CATALOG_KIND = "catalog"


class CacheBackendError(RuntimeError):
    """Raised when a cache backend cannot be read or written."""


def build_cache_key(
    kind: str,
    language: str,
    media_type: str,
    identifier: str | int,
    *discriminators: object | None,
) -> str:
    """Return ``{kind}|{language}:{type}:{id}[:discriminators]``.

    Absent discriminators are rendered as empty strings so that equivalent
    requests always share one key.
    """

    key = f"{kind}|{language}:{media_type}:{identifier}"
    if discriminators:
        rendered = ["" if value is None else str(value) for value in discriminators]
        key = f"{key}:{':'.join(rendered)}"
    return key


class CacheBackend(Protocol):
    async def get(self, key: str, now: float) -> Any | None: ...

    async def set(self, key: str, value: Any, expires_at: float) -> None: ...

    async def clear(self) -> None: ...


class MemoryCacheBackend:
    """In-process dictionary backend."""

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Any, float]] = {}

    async def get(self, key: str, now: float) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= now:
            return None
        return value

    async def set(self, key: str, value: Any, expires_at: float) -> None:
        self._entries[key] = (value, expires_at)

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


class DatabaseCacheBackend:
    """SQLAlchemy backend storing JSON payloads in ``cache_entries``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str, now: float) -> Any | None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(CacheRecord).where(CacheRecord.key == key)
                )
                record = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise CacheBackendError(f"Cache read failed for {key}") from exc
        if record is None or record.expires_at <= _to_datetime(now):
            return None
        return record.payload

    async def set(self, key: str, value: Any, expires_at: float) -> None:
        try:
            async with self._session_factory() as session:
                await session.merge(
                    CacheRecord(key=key, payload=value, expires_at=_to_datetime(expires_at))
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise CacheBackendError(f"Cache write failed for {key}") from exc

    async def clear(self) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(delete(CacheRecord))
                await session.commit()
        except SQLAlchemyError as exc:
            raise CacheBackendError("Cache reset failed") from exc


class CacheStore:
    """Key-addressed get-or-compute store with per-call TTLs."""

    def __init__(
        self,
        backend: CacheBackend | None,
        *,
        meta_ttl: int = 86_400,
        catalog_ttl: int = 43_200,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._meta_ttl = meta_ttl
        self._catalog_ttl = catalog_ttl
        self._enabled = enabled and backend is not None
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: Settings, backend: CacheBackend | None
    ) -> "CacheStore":
        return cls(
            backend,
            meta_ttl=settings.meta_ttl_seconds,
            catalog_ttl=settings.catalog_ttl_seconds,
            enabled=not settings.no_cache,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def get_or_compute(
        self, key: str, ttl: int, compute: Callable[[], Awaitable[T]]
    ) -> T:
        """Return the fresh cached value for ``key`` or compute and store it.

        ``None`` results are passed through without being stored.
        """

        if not self._enabled or self._backend is None:
            return await compute()

        now = self._clock()
        try:
            cached = await self._backend.get(key, now)
        except CacheBackendError as exc:
            logger.warning("Cache unavailable, computing %s directly: %s", key, exc)
            return await compute()
        if cached is not None:
            return cached

        return await self.refresh(key, ttl, compute)

    async def refresh(
        self, key: str, ttl: int, compute: Callable[[], Awaitable[T]]
    ) -> T:
        """Compute ``key`` afresh and overwrite whatever is cached for it."""

        value = await compute()
        if value is None or not self._enabled or self._backend is None:
            return value
        try:
            await self._backend.set(key, value, self._clock() + ttl)
        except CacheBackendError as exc:
            logger.warning("Could not store %s in cache: %s", key, exc)
        return value

    async def wrap_meta(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        return await self.get_or_compute(key, self._meta_ttl, compute)

    async def wrap_catalog(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        return await self.get_or_compute(key, self._catalog_ttl, compute)

    async def refresh_meta(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        return await self.refresh(key, self._meta_ttl, compute)

    async def refresh_catalog(self, key: str, compute: Callable[[], Awaitable[T]]) -> T:
        return await self.refresh(key, self._catalog_ttl, compute)

    async def reset(self) -> None:
        """Drop every entry. Safe to call whether or not caching is enabled."""

        if self._backend is None:
            return
        try:
            await self._backend.clear()
        except CacheBackendError as exc:
            logger.warning("Cache reset failed: %s", exc)
            return
        logger.info("Cache cleared")
