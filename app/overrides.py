"""Curated corrections applied on top of provider data.

Two tables are shipped as JSON under ``app/data``:

* ``cross_ref_ids.json`` maps a TMDB id to the IMDb id that should be used
  instead of the one TMDB reports (``{"tmdbId": "...", "imdbId": "tt..."}``).
* ``episode_orders.json`` maps a TMDB id to an episode group that replaces the
  default season ordering (``{"tmdbId": "...", "episodeGroupId": "...",
  "watchOrderOnly": false}``).

Tables are loaded once at startup and handed to the assemblers; lookups are by
exact provider id.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

logger = logging.getLogger(__name__)


class _OverrideModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    provider_id: str = Field(alias="tmdbId")

    @field_validator("provider_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value


class CrossRefOverride(_OverrideModel):
    """Replacement cross-reference id for a provider record."""

    cross_ref_id: str = Field(alias="imdbId")


class EpisodeOrderOverride(_OverrideModel):
    """Alternate episode grouping for a series."""

    episode_group_id: str = Field(alias="episodeGroupId")
    watch_order_only: bool = Field(default=False, alias="watchOrderOnly")


_CROSS_REF_LIST = TypeAdapter(list[CrossRefOverride])
_EPISODE_ORDER_LIST = TypeAdapter(list[EpisodeOrderOverride])


@dataclass(frozen=True, slots=True)
class OverrideTables:
    """Read-only override lookups keyed by provider id."""

    cross_refs: Mapping[str, CrossRefOverride] = field(
        default_factory=lambda: MappingProxyType({})
    )
    episode_orders: Mapping[str, EpisodeOrderOverride] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_entries(
        cls,
        cross_refs: Iterable[CrossRefOverride] = (),
        episode_orders: Iterable[EpisodeOrderOverride] = (),
    ) -> "OverrideTables":
        return cls(
            cross_refs=MappingProxyType(_index(cross_refs)),
            episode_orders=MappingProxyType(_index(episode_orders)),
        )

    @classmethod
    def from_files(
        cls,
        cross_ref_path: Path | None,
        episode_order_path: Path | None,
    ) -> "OverrideTables":
        """Load both tables from JSON files; missing files yield empty tables."""

        cross_refs = _CROSS_REF_LIST.validate_python(_read_json_list(cross_ref_path))
        episode_orders = _EPISODE_ORDER_LIST.validate_python(
            _read_json_list(episode_order_path)
        )
        tables = cls.from_entries(cross_refs, episode_orders)
        logger.info(
            "Loaded %s cross-reference and %s episode order overrides",
            len(tables.cross_refs),
            len(tables.episode_orders),
        )
        return tables

    def cross_ref_id(self, provider_id: str | int) -> str | None:
        entry = self.cross_refs.get(str(provider_id))
        return entry.cross_ref_id if entry else None

    def episode_order(self, provider_id: str | int) -> EpisodeOrderOverride | None:
        return self.episode_orders.get(str(provider_id))


def _index(entries: Iterable[_OverrideModel]) -> dict[str, Any]:
    indexed: dict[str, Any] = {}
    for entry in entries:
        if entry.provider_id in indexed:
            logger.warning("Duplicate override for TMDB id %s ignored", entry.provider_id)
            continue
        indexed[entry.provider_id] = entry
    return indexed


def _read_json_list(path: Path | None) -> list[Any]:
    if path is None:
        return []
    if not path.exists():
        logger.warning("Override table %s not found, using an empty table", path)
        return []
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"Override table {path} must contain a JSON list")
    return payload
