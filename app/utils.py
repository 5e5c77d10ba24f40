"""Utility helpers for the TMDB addon service."""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, TypeVar

T = TypeVar("T")

REGION_RE = re.compile(r"[-_]([A-Za-z]{2})$")


def slugify(value: str) -> str:
    """Return a URL-friendly slug."""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value)
    value = value.strip("-")
    value = re.sub(r"-+", "-", value)
    return value.lower()


def chunked(items: Iterable[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""

    if size <= 0:
        raise ValueError("Chunk size must be positive")
    batches: list[list[T]] = []
    current: list[T] = []
    for item in items:
        current.append(item)
        if len(current) == size:
            batches.append(current)
            current = []
    if current:
        batches.append(current)
    return batches


def region_from_language(language: str | None) -> str | None:
    """Return the upper-case region suffix of a ``xx-YY`` language tag."""

    if not language:
        return None
    match = REGION_RE.search(language.strip())
    if not match:
        return None
    return match.group(1).upper()
