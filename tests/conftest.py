"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Return a factory building settings isolated from the local environment."""

    def factory(**overrides: Any) -> Settings:
        base: dict[str, Any] = {"TMDB_API_KEY": "test-key"}
        base.update(overrides)
        return Settings(_env_file=None, **base)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def movie_payload() -> dict[str, Any]:
    """A trimmed TMDB ``/movie/550`` response with appended sub-resources."""

    return {
        "id": 550,
        "imdb_id": "tt0137523",
        "title": "Fight Club",
        "overview": "A ticking-time-bomb insomniac and a slippery soap salesman...",
        "release_date": "1999-10-15",
        "runtime": 139,
        "vote_average": 8.433,
        "poster_path": "/pB8BM7pdSp6B6Ih7QZ4DrQ3PmJK.jpg",
        "backdrop_path": "/hZkgoQYus5vegHoetLkCJzb17zJ.jpg",
        "genres": [{"id": 18, "name": "Drama"}, {"id": 53, "name": "Thriller"}],
        "production_countries": [
            {"iso_3166_1": "DE", "name": "Germany"},
            {"iso_3166_1": "US", "name": "United States of America"},
        ],
        "credits": {
            "cast": [
                {"name": "Edward Norton"},
                {"name": "Brad Pitt"},
                {"name": "Helena Bonham Carter"},
                {"name": "Meat Loaf"},
                {"name": "Jared Leto"},
                {"name": "Zach Grenier"},
            ],
            "crew": [
                {"name": "David Fincher", "job": "Director", "department": "Directing"},
                {"name": "Jim Uhls", "job": "Screenplay", "department": "Writing"},
                {"name": "Chuck Palahniuk", "job": "Novel", "department": "Writing"},
                {"name": "Art Linson", "job": "Producer", "department": "Production"},
            ],
        },
        "videos": {
            "results": [
                {"key": "qtRKdVHc-cE", "name": "Official Trailer", "site": "YouTube", "type": "Trailer"},
                {"key": "abc123", "name": "Behind the Scenes", "site": "YouTube", "type": "Featurette"},
                {"key": "vimeo1", "name": "Vimeo Trailer", "site": "Vimeo", "type": "Trailer"},
            ]
        },
        "release_dates": {
            "results": [
                {
                    "iso_3166_1": "DE",
                    "release_dates": [{"certification": "18"}],
                },
                {
                    "iso_3166_1": "US",
                    "release_dates": [
                        {"certification": ""},
                        {"certification": "R"},
                    ],
                },
            ]
        },
    }


@pytest.fixture
def series_payload() -> dict[str, Any]:
    """A trimmed TMDB ``/tv/1399`` response with appended sub-resources."""

    return {
        "id": 1399,
        "name": "Game of Thrones",
        "overview": "Seven noble families fight for control of Westeros.",
        "status": "Ended",
        "first_air_date": "2011-04-17",
        "last_air_date": "2019-05-19",
        "episode_run_time": [],
        "last_episode_to_air": {"runtime": 80},
        "vote_average": 8.442,
        "poster_path": "/1XS1oqL89opfnbLl8WnZY1O1uJx.jpg",
        "backdrop_path": "/2OMB0ynKlyIenMJWI2Dy9IWT4c.jpg",
        "genres": [{"id": 10765, "name": "Sci-Fi & Fantasy"}, {"id": 18, "name": "Drama"}],
        "created_by": [{"name": "David Benioff"}, {"name": "D.B. Weiss"}],
        "production_countries": [{"iso_3166_1": "US", "name": "United States of America"}],
        "external_ids": {"imdb_id": "tt0944947"},
        "content_ratings": {
            "results": [
                {"iso_3166_1": "US", "rating": "TV-MA"},
                {"iso_3166_1": "DE", "rating": "16"},
            ]
        },
        "credits": {"cast": [{"name": "Emilia Clarke"}], "crew": []},
        "videos": {"results": []},
        "seasons": [{"season_number": 1}, {"season_number": 2}],
    }
