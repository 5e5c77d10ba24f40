"""Rating and certification fallback rules."""

from __future__ import annotations

import pytest

from app.ratings import (
    RatingResolver,
    find_content_rating,
    find_release_certification,
    format_vote_average,
    resolve_certification,
)


class StubSource:
    def __init__(self, result: str | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def rating(self, cross_ref_id: str, media_type: str) -> str | None:
        self.calls.append((cross_ref_id, media_type))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.mark.anyio("asyncio")
async def test_failed_lookup_falls_back_to_vote_average() -> None:
    source = StubSource(error=RuntimeError("cinemeta down"))
    resolver = RatingResolver(source)

    assert await resolver.resolve_rating("tt0137523", "movie", 7.83) == "7.8"
    assert source.calls == [("tt0137523", "movie")]


@pytest.mark.parametrize(
    ("value", "expected"),
    [(7.25, "7.3"), (6.25, "6.3"), (0.25, "0.3"), (7.83, "7.8"), (0.05, "0.1")],
)
def test_vote_average_ties_round_up(value: float, expected: str) -> None:
    assert format_vote_average(value) == expected


@pytest.mark.anyio("asyncio")
async def test_absent_rating_falls_back_to_vote_average() -> None:
    resolver = RatingResolver(StubSource(result=None))

    assert await resolver.resolve_rating("tt0137523", "movie", 8) == "8.0"


@pytest.mark.anyio("asyncio")
async def test_secondary_rating_is_preferred() -> None:
    resolver = RatingResolver(StubSource(result="8.8"))

    assert await resolver.resolve_rating("tt0137523", "series", 7.1) == "8.8"


@pytest.mark.anyio("asyncio")
async def test_source_skipped_without_cross_reference() -> None:
    source = StubSource(result="9.9")
    resolver = RatingResolver(source)

    assert await resolver.resolve_rating(None, "movie", 6.25) == "6.3"
    assert source.calls == []


@pytest.mark.anyio("asyncio")
async def test_no_source_configured() -> None:
    assert await RatingResolver().resolve_rating("tt1", "movie", None) == "0.0"


def test_format_vote_average_handles_garbage() -> None:
    assert format_vote_average("7.3") == "0.0"
    assert format_vote_average(True) == "0.0"
    assert format_vote_average(9.96) == "10.0"
    assert format_vote_average(float("nan")) == "0.0"


def test_certification_falls_back_to_us() -> None:
    ratings = {"results": [{"iso_3166_1": "US", "rating": "TV-14"}]}

    assert resolve_certification(find_content_rating, ratings, "fr-FR") == "TV-14"


def test_certification_prefers_request_region() -> None:
    release_dates = {
        "results": [
            {"iso_3166_1": "US", "release_dates": [{"certification": "R"}]},
            {"iso_3166_1": "FR", "release_dates": [{"certification": ""}, {"certification": "12"}]},
        ]
    }

    assert resolve_certification(find_release_certification, release_dates, "fr-FR") == "12"
    assert resolve_certification(find_release_certification, release_dates, "de-DE") == "R"
    assert resolve_certification(find_release_certification, release_dates, "pt") == "R"


def test_certification_empty_when_nothing_matches() -> None:
    assert resolve_certification(find_content_rating, {"results": []}, "en-GB") == ""
    assert resolve_certification(find_release_certification, None, "en-US") == ""
    assert find_release_certification({"results": [{"iso_3166_1": "US"}]}, "US") == ""
