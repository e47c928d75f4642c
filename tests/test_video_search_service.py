from __future__ import annotations

import asyncio
import time

import httpx
import pytest
from provider_fakes import (
    INVIDIOUS_BASES,
    OFFICIAL_BASE,
    PIPED_BASES,
    FakeProviderRouter,
    build_search_service,
    invidious_video,
    piped_video,
    slow_response,
)

from video_discovery.app.services.discovery_errors import VideoSearchUnavailableError
from video_discovery.app.services.provider_client import SearchOptions
from video_discovery.app.services.video_search_service import (
    DEFAULT_TOPICS,
    TOPIC_SUGGESTION_SEEDS,
    UNAVAILABLE_MESSAGE,
    build_module_search_query,
)

SUGGESTIONS_PATH = "/api/v1/search/suggestions"


def test_first_mirror_with_videos_wins(provider_router: FakeProviderRouter) -> None:
    provider_router.add_json(
        PIPED_BASES[0],
        "/search",
        [piped_video("a1", "Python intro"), piped_video("a2", "Python loops")],
    )
    provider_router.add_json(PIPED_BASES[1], "/search", [piped_video("b1", "Other")])
    service = build_search_service(provider_router)

    outcome = asyncio.run(service.search("python", SearchOptions()))

    assert [video.external_id for video in outcome.videos] == ["a1", "a2"]
    assert outcome.tier == "piped"
    assert outcome.endpoint == PIPED_BASES[0]
    assert outcome.attempts == 1
    assert provider_router.hosts_called() == ["piped-a.test"]


def test_failures_and_empty_results_advance_to_next_mirror(
    provider_router: FakeProviderRouter,
) -> None:
    provider_router.add_json(PIPED_BASES[0], "/search", {"message": "down"}, status_code=500)
    provider_router.add_json(PIPED_BASES[1], "/search", {"error": "upstream"})
    provider_router.add_json(INVIDIOUS_BASES[0], "/api/v1/search", [])
    provider_router.add_json(
        INVIDIOUS_BASES[1],
        "/api/v1/search",
        [invidious_video("i1", "Python decorators")],
    )
    service = build_search_service(provider_router)

    outcome = asyncio.run(service.search("python", SearchOptions()))

    assert outcome.tier == "invidious"
    assert outcome.endpoint == INVIDIOUS_BASES[1]
    assert outcome.attempts == 4
    assert [video.external_id for video in outcome.videos] == ["i1"]
    assert provider_router.hosts_called() == [
        "piped-a.test",
        "piped-b.test",
        "inv-a.test",
        "inv-b.test",
    ]


def test_all_mirrors_failing_raises_unavailable(provider_router: FakeProviderRouter) -> None:
    provider_router.add_text(PIPED_BASES[0], "/search", "<html>")
    provider_router.add(PIPED_BASES[1], "/search", httpx.ConnectError("refused"))
    service = build_search_service(provider_router)

    with pytest.raises(VideoSearchUnavailableError) as exc_info:
        asyncio.run(service.search_videos("python"))

    assert str(exc_info.value) == UNAVAILABLE_MESSAGE
    assert exc_info.value.status_code == 503
    assert len(provider_router.requests) == 4


def test_oversized_mirror_duration_does_not_abort_search(
    provider_router: FakeProviderRouter,
) -> None:
    provider_router.add_json(
        PIPED_BASES[0],
        "/search",
        [
            piped_video("ok1", "Python intro"),
            piped_video("bad", "Python loops", duration="9" * 5000),
        ],
    )
    service = build_search_service(provider_router)

    outcome = asyncio.run(service.search("python", SearchOptions()))

    assert [video.external_id for video in outcome.videos] == ["ok1", "bad"]
    assert [video.duration_seconds for video in outcome.videos] == [600, 0]
    assert provider_router.hosts_called() == ["piped-a.test"]


def test_official_tier_is_authoritative_when_key_configured(
    provider_router: FakeProviderRouter,
) -> None:
    provider_router.add_json(
        OFFICIAL_BASE,
        "/search",
        {"items": [{"id": {"videoId": "yt1"}, "snippet": {"title": "Official result"}}]},
    )
    provider_router.add_json(
        OFFICIAL_BASE,
        "/videos",
        {"items": [{"id": "yt1", "contentDetails": {"duration": "PT10M"}}]},
    )
    provider_router.add_json(PIPED_BASES[0], "/search", [piped_video("m1", "Mirror result")])
    service = build_search_service(provider_router, api_key="secret-key")

    outcome = asyncio.run(service.search("python", SearchOptions()))

    assert outcome.tier == "youtube_api"
    assert [video.duration_seconds for video in outcome.videos] == [600]
    assert set(provider_router.hosts_called()) == {"yt.test"}


def test_official_failure_does_not_fall_back_to_mirrors(
    provider_router: FakeProviderRouter,
) -> None:
    provider_router.add_json(
        OFFICIAL_BASE,
        "/search",
        {"error": {"message": "quotaExceeded"}},
        status_code=403,
    )
    provider_router.add_json(PIPED_BASES[0], "/search", [piped_video("m1", "Mirror result")])
    service = build_search_service(provider_router, api_key="secret-key")

    with pytest.raises(VideoSearchUnavailableError):
        asyncio.run(service.search("python", SearchOptions()))

    assert provider_router.hosts_called() == ["yt.test"]


def test_official_empty_result_is_returned_as_is(provider_router: FakeProviderRouter) -> None:
    provider_router.add_json(OFFICIAL_BASE, "/search", {"items": []})
    provider_router.add_json(PIPED_BASES[0], "/search", [piped_video("m1", "Mirror result")])
    service = build_search_service(provider_router, api_key="secret-key")

    videos = asyncio.run(service.search_videos("obscure topic"))

    assert videos == []
    assert provider_router.hosts_called() == ["yt.test"]


def test_deadline_stops_trying_further_mirrors(provider_router: FakeProviderRouter) -> None:
    for base in PIPED_BASES:
        provider_router.add(base, "/search", slow_response(0.5, [piped_video("s1", "Slow")]))
    for base in INVIDIOUS_BASES:
        provider_router.add(base, "/api/v1/search", slow_response(0.5, []))
    service = build_search_service(provider_router, deadline_seconds=0.2)

    started = time.monotonic()
    with pytest.raises(VideoSearchUnavailableError):
        asyncio.run(service.search("python", SearchOptions()))
    elapsed = time.monotonic() - started

    assert provider_router.hosts_called()[0] == "piped-a.test"
    assert elapsed < 1.0


def test_topic_suggestions_skip_failed_seeds_and_deduplicate(
    provider_router: FakeProviderRouter,
) -> None:
    provider_router.add_json(INVIDIOUS_BASES[0], SUGGESTIONS_PATH, {"error": "x"}, status_code=500)
    provider_router.add_json(
        INVIDIOUS_BASES[1],
        SUGGESTIONS_PATH,
        {"suggestions": ["python  tutorial", "python tutorial", "x", "learn python"]},
    )
    service = build_search_service(provider_router)

    topics = asyncio.run(service.get_topic_suggestions(10))

    assert topics == ["python tutorial", "learn python"]
    inv_a_calls = [host for host in provider_router.hosts_called() if host == "inv-a.test"]
    assert len(inv_a_calls) == len(TOPIC_SUGGESTION_SEEDS)


def test_topic_suggestions_fall_back_to_default_topics(
    provider_router: FakeProviderRouter,
) -> None:
    provider_router.add(INVIDIOUS_BASES[0], SUGGESTIONS_PATH, httpx.ConnectError("refused"))
    service = build_search_service(provider_router)

    topics = asyncio.run(service.get_topic_suggestions(5))

    assert topics == list(DEFAULT_TOPICS[:5])
    # A transport failure abandons the instance after its first seed.
    assert provider_router.hosts_called().count("inv-a.test") == 1


def test_build_module_search_query() -> None:
    assert (
        build_module_search_query("Computer Science", "Algorithms", "Sorting")
        == "Computer Science Algorithms Sorting course lecture"
    )
    assert (
        build_module_search_query("Physics", "", "Optics", source_hint="MIT")
        == "MIT Physics Optics lecture"
    )
