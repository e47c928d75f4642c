from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from video_discovery.app.repositories.topic_video_cache_repository import TopicVideoRecord
from video_discovery.app.services.course_topics import CourseTopicGate, normalize_topic
from video_discovery.app.services.discovery_errors import (
    TopicForbiddenError,
    TopicRequiredError,
    VideoSearchUnavailableError,
)
from video_discovery.app.services.durations import format_duration
from video_discovery.app.services.provider_client import (
    DurationBucket,
    SearchOptions,
    SearchOrder,
)
from video_discovery.app.services.relevance import filter_relevant
from video_discovery.app.services.topic_cache import TopicCache
from video_discovery.app.services.video_normalizer import (
    VideoItem,
    default_thumbnail_url,
    watch_url,
)
from video_discovery.app.services.video_search_service import VideoSearchService

LOGGER = logging.getLogger("video_discovery.discovery")

TOPIC_REQUIRED_MESSAGE = "Topic is required."
TOPIC_FORBIDDEN_MESSAGE = "Topic is not available. Only topics from your learning plans are allowed."

SOURCE_CACHE = "cache"
SOURCE_STALE_CACHE = "stale_cache"


@dataclass(frozen=True)
class VideoSuggestion:
    external_id: str
    title: str
    thumbnail_url: str
    duration_seconds: int
    channel_title: str | None
    content_url: str

    @property
    def duration(self) -> str:
        return format_duration(self.duration_seconds)


@dataclass(frozen=True)
class TopicSuggestionsResult:
    topic: str
    videos: list[VideoSuggestion]
    from_cache: bool
    source: str


@dataclass(frozen=True)
class _LiveFetch:
    videos: list[VideoItem]
    source: str


class DiscoveryService:
    def __init__(
        self,
        *,
        gate: CourseTopicGate,
        cache: TopicCache,
        search_service: VideoSearchService,
        default_max_results: int = 12,
        max_results_limit: int = 25,
        search_overfetch: int = 10,
        search_qualifiers: str = "course lecture tutorial",
        coalesce_concurrent_fetches: bool = True,
    ) -> None:
        self._gate = gate
        self._cache = cache
        self._search_service = search_service
        self._max_results_limit = max(1, max_results_limit)
        self._default_max_results = min(max(1, default_max_results), self._max_results_limit)
        self._search_overfetch = max(0, search_overfetch)
        self._search_qualifiers = " ".join(search_qualifiers.split())
        self._coalesce_concurrent_fetches = coalesce_concurrent_fetches
        self._inflight: dict[tuple[str, int], asyncio.Task[_LiveFetch]] = {}

    @property
    def search_service(self) -> VideoSearchService:
        return self._search_service

    async def get_suggestions_for_topic(
        self,
        user_id: int,
        topic: str,
        max_results: int | None = None,
    ) -> TopicSuggestionsResult:
        normalized = normalize_topic(topic)
        if not normalized:
            raise TopicRequiredError(TOPIC_REQUIRED_MESSAGE)

        authorized = await asyncio.to_thread(self._gate.authorize, user_id, topic)
        if not authorized:
            LOGGER.info("discovery forbidden user_id=%s topic=%s", user_id, normalized)
            raise TopicForbiddenError(TOPIC_FORBIDDEN_MESSAGE)

        display_topic = topic.strip()
        limit = self._clamp_limit(max_results)
        cached = await asyncio.to_thread(self._cache.read, normalized, limit)

        if self._cache.is_fresh(cached, limit) and len(cached) >= limit:
            LOGGER.info(
                "discovery cache_hit topic=%s records=%s limit=%s",
                normalized,
                len(cached),
                limit,
            )
            return TopicSuggestionsResult(
                topic=display_topic,
                videos=[_record_to_suggestion(record) for record in cached[:limit]],
                from_cache=False,
                source=SOURCE_CACHE,
            )

        try:
            live = await self._fetch_live(normalized, limit)
        except VideoSearchUnavailableError:
            if not cached:
                LOGGER.warning("discovery unavailable topic=%s cached=0", normalized)
                raise
            LOGGER.warning(
                "discovery stale_fallback topic=%s records=%s",
                normalized,
                len(cached),
            )
            return TopicSuggestionsResult(
                topic=display_topic,
                videos=[_record_to_suggestion(record) for record in cached[:limit]],
                from_cache=True,
                source=SOURCE_STALE_CACHE,
            )

        return TopicSuggestionsResult(
            topic=display_topic,
            videos=[_video_to_suggestion(video) for video in live.videos],
            from_cache=False,
            source=live.source,
        )

    async def list_course_topics(self, user_id: int) -> list[str]:
        allowed = await asyncio.to_thread(self._gate.compute_allowed_topics, user_id)
        return sorted(allowed)

    async def search_videos(
        self,
        query: str,
        max_results: int = 12,
        channel_id: str | None = None,
        order: SearchOrder | None = None,
        video_duration: DurationBucket | None = None,
    ) -> list[VideoItem]:
        return await self._search_service.search_videos(
            query,
            max_results=max_results,
            channel_id=channel_id,
            order=order,
            video_duration=video_duration,
        )

    async def get_topic_suggestions(self, max_topics: int = 24) -> list[str]:
        return await self._search_service.get_topic_suggestions(max_topics)

    async def _fetch_live(self, normalized: str, limit: int) -> _LiveFetch:
        if not self._coalesce_concurrent_fetches:
            return await self._fetch_and_store(normalized, limit)

        key = (normalized, limit)
        existing = self._inflight.get(key)
        if existing is not None:
            LOGGER.info("discovery join_inflight topic=%s limit=%s", normalized, limit)
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(self._fetch_and_store(normalized, limit))
        task.add_done_callback(_consume_task_exception)
        self._inflight[key] = task
        try:
            return await asyncio.shield(task)
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

    async def _fetch_and_store(self, normalized: str, limit: int) -> _LiveFetch:
        # Depends only on the normalized topic; joined callers share this fetch.
        query = f"{normalized} {self._search_qualifiers}".strip()
        outcome = await self._search_service.search(
            query,
            SearchOptions(
                max_results=limit + self._search_overfetch,
                order="relevance",
                video_duration="medium",
            ),
        )
        relevant = filter_relevant(outcome.videos, normalized)[:limit]
        await asyncio.to_thread(self._cache.upsert, normalized, relevant, source=outcome.tier)
        LOGGER.info(
            "discovery live_fetch topic=%s tier=%s fetched=%s relevant=%s",
            normalized,
            outcome.tier,
            len(outcome.videos),
            len(relevant),
        )
        return _LiveFetch(videos=relevant, source=outcome.tier)

    def _clamp_limit(self, max_results: int | None) -> int:
        requested = self._default_max_results if max_results is None else max_results
        return min(max(1, requested), self._max_results_limit)


def _consume_task_exception(task: asyncio.Task[_LiveFetch]) -> None:
    # Joiners may all have gone away; read the exception so asyncio does not warn.
    if not task.cancelled():
        task.exception()


def _record_to_suggestion(record: TopicVideoRecord) -> VideoSuggestion:
    return VideoSuggestion(
        external_id=record.external_id,
        title=record.title,
        thumbnail_url=record.thumbnail_url or default_thumbnail_url(record.external_id),
        duration_seconds=record.duration_seconds,
        channel_title=record.channel_title,
        content_url=record.content_url or watch_url(record.external_id),
    )


def _video_to_suggestion(video: VideoItem) -> VideoSuggestion:
    return VideoSuggestion(
        external_id=video.external_id,
        title=video.title,
        thumbnail_url=video.thumbnail_url or default_thumbnail_url(video.external_id),
        duration_seconds=video.duration_seconds,
        channel_title=video.channel_title or None,
        content_url=video.content_url,
    )
