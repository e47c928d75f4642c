from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from video_discovery.app.repositories.topic_video_cache_repository import (
    TopicVideoCacheRepository,
    TopicVideoRecord,
)
from video_discovery.app.services.video_normalizer import VideoItem, default_thumbnail_url

LOGGER = logging.getLogger("video_discovery.topic_cache")

DEFAULT_MAX_AGE_DAYS = 7
DEFAULT_MIN_FRESH_COUNT = 6


def _utc_now() -> datetime:
    return datetime.now(UTC)


class TopicCache:
    """Per-topic video cache with a read-side freshness threshold.

    Records are never evicted here; age only decides whether a live fetch is
    attempted. Stale records stay available as a fallback.
    """

    def __init__(
        self,
        repository: TopicVideoCacheRepository,
        *,
        max_age_days: int = DEFAULT_MAX_AGE_DAYS,
        min_fresh_count: int = DEFAULT_MIN_FRESH_COUNT,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._repository = repository
        self._max_age = timedelta(days=max(1, max_age_days))
        self._min_fresh_count = max(1, min_fresh_count)
        self._now = now

    def read(self, topic_normalized: str, limit: int) -> list[TopicVideoRecord]:
        return self._repository.list_for_topic(topic_normalized, limit=limit)

    def is_fresh(self, records: list[TopicVideoRecord], limit: int) -> bool:
        if not records:
            return False
        if len(records) < min(max(1, limit), self._min_fresh_count):
            return False
        newest = max(record.created_at for record in records)
        return self._now() - newest < self._max_age

    def upsert(self, topic_normalized: str, videos: list[VideoItem], *, source: str) -> int:
        """Store each video independently; returns how many were written."""
        refreshed_at = self._now().isoformat()
        stored = 0
        for video in videos:
            try:
                self._repository.upsert_video(
                    topic_normalized=topic_normalized,
                    external_id=video.external_id,
                    title=video.title,
                    description=video.description,
                    thumbnail_url=video.thumbnail_url or default_thumbnail_url(video.external_id),
                    content_url=video.content_url,
                    duration_seconds=video.duration_seconds,
                    channel_title=video.channel_title or None,
                    source=source,
                    refreshed_at=refreshed_at,
                )
            except sqlite3.Error as exc:
                LOGGER.warning(
                    "topic cache upsert_failed topic=%s video_id=%s error=%s",
                    topic_normalized,
                    video.external_id,
                    exc,
                )
                continue
            stored += 1

        LOGGER.info(
            "topic cache store topic=%s source=%s stored=%s skipped=%s",
            topic_normalized,
            source,
            stored,
            len(videos) - stored,
        )
        return stored
