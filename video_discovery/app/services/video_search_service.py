from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

from video_discovery.app.services.discovery_errors import VideoSearchUnavailableError
from video_discovery.app.services.provider_client import (
    TIER_INVIDIOUS,
    TIER_PIPED,
    DurationBucket,
    ProviderEndpoint,
    ProviderFailure,
    ProviderSearchClient,
    SearchOptions,
    SearchOrder,
)
from video_discovery.app.services.video_normalizer import VideoItem

LOGGER = logging.getLogger("video_discovery.search")

UNAVAILABLE_MESSAGE = "Video search is temporarily unavailable. Try again in a few minutes."

# Well-known channels publishing free university-level courses.
TRUSTED_CHANNEL_IDS: dict[str, str] = {
    "MIT_OCW": "UCFe34eD4lQUo3L_T6T2eO_g",
    "MIT_OPEN_LEARNING": "UCN0QBfKk0ZSytyX_16M11fA",
    "STANFORD": "UC2pmfLm7iq6Q5e2b6bqVqYg",
    "CRASHCOURSE": "UCX6b17PVsYBQ0ip5gyeme-Q",
    "KHAN": "UC4a-Gbdw7vOaccHmFo40b9g",
}

TOPIC_SUGGESTION_SEEDS: tuple[str, ...] = (
    "learn",
    "programming",
    "tutorial",
    "python",
    "javascript",
    "react",
    "math",
    "course",
)
DEFAULT_TOPICS: tuple[str, ...] = (
    "JavaScript",
    "Python",
    "React",
    "Computer Science",
    "Mathematics",
    "Data Structures",
    "Web Development",
    "Machine Learning",
    "SQL",
    "Algorithms",
    "Calculus",
    "Physics",
    "Node.js",
    "TypeScript",
    "HTML CSS",
    "Java",
    "C++",
    "Statistics",
    "Linear Algebra",
    "Chemistry",
    "History",
    "Economics",
    "Psychology",
    "Core concepts",
)

SourceHint = Literal["MIT", "Stanford", "Harvard"]


@dataclass(frozen=True)
class VideoSearchOutcome:
    videos: list[VideoItem]
    tier: str
    endpoint: str
    attempts: int


class VideoSearchService:
    """Runs a query through the provider tiers in priority order.

    With an API key the official tier is authoritative: its answer is returned
    as-is and mirrors are never consulted. Without one, each mirror of the Piped
    family and then the Invidious family is tried in order, and the first
    endpoint yielding at least one video wins. Results are never merged.
    """

    def __init__(
        self,
        client: ProviderSearchClient,
        *,
        piped_bases: tuple[str, ...] | list[str],
        invidious_bases: tuple[str, ...] | list[str],
        deadline_seconds: float | None = None,
        topic_suggestion_timeout_seconds: float = 5.0,
    ) -> None:
        self._client = client
        self._piped_bases = tuple(piped_bases)
        self._invidious_bases = tuple(invidious_bases)
        self._deadline_seconds = deadline_seconds if deadline_seconds else None
        self._topic_suggestion_timeout_seconds = topic_suggestion_timeout_seconds

    @property
    def client(self) -> ProviderSearchClient:
        return self._client

    def mirror_endpoints(self) -> list[ProviderEndpoint]:
        endpoints = [ProviderEndpoint(tier=TIER_PIPED, base_url=base) for base in self._piped_bases]
        endpoints.extend(
            ProviderEndpoint(tier=TIER_INVIDIOUS, base_url=base)
            for base in self._invidious_bases
        )
        return endpoints

    async def search_videos(
        self,
        query: str,
        max_results: int = 12,
        channel_id: str | None = None,
        order: SearchOrder | None = None,
        video_duration: DurationBucket | None = None,
    ) -> list[VideoItem]:
        outcome = await self.search(
            query,
            SearchOptions(
                max_results=max_results,
                channel_id=channel_id,
                order=order,
                video_duration=video_duration,
            ),
        )
        return outcome.videos

    async def search(self, query: str, options: SearchOptions) -> VideoSearchOutcome:
        if self._client.official_configured:
            return await self._search_official(query, options)
        return await self._search_mirrors(query, options)

    async def _search_official(self, query: str, options: SearchOptions) -> VideoSearchOutcome:
        endpoint = self._client.official_endpoint
        try:
            videos = await self._client.search(endpoint, query, options)
        except ProviderFailure as exc:
            LOGGER.warning(
                "video search attempt_failed tier=%s endpoint=%s reason=%s message=%s",
                exc.tier,
                endpoint.base_url,
                exc.reason,
                exc,
            )
            raise VideoSearchUnavailableError(UNAVAILABLE_MESSAGE) from exc

        LOGGER.info(
            "video search finish tier=%s endpoint=%s videos=%s attempts=1",
            endpoint.tier,
            endpoint.base_url,
            len(videos),
        )
        return VideoSearchOutcome(
            videos=videos,
            tier=endpoint.tier,
            endpoint=endpoint.base_url,
            attempts=1,
        )

    async def _search_mirrors(self, query: str, options: SearchOptions) -> VideoSearchOutcome:
        loop = asyncio.get_running_loop()
        deadline_at = (
            loop.time() + self._deadline_seconds if self._deadline_seconds is not None else None
        )
        endpoints = self.mirror_endpoints()
        attempts = 0

        for endpoint in endpoints:
            timeout = self._client.timeout_seconds
            if deadline_at is not None:
                remaining = deadline_at - loop.time()
                if remaining <= 0:
                    LOGGER.warning(
                        "video search deadline_exhausted attempts=%s skipped=%s deadline_s=%s",
                        attempts,
                        len(endpoints) - attempts,
                        self._deadline_seconds,
                    )
                    break
                timeout = min(timeout, remaining)

            attempts += 1
            try:
                videos = await self._client.search(
                    endpoint,
                    query,
                    options,
                    timeout_seconds=timeout,
                )
            except ProviderFailure as exc:
                LOGGER.warning(
                    "video search attempt_failed tier=%s endpoint=%s reason=%s message=%s",
                    exc.tier,
                    endpoint.base_url,
                    exc.reason,
                    exc,
                )
                continue

            if not videos:
                LOGGER.info(
                    "video search attempt_empty tier=%s endpoint=%s",
                    endpoint.tier,
                    endpoint.base_url,
                )
                continue

            LOGGER.info(
                "video search finish tier=%s endpoint=%s videos=%s attempts=%s",
                endpoint.tier,
                endpoint.base_url,
                len(videos),
                attempts,
            )
            return VideoSearchOutcome(
                videos=videos,
                tier=endpoint.tier,
                endpoint=endpoint.base_url,
                attempts=attempts,
            )

        LOGGER.warning(
            "video search unavailable attempts=%s endpoints=%s",
            attempts,
            len(endpoints),
        )
        raise VideoSearchUnavailableError(UNAVAILABLE_MESSAGE)

    async def get_topic_suggestions(self, max_topics: int = 24) -> list[str]:
        limit = max(1, max_topics)
        seen: dict[str, None] = {}

        for base in self._invidious_bases:
            for seed in TOPIC_SUGGESTION_SEEDS:
                try:
                    suggestions = await self._client.fetch_search_suggestions(
                        base,
                        seed,
                        timeout_seconds=self._topic_suggestion_timeout_seconds,
                    )
                except ProviderFailure as exc:
                    LOGGER.info(
                        "video search suggestions_failed endpoint=%s seed=%s reason=%s",
                        base,
                        seed,
                        exc.reason,
                    )
                    if exc.reason.startswith("http_"):
                        continue
                    break
                for suggestion in suggestions:
                    candidate = " ".join(suggestion.split())
                    if 1 < len(candidate) < 50:
                        seen.setdefault(candidate, None)
            if len(seen) >= limit:
                break

        collected = list(seen)[:limit]
        if collected:
            return collected
        return list(DEFAULT_TOPICS[:limit])


def build_module_search_query(
    subject: str,
    module_name: str,
    topic: str,
    source_hint: SourceHint | None = None,
) -> str:
    parts = " ".join(part for part in (subject, module_name, topic) if part)
    if source_hint:
        return f"{source_hint} {parts} lecture"
    return f"{parts} course lecture"
