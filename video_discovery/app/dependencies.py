from __future__ import annotations

from functools import lru_cache

from video_discovery.app.config import AppSettings, load_settings
from video_discovery.app.repositories.database import Database
from video_discovery.app.repositories.learning_plan_repository import LearningPlanRepository
from video_discovery.app.repositories.topic_video_cache_repository import (
    TopicVideoCacheRepository,
)
from video_discovery.app.services.course_topics import CourseTopicGate
from video_discovery.app.services.discovery_service import DiscoveryService
from video_discovery.app.services.provider_client import ProviderSearchClient
from video_discovery.app.services.topic_cache import TopicCache
from video_discovery.app.services.video_search_service import VideoSearchService


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_discovery_service() -> DiscoveryService:
    return build_discovery_service(get_settings(), get_database())


def build_video_search_service(settings: AppSettings) -> VideoSearchService:
    client = ProviderSearchClient(
        api_key=settings.youtube_api_key,
        api_base_url=settings.youtube_api_base_url,
        user_agent=settings.provider_user_agent,
        timeout_seconds=settings.provider_timeout_seconds,
        official_max_results=settings.official_max_results,
        mirror_max_results=settings.mirror_max_results,
        description_max_chars=settings.cache_description_max_chars,
    )
    return VideoSearchService(
        client,
        piped_bases=settings.piped_api_bases,
        invidious_bases=settings.invidious_api_bases,
        deadline_seconds=settings.search_deadline_seconds,
        topic_suggestion_timeout_seconds=settings.topic_suggestion_timeout_seconds,
    )


def build_discovery_service(
    settings: AppSettings,
    database: Database,
    *,
    search_service: VideoSearchService | None = None,
) -> DiscoveryService:
    return DiscoveryService(
        gate=CourseTopicGate(LearningPlanRepository(database)),
        cache=TopicCache(
            TopicVideoCacheRepository(database),
            max_age_days=settings.cache_max_age_days,
            min_fresh_count=settings.cache_min_fresh_count,
        ),
        search_service=search_service or build_video_search_service(settings),
        default_max_results=settings.default_max_results,
        max_results_limit=settings.max_results_limit,
        search_overfetch=settings.search_overfetch,
        search_qualifiers=settings.search_qualifiers,
        coalesce_concurrent_fetches=settings.coalesce_concurrent_fetches,
    )


def reset_cached_dependencies() -> None:
    get_discovery_service.cache_clear()
    get_database.cache_clear()
    get_settings.cache_clear()
