from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from structlog.contextvars import bind_contextvars, reset_contextvars

from video_discovery.app.dependencies import get_discovery_service
from video_discovery.app.models.discovery_contracts import (
    DurationBucketParam,
    SearchOrderParam,
    TopicListResponse,
    TopicVideosResponse,
    VideoItemModel,
    VideoSearchResponse,
)
from video_discovery.app.services.discovery_errors import VideoDiscoveryError
from video_discovery.app.services.discovery_service import DiscoveryService

router = APIRouter()

MAX_TOPIC_SUGGESTIONS = 48


def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias="X-User-ID")] = None,
) -> int:
    # Authentication happens upstream; it hands the resolved user id over in this header.
    raw_value = (x_user_id or "").strip()
    if not raw_value.isdigit() or int(raw_value) <= 0:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return int(raw_value)


def _to_http_error(exc: VideoDiscoveryError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


@router.get(
    "/content/discover",
    response_model=TopicVideosResponse,
    response_model_exclude_none=True,
    tags=["content"],
    operation_id="content_discover_by_topic",
)
async def discover_by_topic(
    user_id: Annotated[int, Depends(get_current_user_id)],
    service: Annotated[DiscoveryService, Depends(get_discovery_service)],
    topic: Annotated[str, Query(max_length=200)] = "",
    max_results: Annotated[int, Query(alias="maxResults", ge=1)] = 12,
) -> TopicVideosResponse:
    context_tokens = bind_contextvars(user_id=user_id)
    try:
        result = await service.get_suggestions_for_topic(user_id, topic, max_results)
    except VideoDiscoveryError as exc:
        raise _to_http_error(exc) from exc
    finally:
        reset_contextvars(**context_tokens)
    return TopicVideosResponse.from_result(result)


@router.get(
    "/content/course-topics",
    response_model=TopicListResponse,
    tags=["content"],
    operation_id="content_course_topics",
)
async def course_topics(
    user_id: Annotated[int, Depends(get_current_user_id)],
    service: Annotated[DiscoveryService, Depends(get_discovery_service)],
) -> TopicListResponse:
    return TopicListResponse(topics=await service.list_course_topics(user_id))


@router.get(
    "/content/topics",
    response_model=TopicListResponse,
    tags=["content"],
    operation_id="content_topic_suggestions",
)
async def topic_suggestions(
    service: Annotated[DiscoveryService, Depends(get_discovery_service)],
    max_topics: Annotated[int, Query(alias="max", ge=1)] = 24,
) -> TopicListResponse:
    topics = await service.get_topic_suggestions(min(max_topics, MAX_TOPIC_SUGGESTIONS))
    return TopicListResponse(topics=topics)


@router.get(
    "/videos/search",
    response_model=VideoSearchResponse,
    tags=["videos"],
    operation_id="videos_search",
)
async def search_videos(
    service: Annotated[DiscoveryService, Depends(get_discovery_service)],
    q: Annotated[str, Query(min_length=1, max_length=300)],
    max_results: Annotated[int, Query(alias="maxResults", ge=1, le=25)] = 12,
    channel_id: Annotated[str | None, Query(alias="channelId", max_length=64)] = None,
    order: SearchOrderParam | None = None,
    video_duration: Annotated[DurationBucketParam | None, Query(alias="videoDuration")] = None,
) -> VideoSearchResponse:
    query = q.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Query is required.")
    try:
        videos = await service.search_videos(
            query,
            max_results=max_results,
            channel_id=channel_id,
            order=order,
            video_duration=video_duration,
        )
    except VideoDiscoveryError as exc:
        raise _to_http_error(exc) from exc
    return VideoSearchResponse(
        query=query,
        videos=[VideoItemModel.from_video(video) for video in videos],
    )
