from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from video_discovery.app.services.discovery_service import (
    TopicSuggestionsResult,
    VideoSuggestion,
)
from video_discovery.app.services.video_normalizer import VideoItem

SearchOrderParam = Literal["relevance", "date", "viewCount", "rating"]
DurationBucketParam = Literal["short", "medium", "long"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class VideoSuggestionModel(_CamelModel):
    id: str
    youtube_id: str
    title: str
    thumbnail: str
    duration: str
    duration_seconds: int
    channel_title: str | None = None
    content_url: str

    @classmethod
    def from_suggestion(cls, suggestion: VideoSuggestion) -> VideoSuggestionModel:
        return cls(
            id=suggestion.external_id,
            youtube_id=suggestion.external_id,
            title=suggestion.title,
            thumbnail=suggestion.thumbnail_url,
            duration=suggestion.duration,
            duration_seconds=suggestion.duration_seconds,
            channel_title=suggestion.channel_title,
            content_url=suggestion.content_url,
        )


class TopicVideosResponse(_CamelModel):
    topic: str
    videos: list[VideoSuggestionModel]
    from_cache: bool = False

    @classmethod
    def from_result(cls, result: TopicSuggestionsResult) -> TopicVideosResponse:
        return cls(
            topic=result.topic,
            videos=[VideoSuggestionModel.from_suggestion(video) for video in result.videos],
            from_cache=result.from_cache,
        )


class VideoItemModel(_CamelModel):
    external_id: str
    title: str
    description: str
    content_url: str
    thumbnail_url: str
    duration_seconds: int
    channel_title: str
    published_at: str

    @classmethod
    def from_video(cls, video: VideoItem) -> VideoItemModel:
        return cls(
            external_id=video.external_id,
            title=video.title,
            description=video.description,
            content_url=video.content_url,
            thumbnail_url=video.thumbnail_url,
            duration_seconds=video.duration_seconds,
            channel_title=video.channel_title,
            published_at=video.published_at,
        )


class VideoSearchResponse(_CamelModel):
    query: str
    videos: list[VideoItemModel]


class TopicListResponse(_CamelModel):
    topics: list[str]
