from __future__ import annotations

from video_discovery.app.services.video_normalizer import VideoItem

MIN_KEYWORD_LENGTH = 2


def topic_keywords(topic: str) -> list[str]:
    return [word for word in topic.lower().split() if len(word) >= MIN_KEYWORD_LENGTH]


def is_relevant_to_topic(title: str, description: str, topic: str) -> bool:
    keywords = topic_keywords(topic)
    # A topic with no usable keyword cannot discriminate, so everything passes.
    if not keywords:
        return True
    text = f"{title.lower()} {description.lower()}"
    return any(keyword in text for keyword in keywords)


def is_relevant(video: VideoItem, topic: str) -> bool:
    return is_relevant_to_topic(video.title, video.description, topic)


def filter_relevant(videos: list[VideoItem], topic: str) -> list[VideoItem]:
    return [video for video in videos if is_relevant(video, topic)]
