from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

from video_discovery.app.services.durations import coerce_duration_seconds

LOGGER = logging.getLogger("video_discovery.normalizer")

WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"
THUMBNAIL_URL_TEMPLATE = "https://img.youtube.com/vi/{video_id}/mqdefault.jpg"
UNTITLED = "Untitled"
DEFAULT_DESCRIPTION_MAX_CHARS = 5_000
NON_VIDEO_ENTRY_TYPES: frozenset[str] = frozenset({"channel", "playlist"})
_WATCH_ID_PATTERN = re.compile(r"[?&]v=([^&#]+)")
_OFFICIAL_THUMBNAIL_PREFERENCE: tuple[str, ...] = ("high", "medium", "default")


@dataclass(frozen=True)
class VideoItem:
    external_id: str
    title: str
    description: str
    content_url: str
    thumbnail_url: str
    duration_seconds: int
    channel_title: str
    published_at: str


class VideoNormalizationError(ValueError):
    pass


def watch_url(video_id: str) -> str:
    return WATCH_URL_TEMPLATE.format(video_id=video_id)


def default_thumbnail_url(video_id: str) -> str:
    return THUMBNAIL_URL_TEMPLATE.format(video_id=video_id)


def normalize_official_search_item(
    raw_item: object,
    *,
    durations_by_id: Mapping[str, int],
    description_max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
) -> VideoItem:
    item = _require_dict(raw_item)
    video_id = _coerce_text(_as_dict(item.get("id")).get("videoId")).strip()
    if not video_id:
        raise VideoNormalizationError("official search item has no id.videoId")

    snippet = _as_dict(item.get("snippet"))
    thumbnails = _as_dict(snippet.get("thumbnails"))
    thumbnail_url = ""
    for quality in _OFFICIAL_THUMBNAIL_PREFERENCE:
        candidate = _coerce_text(_as_dict(thumbnails.get(quality)).get("url")).strip()
        if candidate:
            thumbnail_url = candidate
            break

    return _build_video(
        video_id=video_id,
        title=snippet.get("title"),
        description=snippet.get("description"),
        thumbnail_url=thumbnail_url,
        duration_seconds=durations_by_id.get(video_id, 0),
        channel_title=snippet.get("channelTitle"),
        published_at=snippet.get("publishedAt"),
        description_max_chars=description_max_chars,
    )


def normalize_piped_item(
    raw_item: object,
    *,
    description_max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
) -> VideoItem:
    item = _require_dict(raw_item)
    _reject_non_video_entry(item)

    video_id = _coerce_text(item.get("videoId")).strip()
    if not video_id:
        url_match = _WATCH_ID_PATTERN.search(_coerce_text(item.get("url")))
        if url_match is not None:
            video_id = url_match.group(1).strip()
    if not video_id:
        raise VideoNormalizationError("piped entry has neither videoId nor a watch url")

    raw_duration = item.get("duration")
    if raw_duration is None:
        raw_duration = item.get("lengthSeconds")

    return _build_video(
        video_id=video_id,
        title=item.get("title"),
        description=_first_present(item, "description", "shortDescription"),
        thumbnail_url=_coerce_text(_first_present(item, "thumbnailUrl", "thumbnail")).strip(),
        duration_seconds=coerce_duration_seconds(raw_duration),
        channel_title=_first_present(item, "uploaderName", "uploader", "author"),
        published_at=_first_present(item, "uploadedDate", "uploaded"),
        description_max_chars=description_max_chars,
    )


def normalize_invidious_item(
    raw_item: object,
    *,
    description_max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
) -> VideoItem:
    item = _require_dict(raw_item)
    _reject_non_video_entry(item)

    video_id = _coerce_text(item.get("videoId")).strip()
    if not video_id:
        raise VideoNormalizationError("invidious entry has no videoId")

    return _build_video(
        video_id=video_id,
        title=item.get("title"),
        description=_first_present(item, "description", "descriptionHtml"),
        thumbnail_url=_pick_invidious_thumbnail(item.get("videoThumbnails")),
        duration_seconds=coerce_duration_seconds(item.get("lengthSeconds")),
        channel_title=item.get("author"),
        published_at=_first_present(item, "publishedText", "published"),
        description_max_chars=description_max_chars,
    )


def extract_piped_entries(payload: object) -> list[Any]:
    if isinstance(payload, list):
        return list(cast(list[Any], payload))
    body = _as_dict(payload)
    for key in ("items", "relatedStreams"):
        entries = body.get(key)
        if isinstance(entries, list):
            return list(cast(list[Any], entries))
    return []


def extract_invidious_entries(payload: object) -> list[Any]:
    if isinstance(payload, list):
        return list(cast(list[Any], payload))
    return []


def normalize_entries(
    entries: list[Any],
    normalize: Callable[[object], VideoItem],
    *,
    tier: str,
    limit: int,
) -> list[VideoItem]:
    """Normalize a batch, dropping malformed entries and repeated ids."""
    videos: list[VideoItem] = []
    seen_ids: set[str] = set()
    dropped = 0
    for entry in entries:
        if len(videos) >= limit:
            break
        try:
            video = normalize(entry)
        except (VideoNormalizationError, ValueError, TypeError) as exc:
            dropped += 1
            LOGGER.debug("video normalizer drop tier=%s reason=%s", tier, exc)
            continue
        if video.external_id in seen_ids:
            continue
        seen_ids.add(video.external_id)
        videos.append(video)

    if dropped:
        LOGGER.debug(
            "video normalizer batch tier=%s kept=%s dropped=%s", tier, len(videos), dropped
        )
    return videos


def _build_video(
    *,
    video_id: str,
    title: object,
    description: object,
    thumbnail_url: str,
    duration_seconds: int,
    channel_title: object,
    published_at: object,
    description_max_chars: int,
) -> VideoItem:
    normalized_title = _coerce_text(title).strip() or UNTITLED
    return VideoItem(
        external_id=video_id,
        title=normalized_title,
        description=_coerce_text(description)[: max(0, description_max_chars)],
        content_url=watch_url(video_id),
        thumbnail_url=thumbnail_url or default_thumbnail_url(video_id),
        duration_seconds=max(0, duration_seconds),
        channel_title=_coerce_text(channel_title).strip(),
        published_at=_coerce_text(published_at).strip(),
    )


def _reject_non_video_entry(item: dict[str, Any]) -> None:
    entry_type = item.get("type")
    if isinstance(entry_type, str) and entry_type.strip().lower() in NON_VIDEO_ENTRY_TYPES:
        raise VideoNormalizationError(f"entry is a {entry_type.strip().lower()}, not a video")


def _pick_invidious_thumbnail(raw_thumbnails: object) -> str:
    if not isinstance(raw_thumbnails, list) or not raw_thumbnails:
        return ""
    thumbnails = [_as_dict(thumb) for thumb in cast(list[Any], raw_thumbnails)]
    for thumbnail in thumbnails:
        if thumbnail.get("quality") == "medium":
            return _coerce_text(thumbnail.get("url")).strip()
    return _coerce_text(thumbnails[0].get("url")).strip()


def _first_present(item: dict[str, Any], *keys: str) -> object:
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return value
    return None


def _coerce_text(value: object) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, int | float):
        return str(value)
    return ""


def _require_dict(value: object) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise VideoNormalizationError(f"entry is {type(value).__name__}, not an object")
    return _as_dict(value)


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}
