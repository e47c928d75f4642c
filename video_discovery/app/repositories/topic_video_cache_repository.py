from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

from video_discovery.app.repositories.common import parse_utc_datetime, utc_now_iso
from video_discovery.app.repositories.database import Database

_EPOCH = datetime.fromtimestamp(0, tz=UTC)


@dataclass(frozen=True)
class TopicVideoRecord:
    topic_normalized: str
    external_id: str
    title: str
    description: str
    thumbnail_url: str | None
    content_url: str
    duration_seconds: int
    channel_title: str | None
    source: str
    created_at: datetime


class TopicVideoCacheRepository:
    """Rows of `topic_video_suggestions`, keyed by (topic_normalized, external_id).

    This is the only place where column names are spelled out; callers only ever
    see `TopicVideoRecord`.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def list_for_topic(self, topic_normalized: str, *, limit: int) -> list[TopicVideoRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT
                    topic_normalized,
                    external_id,
                    title,
                    description,
                    thumbnail_url,
                    content_url,
                    duration_seconds,
                    channel_title,
                    source,
                    created_at
                FROM topic_video_suggestions
                WHERE topic_normalized = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (topic_normalized, max(1, limit)),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def count_for_topic(self, topic_normalized: str) -> int:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM topic_video_suggestions WHERE topic_normalized = ?",
                (topic_normalized,),
            ).fetchone()
        if row is None:
            return 0
        return int(row["total"])

    def upsert_video(
        self,
        *,
        topic_normalized: str,
        external_id: str,
        title: str,
        description: str,
        thumbnail_url: str | None,
        content_url: str,
        duration_seconds: int,
        channel_title: str | None,
        source: str,
        refreshed_at: str | None = None,
    ) -> None:
        # On conflict the key, content_url and source keep their first-seen values.
        timestamp = refreshed_at or utc_now_iso()
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO topic_video_suggestions
                (
                    topic_normalized,
                    external_id,
                    title,
                    description,
                    thumbnail_url,
                    content_url,
                    duration_seconds,
                    channel_title,
                    source,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(topic_normalized, external_id) DO UPDATE SET
                    title = excluded.title,
                    description = excluded.description,
                    thumbnail_url = excluded.thumbnail_url,
                    duration_seconds = excluded.duration_seconds,
                    channel_title = excluded.channel_title,
                    created_at = excluded.created_at
                """,
                (
                    topic_normalized,
                    external_id,
                    title,
                    description,
                    thumbnail_url,
                    content_url,
                    max(0, int(duration_seconds)),
                    channel_title,
                    source,
                    timestamp,
                ),
            )


def _row_to_record(row: sqlite3.Row) -> TopicVideoRecord:
    return TopicVideoRecord(
        topic_normalized=str(row["topic_normalized"]),
        external_id=str(row["external_id"]),
        title=str(row["title"]),
        description=str(row["description"] or ""),
        thumbnail_url=_to_optional_str(row["thumbnail_url"]),
        content_url=str(row["content_url"]),
        duration_seconds=max(0, int(row["duration_seconds"] or 0)),
        channel_title=_to_optional_str(row["channel_title"]),
        source=str(row["source"]),
        created_at=parse_utc_datetime(row["created_at"]) or _EPOCH,
    )


def _to_optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None
