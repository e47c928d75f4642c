from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS topic_video_suggestions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic_normalized TEXT NOT NULL,
    external_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    thumbnail_url TEXT NULL,
    content_url TEXT NOT NULL,
    duration_seconds INTEGER NOT NULL DEFAULT 0,
    channel_title TEXT NULL,
    source TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (topic_normalized, external_id)
);

CREATE INDEX IF NOT EXISTS idx_topic_video_suggestions_topic_created
ON topic_video_suggestions(topic_normalized, created_at DESC);

CREATE TABLE IF NOT EXISTS user_learning_plans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    subject TEXT NOT NULL,
    status TEXT NOT NULL,
    plan_json TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_user_learning_plans_user_status
ON user_learning_plans(user_id, status);
"""


class Database:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA_SQL)
