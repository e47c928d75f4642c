from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

import pytest

from video_discovery.app.repositories.database import Database
from video_discovery.app.repositories.learning_plan_repository import (
    LearningPlanModule,
    LearningPlanRepository,
)
from video_discovery.app.repositories.topic_video_cache_repository import (
    TopicVideoCacheRepository,
)


def _upsert(
    repo: TopicVideoCacheRepository,
    external_id: str,
    *,
    title: str = "Title",
    source: str = "piped",
    content_url: str | None = None,
    refreshed_at: str | None = None,
) -> None:
    repo.upsert_video(
        topic_normalized="machine learning",
        external_id=external_id,
        title=title,
        description="desc",
        thumbnail_url=f"https://img.youtube.com/vi/{external_id}/mqdefault.jpg",
        content_url=content_url or f"https://www.youtube.com/watch?v={external_id}",
        duration_seconds=600,
        channel_title="Channel",
        source=source,
        refreshed_at=refreshed_at,
    )


def test_database_initialize_creates_tables(tmp_path: Path) -> None:
    db = Database(tmp_path / "nested" / "state.db")
    db.initialize()
    db.initialize()

    with db.connection() as conn:
        tables = {
            str(row["name"])
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
    assert {"topic_video_suggestions", "user_learning_plans"} <= tables
    assert db.path.exists()


def test_topic_video_upsert_is_idempotent_and_keeps_first_source(tmp_path: Path) -> None:
    db = Database(tmp_path / "state.db")
    db.initialize()
    repo = TopicVideoCacheRepository(db)

    _upsert(repo, "vid_1", title="Old title", source="piped")
    _upsert(
        repo,
        "vid_1",
        title="New title",
        source="invidious",
        content_url="https://example.test/other",
    )

    records = repo.list_for_topic("machine learning", limit=10)
    assert repo.count_for_topic("machine learning") == 1
    assert len(records) == 1
    assert records[0].title == "New title"
    assert records[0].source == "piped"
    assert records[0].content_url == "https://www.youtube.com/watch?v=vid_1"
    assert records[0].duration_seconds == 600
    assert records[0].created_at.tzinfo is not None


def test_topic_video_list_orders_newest_first_and_limits(tmp_path: Path) -> None:
    db = Database(tmp_path / "state.db")
    db.initialize()
    repo = TopicVideoCacheRepository(db)

    _upsert(repo, "oldest", refreshed_at="2026-01-01T00:00:00+00:00")
    _upsert(repo, "newest", refreshed_at="2026-03-01T00:00:00+00:00")
    _upsert(repo, "middle", refreshed_at="2026-02-01T00:00:00+00:00")

    records = repo.list_for_topic("machine learning", limit=2)

    assert [record.external_id for record in records] == ["newest", "middle"]
    assert records[0].created_at == datetime(2026, 3, 1, tzinfo=UTC)
    assert repo.list_for_topic("other topic", limit=5) == []


def test_topic_video_same_video_under_two_topics(tmp_path: Path) -> None:
    db = Database(tmp_path / "state.db")
    db.initialize()
    repo = TopicVideoCacheRepository(db)

    _upsert(repo, "shared")
    repo.upsert_video(
        topic_normalized="deep learning",
        external_id="shared",
        title="Shared",
        description="",
        thumbnail_url=None,
        content_url="https://www.youtube.com/watch?v=shared",
        duration_seconds=-4,
        channel_title=None,
        source="youtube_api",
    )

    deep = repo.list_for_topic("deep learning", limit=5)
    assert repo.count_for_topic("machine learning") == 1
    assert len(deep) == 1
    assert deep[0].thumbnail_url is None
    assert deep[0].channel_title is None
    assert deep[0].duration_seconds == 0


def test_topic_video_table_enforces_unique_key(tmp_path: Path) -> None:
    db = Database(tmp_path / "state.db")
    db.initialize()

    with db.connection() as conn:
        conn.execute(
            """
            INSERT INTO topic_video_suggestions
            (topic_normalized, external_id, title, description, content_url, source, created_at)
            VALUES ('python', 'x', 't', '', 'u', 'piped', '2026-01-01T00:00:00+00:00')
            """
        )
    with pytest.raises(sqlite3.IntegrityError), db.connection() as conn:
        conn.execute(
            """
            INSERT INTO topic_video_suggestions
            (topic_normalized, external_id, title, description, content_url, source, created_at)
            VALUES ('python', 'x', 't2', '', 'u', 'piped', '2026-01-02T00:00:00+00:00')
            """
        )


def test_learning_plan_repository_round_trip(tmp_path: Path) -> None:
    db = Database(tmp_path / "state.db")
    db.initialize()
    repo = LearningPlanRepository(db)

    plan_id = repo.create_plan(
        user_id=11,
        subject="Web Development",
        modules=[
            LearningPlanModule(name="React Basics", topics=("Hooks", "JSX")),
            LearningPlanModule(name="CSS"),
        ],
    )
    repo.create_plan(user_id=12, subject="Chemistry", modules=[])

    plans = repo.list_active_plans(11)
    assert len(plans) == 1
    assert plans[0].plan_id == plan_id
    assert plans[0].subject == "Web Development"
    assert plans[0].modules == (
        LearningPlanModule(name="React Basics", topics=("Hooks", "JSX")),
        LearningPlanModule(name="CSS", topics=()),
    )

    repo.set_status(plan_id, "completed")
    assert repo.list_active_plans(11) == []


def test_learning_plan_repository_tolerates_malformed_plan_json(tmp_path: Path) -> None:
    db = Database(tmp_path / "state.db")
    db.initialize()
    with db.connection() as conn:
        conn.execute(
            """
            INSERT INTO user_learning_plans (user_id, subject, status, plan_json, created_at)
            VALUES (3, 'Physics', 'active', 'not json', '2026-01-01T00:00:00+00:00')
            """
        )

    plans = LearningPlanRepository(db).list_active_plans(3)

    assert len(plans) == 1
    assert plans[0].subject == "Physics"
    assert plans[0].modules == ()
