from __future__ import annotations

import pytest

from video_discovery.app.repositories.database import Database
from video_discovery.app.repositories.learning_plan_repository import (
    LearningPlan,
    LearningPlanModule,
    LearningPlanRepository,
)
from video_discovery.app.services.course_topics import (
    CourseTopicGate,
    normalize_topic,
    topic_matches_allowed,
)
from video_discovery.app.services.relevance import (
    filter_relevant,
    is_relevant_to_topic,
    topic_keywords,
)
from video_discovery.app.services.video_normalizer import VideoItem


class _FakePlanSource:
    def __init__(self, plans: list[LearningPlan]) -> None:
        self.plans = plans
        self.calls = 0

    def list_active_plans(self, user_id: int) -> list[LearningPlan]:
        self.calls += 1
        return [plan for plan in self.plans if plan.user_id == user_id]


def _plan(user_id: int, subject: str, *modules: LearningPlanModule) -> LearningPlan:
    return LearningPlan(
        plan_id=1,
        user_id=user_id,
        subject=subject,
        status="active",
        modules=modules,
    )


def _video(title: str, description: str = "") -> VideoItem:
    return VideoItem(
        external_id=title.lower().replace(" ", "_"),
        title=title,
        description=description,
        content_url="https://www.youtube.com/watch?v=x",
        thumbnail_url="https://img.youtube.com/vi/x/mqdefault.jpg",
        duration_seconds=0,
        channel_title="",
        published_at="",
    )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("  Machine   Learning ", "machine learning"),
        ("Python", "python"),
        ("web\tdevelopment\n", "web development"),
        ("   ", ""),
        ("", ""),
    ],
)
def test_normalize_topic(raw: str, expected: str) -> None:
    assert normalize_topic(raw) == expected
    assert normalize_topic(normalize_topic(raw)) == normalize_topic(raw)


def test_compute_allowed_topics_unions_subject_modules_and_topics() -> None:
    source = _FakePlanSource(
        [
            _plan(
                7,
                " Web Development ",
                LearningPlanModule(name="React Basics", topics=("Hooks", "  JSX ", "")),
                LearningPlanModule(name="", topics=("CSS Grid",)),
            ),
            _plan(7, "Python"),
            _plan(8, "Chemistry"),
        ]
    )
    gate = CourseTopicGate(source)

    assert gate.compute_allowed_topics(7) == {
        "web development",
        "react basics",
        "hooks",
        "jsx",
        "css grid",
        "python",
    }


def test_authorize_matches_exact_superstring_and_substring() -> None:
    source = _FakePlanSource([_plan(1, "Python", LearningPlanModule(name="Web Development"))])
    gate = CourseTopicGate(source)

    assert gate.authorize(1, "Python") is True
    assert gate.authorize(1, "python basics") is True
    assert gate.authorize(1, "web") is True
    assert gate.authorize(1, "java") is False
    assert gate.authorize(1, "   ") is False
    assert gate.authorize(2, "python") is False


def test_authorize_recomputes_allowed_topics_every_time() -> None:
    source = _FakePlanSource([])
    gate = CourseTopicGate(source)

    assert gate.authorize(3, "rust") is False
    source.plans.append(_plan(3, "Rust"))
    assert gate.authorize(3, "rust") is True
    assert source.calls == 2


def test_topic_matches_allowed_rejects_empty_topic() -> None:
    assert topic_matches_allowed("", {"python"}) is False
    assert topic_matches_allowed("react hooks", {"react"}) is True


def test_gate_reads_only_active_plans_from_repository(database: Database) -> None:
    repository = LearningPlanRepository(database)
    repository.create_plan(
        user_id=5,
        subject="Statistics",
        modules=[LearningPlanModule(name="Probability", topics=("Bayes theorem",))],
    )
    archived_id = repository.create_plan(user_id=5, subject="Astronomy", modules=[])
    repository.set_status(archived_id, "archived")

    gate = CourseTopicGate(repository)

    assert gate.compute_allowed_topics(5) == {"statistics", "probability", "bayes theorem"}
    assert gate.authorize(5, "astronomy") is False


def test_topic_keywords_drop_single_characters() -> None:
    assert topic_keywords("C programming a b") == ["programming"]
    assert topic_keywords("a b c") == []


def test_relevance_matches_title_or_description() -> None:
    assert is_relevant_to_topic("Intro to MACHINE vision", "", "Machine Learning") is True
    assert is_relevant_to_topic("Cooking", "deep learning recipes", "Machine Learning") is True
    assert is_relevant_to_topic("Cooking pasta", "tomato sauce", "Machine Learning") is False
    assert is_relevant_to_topic("Anything", "", "a") is True


def test_filter_relevant_keeps_only_videos_containing_a_keyword() -> None:
    topic = "graph algorithms"
    videos = [
        _video("Graph traversal"),
        _video("Sorting", "classic algorithms explained"),
        _video("Guitar lesson", "chords"),
    ]

    kept = filter_relevant(videos, topic)

    assert [video.title for video in kept] == ["Graph traversal", "Sorting"]
    for video in kept:
        text = f"{video.title} {video.description}".lower()
        assert any(keyword in text for keyword in topic_keywords(topic))
