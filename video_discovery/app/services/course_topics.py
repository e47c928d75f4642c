from __future__ import annotations

import logging
from typing import Protocol

from video_discovery.app.repositories.learning_plan_repository import LearningPlan

LOGGER = logging.getLogger("video_discovery.course_topics")


class LearningPlanSource(Protocol):
    def list_active_plans(self, user_id: int) -> list[LearningPlan]:
        ...


def normalize_topic(topic: str) -> str:
    """Trim, lowercase and collapse whitespace. An empty result means "no topic"."""
    return " ".join(topic.split()).lower()


class CourseTopicGate:
    """Decides which topics a user may request videos for.

    The allowed set is rebuilt from the user's active learning plans on every
    check, so a plan change is visible immediately.
    """

    def __init__(self, plan_source: LearningPlanSource) -> None:
        self._plan_source = plan_source

    def compute_allowed_topics(self, user_id: int) -> set[str]:
        allowed: set[str] = set()
        for plan in self._plan_source.list_active_plans(user_id):
            _add_topic(allowed, plan.subject)
            for module in plan.modules:
                _add_topic(allowed, module.name)
                for module_topic in module.topics:
                    _add_topic(allowed, module_topic)
        return allowed

    def authorize(self, user_id: int, topic: str) -> bool:
        normalized = normalize_topic(topic)
        if not normalized:
            return False
        allowed = self.compute_allowed_topics(user_id)
        authorized = topic_matches_allowed(normalized, allowed)
        LOGGER.debug(
            "course topic gate user_id=%s topic=%s allowed_topics=%s authorized=%s",
            user_id,
            normalized,
            len(allowed),
            authorized,
        )
        return authorized


def topic_matches_allowed(normalized_topic: str, allowed: set[str]) -> bool:
    # Substring match in both directions: "react hooks" is allowed by "react",
    # and "react" is allowed by "react hooks".
    if not normalized_topic:
        return False
    if normalized_topic in allowed:
        return True
    return any(
        normalized_topic in allowed_topic or allowed_topic in normalized_topic
        for allowed_topic in allowed
    )


def _add_topic(allowed: set[str], raw_topic: str) -> None:
    normalized = normalize_topic(raw_topic)
    if normalized:
        allowed.add(normalized)
