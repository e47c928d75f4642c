from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, cast

from video_discovery.app.repositories.common import utc_now_iso
from video_discovery.app.repositories.database import Database

PLAN_STATUS_ACTIVE = "active"


@dataclass(frozen=True)
class LearningPlanModule:
    name: str
    topics: tuple[str, ...] = ()


@dataclass(frozen=True)
class LearningPlan:
    plan_id: int
    user_id: int
    subject: str
    status: str
    modules: tuple[LearningPlanModule, ...]


class LearningPlanRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def list_active_plans(self, user_id: int) -> list[LearningPlan]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, subject, status, plan_json
                FROM user_learning_plans
                WHERE user_id = ? AND status = ?
                ORDER BY id ASC
                """,
                (user_id, PLAN_STATUS_ACTIVE),
            ).fetchall()

        return [
            LearningPlan(
                plan_id=int(row["id"]),
                user_id=int(row["user_id"]),
                subject=str(row["subject"] or ""),
                status=str(row["status"]),
                modules=_decode_modules(row["plan_json"]),
            )
            for row in rows
        ]

    def create_plan(
        self,
        *,
        user_id: int,
        subject: str,
        modules: list[LearningPlanModule],
        status: str = PLAN_STATUS_ACTIVE,
    ) -> int:
        plan_json = json.dumps(
            {
                "modules": [
                    {"name": module.name, "topics": list(module.topics)} for module in modules
                ]
            },
            ensure_ascii=True,
        )
        with self._db.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO user_learning_plans (user_id, subject, status, plan_json, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, subject, status, plan_json, utc_now_iso()),
            )
            plan_id = cursor.lastrowid
        assert plan_id is not None
        return int(plan_id)

    def set_status(self, plan_id: int, status: str) -> None:
        with self._db.connection() as conn:
            conn.execute(
                "UPDATE user_learning_plans SET status = ? WHERE id = ?",
                (status, plan_id),
            )


def _decode_modules(raw: object) -> tuple[LearningPlanModule, ...]:
    if not isinstance(raw, str):
        return ()
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return ()
    if not isinstance(parsed, dict):
        return ()

    raw_modules = cast(dict[str, Any], parsed).get("modules")
    if not isinstance(raw_modules, list):
        return ()

    modules: list[LearningPlanModule] = []
    for raw_module in cast(list[Any], raw_modules):
        if not isinstance(raw_module, dict):
            continue
        module = cast(dict[str, Any], raw_module)
        name = module.get("name")
        raw_topics = module.get("topics")
        topics: list[str] = []
        if isinstance(raw_topics, list):
            topics = [
                topic for topic in cast(list[Any], raw_topics) if isinstance(topic, str)
            ]
        modules.append(
            LearningPlanModule(
                name=name if isinstance(name, str) else "",
                topics=tuple(topics),
            )
        )
    return tuple(modules)
