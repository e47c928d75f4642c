from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict
from typing import Any

import uvicorn

from video_discovery.app.config import AppSettings, load_settings
from video_discovery.app.dependencies import build_discovery_service
from video_discovery.app.logging_config import configure_application_logging
from video_discovery.app.repositories.database import Database
from video_discovery.app.repositories.learning_plan_repository import (
    LearningPlanModule,
    LearningPlanRepository,
)
from video_discovery.app.services.discovery_errors import VideoDiscoveryError


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Query the topic video discovery engine from the command line.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    search_parser = subparsers.add_parser("search", help="Raw provider search (no cache, no gate).")
    search_parser.add_argument("query", type=str)
    search_parser.add_argument("--max-results", type=int, default=12)

    discover_parser = subparsers.add_parser(
        "discover",
        help="Authorized, cached suggestions for one of a user's course topics.",
    )
    discover_parser.add_argument("--user-id", type=int, required=True)
    discover_parser.add_argument("topic", type=str)
    discover_parser.add_argument("--max-results", type=int, default=None)

    plan_parser = subparsers.add_parser("add-plan", help="Store an active learning plan.")
    plan_parser.add_argument("--user-id", type=int, required=True)
    plan_parser.add_argument("--subject", type=str, required=True)
    plan_parser.add_argument(
        "--module",
        action="append",
        default=[],
        metavar="NAME[:topic1,topic2]",
        help="Module name with optional comma-separated topics. Repeatable.",
    )

    topics_parser = subparsers.add_parser("course-topics", help="List a user's allowed topics.")
    topics_parser.add_argument("--user-id", type=int, required=True)

    suggestions_parser = subparsers.add_parser("suggest-topics", help="Popular topic ideas.")
    suggestions_parser.add_argument("--max", type=int, default=24)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def _parse_module(raw_value: str) -> LearningPlanModule:
    name, _, raw_topics = raw_value.partition(":")
    topics = tuple(topic.strip() for topic in raw_topics.split(",") if topic.strip())
    return LearningPlanModule(name=name.strip(), topics=topics)


async def _run(args: argparse.Namespace, settings: AppSettings) -> Any:
    database = Database(settings.db_path)
    database.initialize()
    service = build_discovery_service(settings, database)

    if args.command == "search":
        videos = await service.search_videos(args.query, max_results=args.max_results)
        return [asdict(video) for video in videos]
    if args.command == "discover":
        result = await service.get_suggestions_for_topic(args.user_id, args.topic, args.max_results)
        return {
            "topic": result.topic,
            "from_cache": result.from_cache,
            "source": result.source,
            "videos": [
                {**asdict(video), "duration": video.duration} for video in result.videos
            ],
        }
    if args.command == "add-plan":
        plan_id = LearningPlanRepository(database).create_plan(
            user_id=args.user_id,
            subject=args.subject,
            modules=[_parse_module(raw_module) for raw_module in args.module],
        )
        return {"plan_id": plan_id}
    if args.command == "course-topics":
        return {"topics": await service.list_course_topics(args.user_id)}
    if args.command == "suggest-topics":
        return {"topics": await service.get_topic_suggestions(args.max)}
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.command == "serve":
        # The app configures logging itself during startup.
        uvicorn.run("video_discovery.app.main:app", host=args.host, port=args.port)
        return 0

    settings = load_settings()
    configure_application_logging(settings)
    try:
        output = asyncio.run(_run(args, settings))
    except VideoDiscoveryError as exc:
        print(json.dumps({"error": str(exc), "status_code": exc.status_code}), file=sys.stderr)
        return 1
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
