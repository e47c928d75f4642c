from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from structlog.contextvars import bind_contextvars, reset_contextvars

from video_discovery.app.api.routes import router
from video_discovery.app.dependencies import get_database, get_settings
from video_discovery.app.logging_config import configure_application_logging

LOGGER = logging.getLogger("video_discovery.http")


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_application_logging(settings)
    get_database()
    LOGGER.info(
        "video discovery started official_tier=%s piped_mirrors=%s invidious_mirrors=%s",
        settings.youtube_api_key is not None,
        len(settings.piped_api_bases),
        len(settings.invidious_api_bases),
    )
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Topic Video Discovery API", version="0.1.0", lifespan=app_lifespan)

    async def request_context_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        incoming_request_id = request.headers.get("X-Request-ID")
        request_id = (
            incoming_request_id.strip()
            if isinstance(incoming_request_id, str) and incoming_request_id.strip()
            else str(uuid4())
        )
        context_tokens = bind_contextvars(
            http_request_id=request_id,
            http_method=request.method,
            http_path=request.url.path,
        )
        started_at = perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            LOGGER.exception(
                "http request error duration_ms=%s",
                int((perf_counter() - started_at) * 1000),
            )
            raise
        else:
            response.headers["X-Request-ID"] = request_id
            LOGGER.info(
                "http request finish status=%s duration_ms=%s",
                response.status_code,
                int((perf_counter() - started_at) * 1000),
            )
            return response
        finally:
            reset_contextvars(**context_tokens)

    app.middleware("http")(request_context_middleware)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


app = create_app()
