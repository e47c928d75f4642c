from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog
from structlog.typing import EventDict, Processor

from video_discovery.app.config import AppSettings

LOG_FILE_NAME = "video-discovery.log"
ROOT_LOGGER_NAME = "video_discovery"

# httpx logs every provider request at INFO; a fallback walk over mirrors floods the console.
_LIBRARY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def configure_application_logging(settings: AppSettings) -> Path:
    """Route every `video_discovery.*` logger to the console and a JSON lines file.

    Records carry the structlog context bound per request (`http_request_id`,
    `user_id`, ...) plus an `area` field naming the subsystem that logged them.
    The file always receives DEBUG; the console follows `settings.log_level`.
    Rotation of the file is left to the host.
    """
    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME
    console_level = _console_level(settings.log_level)

    _configure_structlog()

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(logging.DEBUG)
    root.propagate = False
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(log_file, console_level):
        root.addHandler(handler)

    library_level = max(console_level, logging.WARNING)
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    root.info(
        "logging configured console_level=%s library_level=%s path=%s",
        logging.getLevelName(console_level),
        logging.getLevelName(library_level),
        log_file,
    )
    return log_file


def _console_level(raw_level: str) -> int:
    mapping = logging.getLevelNamesMapping()
    return mapping.get(raw_level.strip().upper(), logging.INFO)


def _build_handlers(log_file: Path, console_level: int) -> list[logging.Handler]:
    console = logging.StreamHandler(stream=sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(
        _formatter(structlog.dev.ConsoleRenderer(colors=_wants_color(sys.stdout)))
    )

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        _formatter(
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
            with_source=True,
        )
    )
    return [console, file_handler]


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _add_area,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _formatter(
    *renderers: Processor,
    with_source: bool = False,
) -> structlog.stdlib.ProcessorFormatter:
    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_area,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
    ]
    processors: list[Processor] = [_add_source_location] if with_source else []
    processors.append(structlog.stdlib.ProcessorFormatter.remove_processors_meta)
    processors.extend(renderers)
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=processors,
    )


def _add_area(
    _logger: logging.Logger | None,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    name = event_dict.get("logger")
    if isinstance(name, str) and name.startswith(f"{ROOT_LOGGER_NAME}."):
        event_dict.setdefault("area", name.split(".", 1)[1])
    return event_dict


def _add_source_location(
    _logger: logging.Logger | None,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        event_dict["source"] = f"{record.module}:{record.funcName}:{record.lineno}"
    return event_dict


def _wants_color(stream: TextIO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, OSError, ValueError):
        return False
