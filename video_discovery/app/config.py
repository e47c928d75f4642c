from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_DATA_DIR = ".video-discovery"
DEFAULT_PIPED_API_BASES: tuple[str, ...] = (
    "https://pipedapi.kavin.rocks",
    "https://api.piped.yt",
    "https://pipedapi.leptons.xyz",
    "https://piped-api.privacy.com.de",
    "https://api.piped.private.coffee",
)
DEFAULT_INVIDIOUS_API_BASES: tuple[str, ...] = (
    "https://inv.nadeko.net",
    "https://invidious.nerdvpn.de",
    "https://vid.puffyan.us",
    "https://invidious.flokinet.to",
)
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("state.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = ("coalesce_concurrent_fetches",)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{VIDEO_DISCOVERY_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized:
        return normalized
    return None


def _parse_base_url_list(value: Any) -> tuple[str, ...]:
    raw_items: list[Any]
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError as exc:
                raise ValueError("mirror base list is not valid JSON") from exc
            if not isinstance(parsed, list):
                raise ValueError("mirror base list must be a JSON array")
            raw_items = list(parsed)
        else:
            raw_items = stripped.split(",")
    elif isinstance(value, list | tuple):
        raw_items = list(value)
    else:
        raise ValueError("mirror base list must be a list or comma-separated string")

    bases: list[str] = []
    for raw_item in raw_items:
        if not isinstance(raw_item, str):
            continue
        normalized = raw_item.strip().rstrip("/")
        if normalized and normalized not in bases:
            bases.append(normalized)
    return tuple(bases)


class AppSettings(BaseSettings):
    """
    Canonical runtime configuration for the topic video discovery service.

    Every option is read from `VIDEO_DISCOVERY_*` environment variables (or `.env`).
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDEO_DISCOVERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Core paths.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the SQLite database and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("state.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('state.db'))}",
    )

    # Provider tiers.
    youtube_api_key: str | None = Field(
        default=None,
        description="Official YouTube Data API key. When unset the official tier is skipped.",
    )
    youtube_api_base_url: str = Field(
        default="https://www.googleapis.com/youtube/v3",
        description="Official YouTube Data API base URL.",
    )
    piped_api_bases: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_PIPED_API_BASES,
        description="Piped mirror base URLs in priority order (JSON list or comma-separated).",
    )
    invidious_api_bases: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_INVIDIOUS_API_BASES,
        description="Invidious mirror base URLs in priority order (JSON list or comma-separated).",
    )
    provider_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Per-call timeout for every provider request.",
    )
    search_deadline_seconds: float = Field(
        default=90.0,
        ge=0,
        description="Overall budget for one fallback chain. 0 disables the aggregate deadline.",
    )
    provider_user_agent: str = Field(
        default="video-discovery/1.0 (educational)",
        description="User-Agent sent to mirror providers.",
    )
    official_max_results: int = Field(
        default=25,
        ge=1,
        le=50,
        description="Upper bound on maxResults requested from the official API.",
    )
    mirror_max_results: int = Field(
        default=20,
        ge=1,
        description="Maximum videos kept from a single mirror response.",
    )
    topic_suggestion_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Per-call timeout for mirror search-suggestion lookups.",
    )

    # Topic cache and discovery policy.
    cache_max_age_days: int = Field(
        default=7,
        ge=1,
        description="A cached topic is fresh while its newest record is younger than this.",
    )
    cache_min_fresh_count: int = Field(
        default=6,
        ge=1,
        description="Minimum cached records (capped by the requested limit) for freshness.",
    )
    cache_description_max_chars: int = Field(
        default=5_000,
        ge=1,
        description="Descriptions are truncated to this many characters.",
    )
    default_max_results: int = Field(
        default=12,
        ge=1,
        description="Default number of suggestions returned per topic.",
    )
    max_results_limit: int = Field(
        default=25,
        ge=1,
        description="Hard cap on suggestions returned per topic.",
    )
    search_overfetch: int = Field(
        default=10,
        ge=0,
        description="Extra results requested from providers to survive relevance filtering.",
    )
    search_qualifiers: str = Field(
        default="course lecture tutorial",
        description="Words appended to a topic to bias provider search toward teaching content.",
    )
    coalesce_concurrent_fetches: bool = Field(
        default=True,
        description="Share one in-flight live fetch between concurrent requests for a cold topic.",
    )

    # Logging.
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for log files. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    @field_validator("piped_api_bases", "invidious_api_bases", mode="before")
    @classmethod
    def _normalize_base_lists(cls, value: Any) -> tuple[str, ...]:
        return _parse_base_url_list(value)

    @field_validator("youtube_api_base_url", mode="before")
    @classmethod
    def _normalize_api_base_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_DISCOVERY_YOUTUBE_API_BASE_URL must be a string.")
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("VIDEO_DISCOVERY_YOUTUBE_API_BASE_URL must not be empty.")
        return normalized

    @field_validator("search_qualifiers", mode="before")
    @classmethod
    def _normalize_qualifiers(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEO_DISCOVERY_SEARCH_QUALIFIERS must be a string.")
        return " ".join(value.split())

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("youtube_api_key", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
