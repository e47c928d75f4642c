from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Literal, cast

import httpx

from video_discovery.app.services.durations import parse_iso8601_duration
from video_discovery.app.services.video_normalizer import (
    DEFAULT_DESCRIPTION_MAX_CHARS,
    VideoItem,
    extract_invidious_entries,
    extract_piped_entries,
    normalize_entries,
    normalize_invidious_item,
    normalize_official_search_item,
    normalize_piped_item,
)

LOGGER = logging.getLogger("video_discovery.providers")

TIER_OFFICIAL = "youtube_api"
TIER_PIPED = "piped"
TIER_INVIDIOUS = "invidious"

ProviderTier = Literal["youtube_api", "piped", "invidious"]
SearchOrder = Literal["relevance", "date", "viewCount", "rating"]
DurationBucket = Literal["short", "medium", "long"]

DEFAULT_TIMEOUT_SECONDS = 15.0


class ProviderFailure(Exception):
    """One provider call did not produce a usable response.

    Always recovered by the caller; it never leaves the search layer.
    """

    def __init__(self, message: str, *, tier: str, endpoint: str, reason: str) -> None:
        super().__init__(message)
        self.tier = tier
        self.endpoint = endpoint
        self.reason = reason


@dataclass(frozen=True)
class ProviderEndpoint:
    tier: ProviderTier
    base_url: str


@dataclass(frozen=True)
class SearchOptions:
    max_results: int = 12
    channel_id: str | None = None
    order: SearchOrder | None = None
    video_duration: DurationBucket | None = None


class ProviderSearchClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        api_base_url: str = "https://www.googleapis.com/youtube/v3",
        user_agent: str = "video-discovery/1.0 (educational)",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        official_max_results: int = 25,
        mirror_max_results: int = 20,
        description_max_chars: int = DEFAULT_DESCRIPTION_MAX_CHARS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_base_url = api_base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout_seconds = max(0.1, timeout_seconds)
        self._official_max_results = max(1, official_max_results)
        self._mirror_max_results = max(1, mirror_max_results)
        self._description_max_chars = description_max_chars
        self._transport = transport

    @property
    def official_configured(self) -> bool:
        return self._api_key is not None

    @property
    def official_endpoint(self) -> ProviderEndpoint:
        return ProviderEndpoint(tier=TIER_OFFICIAL, base_url=self._api_base_url)

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    async def search(
        self,
        endpoint: ProviderEndpoint,
        query: str,
        options: SearchOptions,
        *,
        timeout_seconds: float | None = None,
    ) -> list[VideoItem]:
        """Run one query against one endpoint.

        Returns an empty list when the provider answered but matched nothing;
        raises `ProviderFailure` for timeouts, bad statuses and unusable bodies.
        """
        timeout = self._effective_timeout(timeout_seconds)
        if endpoint.tier == TIER_OFFICIAL:
            return await self._search_official(endpoint, query, options, timeout)
        if endpoint.tier == TIER_PIPED:
            return await self._search_piped(endpoint, query, options, timeout)
        if endpoint.tier == TIER_INVIDIOUS:
            return await self._search_invidious(endpoint, query, options, timeout)
        raise ValueError(f"Unsupported provider tier: {endpoint.tier}")

    async def fetch_search_suggestions(
        self,
        base_url: str,
        seed: str,
        *,
        timeout_seconds: float,
    ) -> list[str]:
        payload = await self._get_json(
            f"{base_url.rstrip('/')}/api/v1/search/suggestions",
            params={"q": seed},
            tier=TIER_INVIDIOUS,
            timeout_seconds=timeout_seconds,
            send_user_agent=False,
        )
        raw_suggestions = _as_dict(payload).get("suggestions")
        if not isinstance(raw_suggestions, list):
            return []
        return [
            suggestion
            for suggestion in cast(list[Any], raw_suggestions)
            if isinstance(suggestion, str)
        ]

    async def _search_official(
        self,
        endpoint: ProviderEndpoint,
        query: str,
        options: SearchOptions,
        timeout_seconds: float,
    ) -> list[VideoItem]:
        if self._api_key is None:
            raise ProviderFailure(
                "Official API tier requested without a credential.",
                tier=TIER_OFFICIAL,
                endpoint=endpoint.base_url,
                reason="not_configured",
            )

        params: dict[str, str] = {
            "part": "snippet",
            "q": query,
            "type": "video",
            "maxResults": str(min(max(1, options.max_results), self._official_max_results)),
            "key": self._api_key,
        }
        if options.channel_id:
            params["channelId"] = options.channel_id
        if options.order:
            params["order"] = options.order
        if options.video_duration:
            params["videoDuration"] = options.video_duration

        payload = await self._get_json(
            f"{endpoint.base_url}/search",
            params=params,
            tier=TIER_OFFICIAL,
            timeout_seconds=timeout_seconds,
            send_user_agent=False,
        )
        items = _as_list(_as_dict(payload).get("items"))
        if not items:
            return []

        video_ids = [
            video_id
            for video_id in (_as_dict(_as_dict(item).get("id")).get("videoId") for item in items)
            if isinstance(video_id, str) and video_id.strip()
        ]
        durations_by_id = await self._lookup_official_durations(
            endpoint,
            video_ids,
            timeout_seconds=timeout_seconds,
        )
        return normalize_entries(
            items,
            lambda item: normalize_official_search_item(
                item,
                durations_by_id=durations_by_id,
                description_max_chars=self._description_max_chars,
            ),
            tier=TIER_OFFICIAL,
            limit=self._official_max_results,
        )

    async def _lookup_official_durations(
        self,
        endpoint: ProviderEndpoint,
        video_ids: list[str],
        *,
        timeout_seconds: float,
    ) -> dict[str, int]:
        # Search results omit durations; a failed lookup degrades them to 0.
        if not video_ids or self._api_key is None:
            return {}
        try:
            payload = await self._get_json(
                f"{endpoint.base_url}/videos",
                params={
                    "part": "contentDetails",
                    "id": ",".join(video_ids),
                    "key": self._api_key,
                },
                tier=TIER_OFFICIAL,
                timeout_seconds=timeout_seconds,
                send_user_agent=False,
            )
        except ProviderFailure as exc:
            LOGGER.warning(
                "video search duration_lookup_failed tier=%s ids=%s reason=%s",
                TIER_OFFICIAL,
                len(video_ids),
                exc.reason,
            )
            return {}

        durations: dict[str, int] = {}
        for raw_item in _as_list(_as_dict(payload).get("items")):
            item = _as_dict(raw_item)
            video_id = item.get("id")
            if not isinstance(video_id, str) or not video_id:
                continue
            content_details = _as_dict(item.get("contentDetails"))
            durations[video_id] = parse_iso8601_duration(content_details.get("duration"))
        return durations

    async def _search_piped(
        self,
        endpoint: ProviderEndpoint,
        query: str,
        options: SearchOptions,
        timeout_seconds: float,
    ) -> list[VideoItem]:
        payload = await self._get_json(
            f"{endpoint.base_url}/search",
            params={"q": query.strip(), "filter": "videos"},
            tier=TIER_PIPED,
            timeout_seconds=timeout_seconds,
        )
        return normalize_entries(
            extract_piped_entries(payload),
            lambda item: normalize_piped_item(
                item,
                description_max_chars=self._description_max_chars,
            ),
            tier=TIER_PIPED,
            limit=self._mirror_limit(options),
        )

    async def _search_invidious(
        self,
        endpoint: ProviderEndpoint,
        query: str,
        options: SearchOptions,
        timeout_seconds: float,
    ) -> list[VideoItem]:
        payload = await self._get_json(
            f"{endpoint.base_url}/api/v1/search",
            params={"q": query.strip(), "type": "video"},
            tier=TIER_INVIDIOUS,
            timeout_seconds=timeout_seconds,
        )
        return normalize_entries(
            extract_invidious_entries(payload),
            lambda item: normalize_invidious_item(
                item,
                description_max_chars=self._description_max_chars,
            ),
            tier=TIER_INVIDIOUS,
            limit=self._mirror_limit(options),
        )

    async def _get_json(
        self,
        url: str,
        *,
        params: dict[str, str],
        tier: str,
        timeout_seconds: float,
        send_user_agent: bool = True,
    ) -> Any:
        headers = {"Accept": "application/json"}
        if send_user_agent:
            headers["User-Agent"] = self._user_agent

        try:
            async with asyncio.timeout(timeout_seconds):
                async with httpx.AsyncClient(
                    transport=self._transport,
                    timeout=timeout_seconds,
                    headers=headers,
                    follow_redirects=True,
                ) as client:
                    response = await client.get(url, params=params)
        except TimeoutError as exc:
            raise ProviderFailure(
                f"Provider request timed out after {timeout_seconds:.1f}s",
                tier=tier,
                endpoint=url,
                reason="timeout",
            ) from exc
        except httpx.TimeoutException as exc:
            raise ProviderFailure(
                f"Provider request timed out: {exc}",
                tier=tier,
                endpoint=url,
                reason="timeout",
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderFailure(
                f"Provider request failed: {exc}",
                tier=tier,
                endpoint=url,
                reason="transport_error",
            ) from exc

        if not response.is_success:
            raise ProviderFailure(
                _status_failure_message(response),
                tier=tier,
                endpoint=url,
                reason=f"http_{response.status_code}",
            )

        raw_body = response.text
        if not raw_body.strip():
            raise ProviderFailure(
                "Provider returned an empty body.",
                tier=tier,
                endpoint=url,
                reason="empty_body",
            )
        try:
            payload = json.loads(raw_body)
        except json.JSONDecodeError as exc:
            raise ProviderFailure(
                "Provider returned a non-JSON body.",
                tier=tier,
                endpoint=url,
                reason="invalid_json",
            ) from exc

        # Some mirrors answer 200 with {"error": ...} when their upstream failed.
        if isinstance(payload, dict) and "error" in payload:
            raise ProviderFailure(
                f"Provider reported an upstream error: {_summarize(payload.get('error'))}",
                tier=tier,
                endpoint=url,
                reason="upstream_error",
            )
        return payload

    def _effective_timeout(self, timeout_seconds: float | None) -> float:
        if timeout_seconds is None:
            return self._timeout_seconds
        return max(0.001, min(timeout_seconds, self._timeout_seconds))

    def _mirror_limit(self, options: SearchOptions) -> int:
        return min(max(1, options.max_results), self._mirror_max_results)


def _status_failure_message(response: httpx.Response) -> str:
    message: str | None = None
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        body = None
    error = _as_dict(_as_dict(body).get("error"))
    raw_message = error.get("message")
    if isinstance(raw_message, str) and raw_message.strip():
        message = raw_message.strip()
    return message or f"Provider HTTP error: {response.status_code}"


def _summarize(value: object, *, max_length: int = 200) -> str:
    if isinstance(value, dict):
        message = _as_dict(value).get("message")
        if isinstance(message, str):
            value = message
    raw = str(value).strip()
    if len(raw) <= max_length:
        return raw
    return f"{raw[: max_length - 3]}..."


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        return {key: item for key, item in raw_dict.items() if isinstance(key, str)}
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(cast(list[Any], value))
    return []
