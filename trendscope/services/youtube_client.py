from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol, cast

import httpx

LOGGER = logging.getLogger("trendscope.youtube")

DEFAULT_API_BASE_URL = "https://www.googleapis.com/youtube/v3"
MIN_SEARCH_RESULTS = 1
MAX_SEARCH_RESULTS = 50
PLAYLIST_PAGE_SIZE = 50
CHANNEL_ID_PREFIX = "UC"
CHANNEL_ID_LENGTH = 24
CHANNEL_URL_PREFIXES: tuple[str, ...] = (
    "https://www.youtube.com/",
    "https://youtube.com/",
)
ISO8601_DURATION_PATTERN = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


@dataclass(frozen=True)
class VideoMetadata:
    video_id: str
    title: str
    description: str | None = None
    channel_name: str | None = None
    channel_id: str | None = None
    duration_seconds: int | None = None
    upload_date: datetime | None = None
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    thumbnail_url: str | None = None


@dataclass(frozen=True)
class ChannelMetadata:
    channel_id: str
    handle: str | None = None
    display_name: str | None = None
    thumbnail_url: str | None = None
    subscriber_count: int | None = None
    video_count: int | None = None
    total_view_count: int | None = None


@dataclass(frozen=True)
class ChannelReference:
    value: str
    is_channel_id: bool


class YouTubeClientError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class YouTubeConfigurationError(Exception):
    """Local setup problem, such as a missing API key; never an upstream failure."""


class TranscriptSource(Protocol):
    async def fetch(self, video_id: str) -> str | None:
        ...


class YouTubeClientProtocol(Protocol):
    async def search(self, keyword: str, max_results: int = 10) -> list[VideoMetadata]:
        ...

    async def get_video(self, video_id: str) -> VideoMetadata | None:
        ...

    async def get_transcript(self, video_id: str) -> str | None:
        ...

    async def get_channel(self, handle_or_id: str) -> ChannelMetadata | None:
        ...

    def stream_channel_video_ids(self, channel_id: str) -> AsyncIterator[str]:
        ...


class YouTubeClient:
    """
    Direct client for the YouTube Data API v3.

    Every request goes through the injected `httpx.AsyncClient`, which carries the
    retry/timeout transport, so no endpoint implements its own retry logic.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        transcript_fetcher: TranscriptSource,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_API_BASE_URL,
    ) -> None:
        normalized_key = _coerce_nonempty_string(api_key)
        if normalized_key is None:
            raise YouTubeConfigurationError(
                "YouTube API key is missing. Set TRENDSCOPE_YOUTUBE_API_KEY."
            )
        self._http_client = http_client
        self._transcript_fetcher = transcript_fetcher
        self._api_key = normalized_key.strip()
        self._base_url = base_url.strip().rstrip("/") or DEFAULT_API_BASE_URL

    async def search(self, keyword: str, max_results: int = 10) -> list[VideoMetadata]:
        clamped_max_results = clamp_max_results(max_results)
        LOGGER.info(
            "youtube search keyword=%s max_results=%s",
            keyword,
            clamped_max_results,
        )
        payload = await self._get_json(
            "search",
            {
                "part": "snippet",
                "type": "video",
                "q": keyword,
                "maxResults": clamped_max_results,
            },
        )
        video_ids = _extract_search_video_ids(payload)
        if not video_ids:
            LOGGER.info("youtube search empty keyword=%s", keyword)
            return []
        return await self._get_video_batch(video_ids)

    async def get_video(self, video_id: str) -> VideoMetadata | None:
        videos = await self._get_video_batch([video_id])
        return videos[0] if videos else None

    async def get_transcript(self, video_id: str) -> str | None:
        return await self._transcript_fetcher.fetch(video_id)

    async def get_channel(self, handle_or_id: str) -> ChannelMetadata | None:
        reference = parse_channel_reference(handle_or_id)
        lookup_param = "id" if reference.is_channel_id else "forHandle"
        LOGGER.info(
            "youtube channel lookup input=%s param=%s value=%s",
            handle_or_id,
            lookup_param,
            reference.value,
        )
        payload = await self._get_json(
            "channels",
            {"part": "snippet,statistics", lookup_param: reference.value},
        )
        items = _as_list(payload.get("items"))
        if not items:
            return None
        return _map_channel(_as_dict(items[0]))

    async def stream_channel_video_ids(self, channel_id: str) -> AsyncIterator[str]:
        uploads_playlist_id = await self._fetch_uploads_playlist_id(channel_id)
        if uploads_playlist_id is None:
            LOGGER.info("youtube channel uploads_missing channel_id=%s", channel_id)
            return

        page_token: str | None = None
        pages_fetched = 0
        while True:
            params: dict[str, object] = {
                "part": "snippet",
                "playlistId": uploads_playlist_id,
                "maxResults": PLAYLIST_PAGE_SIZE,
            }
            if page_token is not None:
                params["pageToken"] = page_token

            payload = await self._get_json("playlistItems", params)
            pages_fetched += 1
            if not isinstance(payload.get("items"), list):
                return

            for video_id in _extract_playlist_video_ids(payload):
                yield video_id

            page_token = _coerce_nonempty_string(payload.get("nextPageToken"))
            if page_token is None:
                LOGGER.info(
                    "youtube channel uploads_done channel_id=%s pages=%s",
                    channel_id,
                    pages_fetched,
                )
                return

    async def _fetch_uploads_playlist_id(self, channel_id: str) -> str | None:
        payload = await self._get_json(
            "channels",
            {"part": "contentDetails", "id": channel_id},
        )
        items = _as_list(payload.get("items"))
        if not items:
            return None
        content_details = _as_dict(_as_dict(items[0]).get("contentDetails"))
        related = _as_dict(content_details.get("relatedPlaylists"))
        return _coerce_nonempty_string(related.get("uploads"))

    async def _get_video_batch(self, video_ids: list[str]) -> list[VideoMetadata]:
        unique_ids = list(dict.fromkeys(video_ids))
        if not unique_ids:
            return []

        payload = await self._get_json(
            "videos",
            {
                "part": "snippet,statistics,contentDetails",
                "id": ",".join(unique_ids),
            },
        )
        by_id: dict[str, VideoMetadata] = {}
        for item in _as_list(payload.get("items")):
            video = _map_video(_as_dict(item))
            if video is not None:
                by_id[video.video_id] = video

        # Output follows the candidate list, repeats included; the batch endpoint
        # neither preserves order nor returns duplicates.
        return [by_id[video_id] for video_id in video_ids if video_id in by_id]

    async def _get_json(self, endpoint: str, params: dict[str, object]) -> dict[str, Any]:
        query: dict[str, str | int] = {
            key: value if isinstance(value, int) else str(value) for key, value in params.items()
        }
        query["key"] = self._api_key
        try:
            response = await self._http_client.get(f"{self._base_url}/{endpoint}", params=query)
        except httpx.HTTPError as exc:
            raise YouTubeClientError(
                f"YouTube {endpoint} request failed: {type(exc).__name__}"
            ) from exc

        if not response.is_success:
            LOGGER.warning(
                "youtube request failed endpoint=%s status=%s",
                endpoint,
                response.status_code,
            )
            raise YouTubeClientError(
                f"YouTube {endpoint} request failed (status {response.status_code}).",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise YouTubeClientError(
                f"YouTube {endpoint} returned a malformed response body."
            ) from exc
        if not isinstance(payload, dict):
            raise YouTubeClientError(f"YouTube {endpoint} returned a malformed response body.")
        return _as_dict(payload)


def clamp_max_results(max_results: int) -> int:
    return max(MIN_SEARCH_RESULTS, min(MAX_SEARCH_RESULTS, max_results))


def parse_channel_reference(handle_or_id: str) -> ChannelReference:
    value = handle_or_id.strip()
    lowered = value.lower()
    for prefix in CHANNEL_URL_PREFIXES:
        if lowered.startswith(prefix):
            value = value[len(prefix) :]
            break

    is_channel_id = value.startswith(CHANNEL_ID_PREFIX) and len(value) == CHANNEL_ID_LENGTH
    return ChannelReference(value=value, is_channel_id=is_channel_id)


def parse_iso8601_duration_seconds(raw_value: object) -> int | None:
    if not isinstance(raw_value, str):
        return None
    matched = ISO8601_DURATION_PATTERN.match(raw_value.strip())
    if matched is None:
        return None
    if not any(matched.group(name) for name in ("days", "hours", "minutes", "seconds")):
        return None

    days = int(matched.group("days") or 0)
    hours = int(matched.group("hours") or 0)
    minutes = int(matched.group("minutes") or 0)
    seconds = int(matched.group("seconds") or 0)
    return days * 86_400 + hours * 3_600 + minutes * 60 + seconds


def _map_video(item: dict[str, Any]) -> VideoMetadata | None:
    video_id = _coerce_nonempty_string(item.get("id"))
    if video_id is None:
        return None

    snippet = _as_dict(item.get("snippet"))
    statistics = _as_dict(item.get("statistics"))
    content_details = _as_dict(item.get("contentDetails"))
    raw_title = snippet.get("title")

    return VideoMetadata(
        video_id=video_id,
        title=raw_title if isinstance(raw_title, str) else "",
        description=_coerce_string(snippet.get("description")),
        channel_name=_coerce_string(snippet.get("channelTitle")),
        channel_id=_coerce_string(snippet.get("channelId")),
        duration_seconds=parse_iso8601_duration_seconds(content_details.get("duration")),
        upload_date=_parse_datetime_utc(snippet.get("publishedAt")),
        view_count=_parse_count(statistics.get("viewCount")) or 0,
        like_count=_parse_count(statistics.get("likeCount")) or 0,
        comment_count=_parse_count(statistics.get("commentCount")) or 0,
        thumbnail_url=_extract_high_thumbnail_url(snippet),
    )


def _map_channel(item: dict[str, Any]) -> ChannelMetadata | None:
    channel_id = _coerce_nonempty_string(item.get("id"))
    if channel_id is None:
        return None

    snippet = _as_dict(item.get("snippet"))
    statistics = _as_dict(item.get("statistics"))
    return ChannelMetadata(
        channel_id=channel_id,
        handle=_coerce_string(snippet.get("customUrl")),
        display_name=_coerce_string(snippet.get("title")),
        thumbnail_url=_extract_high_thumbnail_url(snippet),
        subscriber_count=_parse_count(statistics.get("subscriberCount")),
        video_count=_parse_count(statistics.get("videoCount")),
        total_view_count=_parse_count(statistics.get("viewCount")),
    )


def _extract_search_video_ids(payload: dict[str, Any]) -> list[str]:
    video_ids: list[str] = []
    for item in _as_list(payload.get("items")):
        video_id = _coerce_nonempty_string(_as_dict(_as_dict(item).get("id")).get("videoId"))
        if video_id is not None:
            video_ids.append(video_id)
    return video_ids


def _extract_playlist_video_ids(payload: dict[str, Any]) -> list[str]:
    video_ids: list[str] = []
    for item in _as_list(payload.get("items")):
        snippet = _as_dict(_as_dict(item).get("snippet"))
        video_id = _coerce_nonempty_string(_as_dict(snippet.get("resourceId")).get("videoId"))
        if video_id is not None:
            video_ids.append(video_id)
    return video_ids


def _extract_high_thumbnail_url(snippet: dict[str, Any]) -> str | None:
    thumbnails = _as_dict(snippet.get("thumbnails"))
    return _coerce_nonempty_string(_as_dict(thumbnails.get("high")).get("url"))


def _parse_count(raw_value: object) -> int | None:
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value if raw_value >= 0 else None
    if not isinstance(raw_value, str):
        return None
    text = raw_value.strip()
    # int() would also accept "1_000" and non-ASCII digits.
    if not (text.isascii() and text.isdigit()):
        return None
    return int(text)


def _parse_datetime_utc(raw_value: object) -> datetime | None:
    if not isinstance(raw_value, str) or not raw_value.strip():
        return None

    normalized = raw_value.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _coerce_string(raw_value: object) -> str | None:
    return raw_value if isinstance(raw_value, str) else None


def _coerce_nonempty_string(raw_value: object) -> str | None:
    if isinstance(raw_value, str) and raw_value.strip():
        return raw_value
    return None


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(cast(list[Any], value))
    return []
