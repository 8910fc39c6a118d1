from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from trendscope.repositories.memory_cache import TtlMemoryCache
from trendscope.services.youtube_client import (
    ChannelMetadata,
    VideoMetadata,
    YouTubeClientProtocol,
)
from trendscope.telemetry import TelemetryClient, TelemetryEvent

LOGGER = logging.getLogger("trendscope.youtube.cache")

VIDEO_CACHE_TTL_SECONDS = 86_400


class CachedYouTubeClient:
    """
    Caching decorator over any `YouTubeClientProtocol` implementation.

    Search results (including empty lists) and found videos are served from the
    in-memory cache for the configured TTL. Channel lookups, upload streams and
    transcripts always call through. Misses are not coalesced: two concurrent
    misses for one key both reach the wrapped client and the later write wins.
    """

    def __init__(
        self,
        inner: YouTubeClientProtocol,
        *,
        search_cache: TtlMemoryCache[list[VideoMetadata]],
        video_cache: TtlMemoryCache[VideoMetadata],
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._inner = inner
        self._search_cache = search_cache
        self._video_cache = video_cache
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    async def search(self, keyword: str, max_results: int = 10) -> list[VideoMetadata]:
        key = search_cache_key(keyword, max_results)
        found, cached = self._search_cache.lookup(key)
        if found and cached is not None:
            LOGGER.debug("youtube cache hit kind=search keyword=%s", keyword)
            self._telemetry.emit(
                TelemetryEvent.YOUTUBE_CACHE_HIT, kind="search", max_results=max_results
            )
            return list(cached)

        results = await self._inner.search(keyword, max_results)
        self._search_cache.set(key, list(results))
        LOGGER.debug(
            "youtube cache miss kind=search keyword=%s stored=%s",
            keyword,
            len(results),
        )
        self._telemetry.emit(
            TelemetryEvent.YOUTUBE_CACHE_MISS,
            kind="search",
            max_results=max_results,
            stored=len(results),
            entries=len(self._search_cache),
        )
        return results

    async def get_video(self, video_id: str) -> VideoMetadata | None:
        key = video_cache_key(video_id)
        cached = self._video_cache.get(key)
        if cached is not None:
            LOGGER.debug("youtube cache hit kind=video video_id=%s", video_id)
            self._telemetry.emit(TelemetryEvent.YOUTUBE_CACHE_HIT, kind="video", video_id=video_id)
            return cached

        result = await self._inner.get_video(video_id)
        if result is not None:
            self._video_cache.set(key, result)
        LOGGER.debug(
            "youtube cache miss kind=video video_id=%s stored=%s",
            video_id,
            result is not None,
        )
        self._telemetry.emit(
            TelemetryEvent.YOUTUBE_CACHE_MISS,
            kind="video",
            video_id=video_id,
            stored=result is not None,
            entries=len(self._video_cache),
        )
        return result

    async def get_transcript(self, video_id: str) -> str | None:
        return await self._inner.get_transcript(video_id)

    async def get_channel(self, handle_or_id: str) -> ChannelMetadata | None:
        return await self._inner.get_channel(handle_or_id)

    def stream_channel_video_ids(self, channel_id: str) -> AsyncIterator[str]:
        return self._inner.stream_channel_video_ids(channel_id)


def search_cache_key(keyword: str, max_results: int) -> str:
    return f"search:{keyword.lower()}:{max_results}"


def video_cache_key(video_id: str) -> str:
    return f"video:{video_id.lower()}"
