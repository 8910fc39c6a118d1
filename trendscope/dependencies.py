from __future__ import annotations

from functools import lru_cache

import httpx

from trendscope.config import AppSettings, load_settings
from trendscope.repositories.memory_cache import TtlMemoryCache
from trendscope.services.keyword_analyzer import KeywordAnalysisResult, KeywordAnalyzer
from trendscope.services.resilience import build_http_client
from trendscope.services.transcript_fetcher import TranscriptFetcher
from trendscope.services.video_cache import CachedYouTubeClient
from trendscope.services.youtube_client import (
    VideoMetadata,
    YouTubeClient,
    YouTubeClientProtocol,
)
from trendscope.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_http_client() -> httpx.AsyncClient:
    settings = get_settings()
    return build_http_client(policy=settings.retry_policy())


@lru_cache(maxsize=1)
def get_youtube_client() -> YouTubeClientProtocol:
    settings = get_settings()
    http_client = get_http_client()
    direct_client = YouTubeClient(
        http_client,
        TranscriptFetcher(
            http_client,
            timedtext_url=settings.youtube_timedtext_url,
            language=settings.youtube_transcript_language,
        ),
        api_key=settings.youtube_api_key,
        base_url=settings.youtube_api_base_url,
    )
    return CachedYouTubeClient(
        direct_client,
        search_cache=TtlMemoryCache[list[VideoMetadata]](
            default_ttl_seconds=settings.video_cache_ttl_seconds
        ),
        video_cache=TtlMemoryCache[VideoMetadata](
            default_ttl_seconds=settings.video_cache_ttl_seconds
        ),
        telemetry=get_telemetry().for_component("video_cache"),
    )


@lru_cache(maxsize=1)
def get_keyword_analyzer() -> KeywordAnalyzer:
    settings = get_settings()
    return KeywordAnalyzer(
        get_youtube_client(),
        cache=TtlMemoryCache[KeywordAnalysisResult](
            default_ttl_seconds=settings.keyword_cache_ttl_seconds
        ),
        telemetry=get_telemetry().for_component("keyword_analyzer"),
    )


async def close_http_client() -> None:
    if get_http_client.cache_info().currsize == 0:
        return
    await get_http_client().aclose()
    get_keyword_analyzer.cache_clear()
    get_youtube_client.cache_clear()
    get_http_client.cache_clear()


def reset_cached_dependencies() -> None:
    get_keyword_analyzer.cache_clear()
    get_youtube_client.cache_clear()
    get_http_client.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
