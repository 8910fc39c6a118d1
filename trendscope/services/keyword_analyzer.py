from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from trendscope.repositories.memory_cache import TtlMemoryCache
from trendscope.services.youtube_client import VideoMetadata, YouTubeClientProtocol
from trendscope.telemetry import TelemetryClient, TelemetryEvent

LOGGER = logging.getLogger("trendscope.analysis")

KEYWORD_CACHE_TTL_SECONDS = 7 * 86_400
ANALYSIS_SEARCH_RESULTS = 10
VIEWS_PER_VOLUME_POINT = 1_000_000
MAX_SCORE = 100
MAX_AGE_SCORE = 50
AGE_SCORE_DAYS_PER_POINT = 10
RECENT_WINDOW_DAYS = 30
TREND_GROWTH_THRESHOLD = 0.2
SECONDS_PER_DAY = 86_400


class TrendDirection(StrEnum):
    RISING = "rising"
    DECLINING = "declining"
    FLAT = "flat"
    NEW = "new"


class KeywordIntent(StrEnum):
    HOW_TO = "how-to"
    OPINION = "opinion"
    NEWS = "news"
    ENTERTAINMENT = "entertainment"
    EDUCATIONAL = "educational"


# First match wins.
INTENT_RULES: tuple[tuple[tuple[str, ...], KeywordIntent], ...] = (
    (("tutorial", "how to"), KeywordIntent.HOW_TO),
    (("review",), KeywordIntent.OPINION),
    (("news",), KeywordIntent.NEWS),
    (("best",), KeywordIntent.ENTERTAINMENT),
)


@dataclass(frozen=True)
class KeywordAnalysisResult:
    keyword: str
    niche: str | None
    search_volume_relative: int
    competition_score: int
    trend_direction: TrendDirection
    keyword_intent: KeywordIntent
    analyzed_at: datetime


class KeywordAnalyzer:
    def __init__(
        self,
        youtube: YouTubeClientProtocol,
        *,
        cache: TtlMemoryCache[KeywordAnalysisResult],
        telemetry: TelemetryClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._youtube = youtube
        self._cache = cache
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._clock = clock if clock is not None else _utc_now

    async def analyze(self, keyword: str, niche: str | None = None) -> KeywordAnalysisResult:
        key = keyword_cache_key(keyword, niche)
        cached = self._cache.get(key)
        if cached is not None:
            LOGGER.debug("keyword analysis cache_hit keyword=%s niche=%s", keyword, niche)
            self._telemetry.emit(
                TelemetryEvent.KEYWORD_ANALYSIS_CACHE_HIT, niche_set=niche is not None
            )
            return cached

        LOGGER.debug("keyword analysis cache_miss keyword=%s niche=%s", keyword, niche)
        videos = await self._youtube.search(keyword, ANALYSIS_SEARCH_RESULTS)

        now = self._clock()
        result = KeywordAnalysisResult(
            keyword=keyword,
            niche=niche,
            search_volume_relative=calculate_search_volume(videos),
            competition_score=calculate_competition(videos, now=now),
            trend_direction=calculate_trend(videos, now=now),
            keyword_intent=classify_intent(keyword),
            analyzed_at=now,
        )
        self._cache.set(key, result)

        LOGGER.info(
            (
                "keyword analysis computed keyword=%s niche=%s videos=%s volume=%s "
                "competition=%s trend=%s intent=%s"
            ),
            keyword,
            niche,
            len(videos),
            result.search_volume_relative,
            result.competition_score,
            result.trend_direction,
            result.keyword_intent,
        )
        self._telemetry.emit(
            TelemetryEvent.KEYWORD_ANALYSIS_COMPUTED,
            niche_set=niche is not None,
            videos=len(videos),
            entries=len(self._cache),
            trend_direction=str(result.trend_direction),
            keyword_intent=str(result.keyword_intent),
        )
        return result


def keyword_cache_key(keyword: str, niche: str | None) -> str:
    return f"kw:{keyword.lower()}:{(niche or '').lower()}"


def calculate_search_volume(videos: Sequence[VideoMetadata]) -> int:
    if not videos:
        return 0
    total_views = sum(video.view_count for video in videos)
    return max(0, min(total_views // VIEWS_PER_VOLUME_POINT, MAX_SCORE))


def calculate_competition(videos: Sequence[VideoMetadata], *, now: datetime) -> int:
    """
    Engagement density (likes + comments per 100 views, averaged) plus an age
    bonus of one point per ten days of mean upload age, capped at 50.

    Very low view counts inflate the engagement term; the single final clamp is
    the only bound on it.
    """
    if not videos:
        return 0

    engagement_total = 0.0
    for video in videos:
        interactions = float(video.like_count + video.comment_count)
        engagement_total += interactions / max(video.view_count, 1) * 100
    avg_engagement = engagement_total / len(videos)

    ages = [_age_days(video.upload_date, now) for video in videos if video.upload_date is not None]
    age_score = 0
    if ages:
        avg_age = sum(ages) / len(ages)
        age_score = min(int(avg_age / AGE_SCORE_DAYS_PER_POINT), MAX_AGE_SCORE)

    return max(0, min(int(avg_engagement + age_score), MAX_SCORE))


def calculate_trend(videos: Sequence[VideoMetadata], *, now: datetime) -> TrendDirection:
    dated = [
        (_age_days(video.upload_date, now), video.view_count)
        for video in videos
        if video.upload_date is not None
    ]
    if not dated:
        return TrendDirection.NEW

    recent_views = [views for age, views in dated if age < RECENT_WINDOW_DAYS]
    older_views = [views for age, views in dated if age >= RECENT_WINDOW_DAYS]
    if not older_views:
        return TrendDirection.NEW

    recent_mean = sum(recent_views) / len(recent_views) if recent_views else 0.0
    older_mean = sum(older_views) / len(older_views)
    if older_mean == 0:
        return TrendDirection.NEW

    growth = (recent_mean - older_mean) / older_mean
    if growth > TREND_GROWTH_THRESHOLD:
        return TrendDirection.RISING
    if growth < -TREND_GROWTH_THRESHOLD:
        return TrendDirection.DECLINING
    return TrendDirection.FLAT


def classify_intent(keyword: str) -> KeywordIntent:
    normalized = keyword.lower()
    for markers, intent in INTENT_RULES:
        if any(marker in normalized for marker in markers):
            return intent
    return KeywordIntent.EDUCATIONAL


def _age_days(upload_date: datetime, now: datetime) -> float:
    return (now - upload_date).total_seconds() / SECONDS_PER_DAY


def _utc_now() -> datetime:
    return datetime.now(UTC)
