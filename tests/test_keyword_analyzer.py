from __future__ import annotations

import pytest

from tests.fakes import FIXED_NOW, FakeYouTubeClient, make_video
from trendscope.repositories.memory_cache import TtlMemoryCache
from trendscope.services.keyword_analyzer import (
    ANALYSIS_SEARCH_RESULTS,
    KeywordAnalysisResult,
    KeywordAnalyzer,
    KeywordIntent,
    TrendDirection,
    calculate_competition,
    calculate_search_volume,
    calculate_trend,
    classify_intent,
    keyword_cache_key,
)


def _analyzer(youtube: FakeYouTubeClient) -> KeywordAnalyzer:
    return KeywordAnalyzer(
        youtube,
        cache=TtlMemoryCache[KeywordAnalysisResult](default_ttl_seconds=3600),
        clock=lambda: FIXED_NOW,
    )


def test_search_volume_saturates_at_100() -> None:
    videos = [make_video(str(index), views=20_000_000) for index in range(10)]

    assert calculate_search_volume(videos) == 100


def test_search_volume_is_zero_without_videos_or_views() -> None:
    assert calculate_search_volume([]) == 0
    assert calculate_search_volume([make_video("a", views=999_999)]) == 0


def test_search_volume_counts_whole_millions() -> None:
    videos = [make_video("a", views=2_500_000), make_video("b", views=1_600_000)]

    assert calculate_search_volume(videos) == 4


def test_competition_combines_engagement_and_age() -> None:
    videos = [
        make_video("a", views=1000, likes=40, comments=10, age_days=100),
        make_video("b", views=1000, likes=50, comments=0, age_days=100),
    ]

    # engagement 5.0 per video, age bonus 100 days // 10 = 10
    assert calculate_competition(videos, now=FIXED_NOW) == 15


def test_competition_age_bonus_is_capped() -> None:
    videos = [make_video("a", views=1000, age_days=5000)]

    assert calculate_competition(videos, now=FIXED_NOW) == 50


def test_competition_is_clamped_to_100_for_tiny_view_counts() -> None:
    videos = [make_video("a", views=0, likes=1000, comments=10)]

    assert calculate_competition(videos, now=FIXED_NOW) == 100


def test_competition_ignores_missing_upload_dates() -> None:
    videos = [make_video("a", views=100, likes=10)]

    assert calculate_competition(videos, now=FIXED_NOW) == 10
    assert calculate_competition([], now=FIXED_NOW) == 0


@pytest.mark.parametrize(
    ("recent_views", "older_views", "expected"),
    [
        (2000, 1000, TrendDirection.RISING),
        (500, 1000, TrendDirection.DECLINING),
        (1100, 1000, TrendDirection.FLAT),
        (900, 1000, TrendDirection.FLAT),
    ],
)
def test_trend_compares_recent_and_older_means(
    recent_views: int,
    older_views: int,
    expected: TrendDirection,
) -> None:
    videos = [
        make_video("recent", views=recent_views, age_days=5),
        make_video("older", views=older_views, age_days=60),
    ]

    assert calculate_trend(videos, now=FIXED_NOW) is expected


def test_trend_without_recent_videos_is_declining() -> None:
    videos = [make_video("older", views=1000, age_days=45)]

    assert calculate_trend(videos, now=FIXED_NOW) is TrendDirection.DECLINING


def test_trend_is_new_when_everything_is_recent_or_undated() -> None:
    assert calculate_trend([], now=FIXED_NOW) is TrendDirection.NEW
    assert calculate_trend([make_video("a", views=10)], now=FIXED_NOW) is TrendDirection.NEW
    recent_only = [make_video("a", views=10, age_days=1), make_video("b", views=5, age_days=29)]
    assert calculate_trend(recent_only, now=FIXED_NOW) is TrendDirection.NEW


def test_trend_is_new_when_older_videos_have_no_views() -> None:
    videos = [
        make_video("recent", views=100, age_days=2),
        make_video("older", views=0, age_days=90),
    ]

    assert calculate_trend(videos, now=FIXED_NOW) is TrendDirection.NEW


def test_trend_window_boundary_counts_as_older() -> None:
    videos = [
        make_video("recent", views=5000, age_days=29.9),
        make_video("boundary", views=1000, age_days=30),
    ]

    assert calculate_trend(videos, now=FIXED_NOW) is TrendDirection.RISING


@pytest.mark.parametrize(
    ("keyword", "expected"),
    [
        ("Python Tutorial for beginners", KeywordIntent.HOW_TO),
        ("how to bake bread", KeywordIntent.HOW_TO),
        ("iPhone review", KeywordIntent.OPINION),
        ("tech news today", KeywordIntent.NEWS),
        ("best sci-fi movies", KeywordIntent.ENTERTAINMENT),
        ("how to pick the best review", KeywordIntent.HOW_TO),
        ("quantum physics", KeywordIntent.EDUCATIONAL),
    ],
)
def test_classify_intent(keyword: str, expected: KeywordIntent) -> None:
    assert classify_intent(keyword) is expected


def test_keyword_cache_key_normalizes_case_and_niche() -> None:
    assert keyword_cache_key("Python", "Tech") == keyword_cache_key("python", "tech")
    assert keyword_cache_key("python", None) == keyword_cache_key("python", "")
    assert keyword_cache_key("python", None) != keyword_cache_key("python", "tech")


@pytest.mark.anyio
async def test_analyze_builds_result_from_search() -> None:
    youtube = FakeYouTubeClient()
    youtube.search_results["python tutorial"] = [
        make_video("a", views=3_000_000, likes=30_000, comments=0, age_days=5),
        make_video("b", views=1_000_000, likes=10_000, comments=0, age_days=60),
    ]

    result = await _analyzer(youtube).analyze("python tutorial", "tech")

    assert result.keyword == "python tutorial"
    assert result.niche == "tech"
    assert result.search_volume_relative == 4
    assert 0 <= result.competition_score <= 100
    assert result.trend_direction is TrendDirection.RISING
    assert result.keyword_intent is KeywordIntent.HOW_TO
    assert result.analyzed_at == FIXED_NOW
    assert youtube.calls == [("search", ("python tutorial", ANALYSIS_SEARCH_RESULTS))]


@pytest.mark.anyio
async def test_analyze_is_cached_per_keyword_and_niche() -> None:
    youtube = FakeYouTubeClient()
    analyzer = _analyzer(youtube)

    first = await analyzer.analyze("Python", None)
    second = await analyzer.analyze("python", None)
    await analyzer.analyze("python", "tech")

    assert second == first
    assert youtube.call_names() == ["search", "search"]


@pytest.mark.anyio
async def test_analyze_without_videos_is_neutral() -> None:
    result = await _analyzer(FakeYouTubeClient()).analyze("obscure topic")

    assert result.search_volume_relative == 0
    assert result.competition_score == 0
    assert result.trend_direction is TrendDirection.NEW
    assert result.keyword_intent is KeywordIntent.EDUCATIONAL


def test_trend_and_volume_for_large_cohorts() -> None:
    recent = [make_video(f"r{index}", views=2_000_000, age_days=15) for index in range(5)]
    older = [make_video(f"o{index}", views=1_000_000, age_days=60) for index in range(5)]
    inverse_recent = [make_video(f"r{index}", views=1_000_000, age_days=15) for index in range(5)]
    inverse_older = [make_video(f"o{index}", views=2_000_000, age_days=60) for index in range(5)]

    assert calculate_trend(recent + older, now=FIXED_NOW) is TrendDirection.RISING
    inverse = inverse_recent + inverse_older
    assert calculate_trend(inverse, now=FIXED_NOW) is TrendDirection.DECLINING
    assert calculate_search_volume(
        [make_video(str(index), views=10_000_000) for index in range(10)]
    ) == 100
    assert calculate_search_volume([make_video(str(index), views=100) for index in range(10)]) == 0
