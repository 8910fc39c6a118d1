from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from structlog.contextvars import bind_contextvars, reset_contextvars

from trendscope.dependencies import get_keyword_analyzer, get_youtube_client
from trendscope.models.api_contracts import (
    MAX_KEYWORD_LENGTH,
    ChannelResponse,
    ChannelStatsResponse,
    ChannelVideoIdsResponse,
    KeywordAnalysisRequest,
    KeywordAnalysisResponse,
    TranscriptResponse,
    VideoResponse,
    VideoSummaryResponse,
)
from trendscope.services.channel_stats import collect_channel_videos, summarize_channel_videos
from trendscope.services.keyword_analyzer import KeywordAnalyzer
from trendscope.services.youtube_client import (
    MAX_SEARCH_RESULTS,
    YouTubeClientProtocol,
    clamp_max_results,
)

MAX_CHANNEL_VIDEO_LIMIT = 500
DEFAULT_CHANNEL_VIDEO_LIMIT = 50

router = APIRouter()

YouTubeDependency = Annotated[YouTubeClientProtocol, Depends(get_youtube_client)]
AnalyzerDependency = Annotated[KeywordAnalyzer, Depends(get_keyword_analyzer)]
ChannelVideoLimit = Annotated[int, Query(ge=1, le=MAX_CHANNEL_VIDEO_LIMIT)]


@router.get(
    "/videos/search",
    response_model=list[VideoResponse],
    tags=["videos"],
    operation_id="search_videos",
)
async def search_videos(
    youtube: YouTubeDependency,
    keyword: Annotated[str, Query(min_length=1, max_length=MAX_KEYWORD_LENGTH)],
    max_results: int = 10,
) -> list[VideoResponse]:
    normalized_keyword = keyword.strip()
    if not normalized_keyword:
        raise HTTPException(status_code=422, detail="keyword must not be blank.")
    videos = await youtube.search(normalized_keyword, clamp_max_results(max_results))
    return [VideoResponse.model_validate(video) for video in videos[:MAX_SEARCH_RESULTS]]


@router.get(
    "/videos/{video_id}",
    response_model=VideoResponse,
    tags=["videos"],
    operation_id="get_video",
)
async def get_video(video_id: str, youtube: YouTubeDependency) -> VideoResponse:
    video = await youtube.get_video(video_id)
    if video is None:
        raise HTTPException(status_code=404, detail="Video not found.")
    return VideoResponse.model_validate(video)


@router.get(
    "/videos/{video_id}/transcript",
    response_model=TranscriptResponse,
    tags=["videos"],
    operation_id="get_video_transcript",
)
async def get_video_transcript(video_id: str, youtube: YouTubeDependency) -> TranscriptResponse:
    transcript = await youtube.get_transcript(video_id)
    if transcript is None:
        raise HTTPException(status_code=404, detail="Transcript not available.")
    return TranscriptResponse(video_id=video_id, transcript=transcript)


@router.get(
    "/channels/resolve",
    response_model=ChannelResponse,
    tags=["channels"],
    operation_id="resolve_channel",
)
async def resolve_channel(
    youtube: YouTubeDependency,
    handle_or_url: Annotated[str, Query(min_length=1)],
) -> ChannelResponse:
    channel = await youtube.get_channel(handle_or_url)
    if channel is None:
        raise HTTPException(status_code=404, detail="Channel not found.")
    return ChannelResponse.model_validate(channel)


@router.get(
    "/channels/{channel_id}/video-ids",
    response_model=ChannelVideoIdsResponse,
    tags=["channels"],
    operation_id="list_channel_video_ids",
)
async def list_channel_video_ids(
    channel_id: str,
    youtube: YouTubeDependency,
    limit: ChannelVideoLimit = DEFAULT_CHANNEL_VIDEO_LIMIT,
) -> ChannelVideoIdsResponse:
    video_ids: list[str] = []
    async for video_id in youtube.stream_channel_video_ids(channel_id):
        video_ids.append(video_id)
        if len(video_ids) >= limit:
            break
    return ChannelVideoIdsResponse(channel_id=channel_id, video_ids=video_ids)


@router.get(
    "/channels/{channel_id}/stats",
    response_model=ChannelStatsResponse,
    tags=["channels"],
    operation_id="get_channel_stats",
)
async def get_channel_stats(
    channel_id: str,
    youtube: YouTubeDependency,
    limit: ChannelVideoLimit = DEFAULT_CHANNEL_VIDEO_LIMIT,
) -> ChannelStatsResponse:
    videos = await collect_channel_videos(youtube, channel_id, limit=limit)
    stats = summarize_channel_videos(videos)
    return ChannelStatsResponse(
        channel_id=channel_id,
        video_count=stats.video_count,
        average_views=stats.average_views,
        median_views=stats.median_views,
        top_videos=[VideoSummaryResponse.model_validate(video) for video in stats.top_videos],
        bottom_videos=[
            VideoSummaryResponse.model_validate(video) for video in stats.bottom_videos
        ],
        posts_per_month=stats.posts_per_month,
    )


@router.post(
    "/keywords/analyze",
    response_model=KeywordAnalysisResponse,
    tags=["keywords"],
    operation_id="analyze_keyword",
)
async def analyze_keyword(
    request: KeywordAnalysisRequest,
    analyzer: AnalyzerDependency,
) -> KeywordAnalysisResponse:
    context_tokens = bind_contextvars(keyword=request.keyword, niche=request.niche)
    try:
        result = await analyzer.analyze(request.keyword, request.niche)
    finally:
        reset_contextvars(**context_tokens)
    return KeywordAnalysisResponse.model_validate(result)
