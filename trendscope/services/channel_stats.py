from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from trendscope.services.youtube_client import VideoMetadata, YouTubeClientProtocol

LOGGER = logging.getLogger("trendscope.channels")

RANKED_VIDEO_COUNT = 5
DAYS_PER_MONTH = 30.0


@dataclass(frozen=True)
class VideoSummary:
    video_id: str
    title: str
    view_count: int


@dataclass(frozen=True)
class ChannelStats:
    video_count: int = 0
    average_views: float = 0.0
    median_views: float = 0.0
    top_videos: list[VideoSummary] = field(default_factory=list)
    bottom_videos: list[VideoSummary] = field(default_factory=list)
    posts_per_month: float = 0.0


def summarize_channel_videos(videos: Sequence[VideoMetadata]) -> ChannelStats:
    if not videos:
        return ChannelStats()

    view_counts = sorted(float(video.view_count) for video in videos)
    middle = len(view_counts) // 2
    if len(view_counts) % 2 == 0:
        median_views = (view_counts[middle - 1] + view_counts[middle]) / 2.0
    else:
        median_views = view_counts[middle]

    by_views_desc = sorted(videos, key=lambda video: video.view_count, reverse=True)
    by_views_asc = sorted(videos, key=lambda video: video.view_count)

    return ChannelStats(
        video_count=len(videos),
        average_views=sum(view_counts) / len(view_counts),
        median_views=median_views,
        top_videos=[_summary(video) for video in by_views_desc[:RANKED_VIDEO_COUNT]],
        bottom_videos=[_summary(video) for video in by_views_asc[:RANKED_VIDEO_COUNT]],
        posts_per_month=_posts_per_month(videos),
    )


async def collect_channel_videos(
    youtube: YouTubeClientProtocol,
    channel_id: str,
    *,
    limit: int,
) -> list[VideoMetadata]:
    """Resolve up to `limit` uploads of a channel, skipping videos that no longer exist."""
    videos: list[VideoMetadata] = []
    seen_ids = 0
    if limit <= 0:
        return videos

    # Stop right after the last wanted ID so no further upload pages are requested.
    async for video_id in youtube.stream_channel_video_ids(channel_id):
        seen_ids += 1
        video = await youtube.get_video(video_id)
        if video is not None:
            videos.append(video)
        if seen_ids >= limit:
            break

    LOGGER.info(
        "channel videos collected channel_id=%s ids=%s resolved=%s limit=%s",
        channel_id,
        seen_ids,
        len(videos),
        limit,
    )
    return videos


def _posts_per_month(videos: Sequence[VideoMetadata]) -> float:
    upload_dates = [video.upload_date for video in videos if video.upload_date is not None]
    if len(upload_dates) <= 1:
        return 0.0

    span_days = (max(upload_dates) - min(upload_dates)).total_seconds() / 86_400
    months = span_days / DAYS_PER_MONTH
    if months <= 0:
        return float(len(upload_dates))
    return len(upload_dates) / months


def _summary(video: VideoMetadata) -> VideoSummary:
    return VideoSummary(video_id=video.video_id, title=video.title, view_count=video.view_count)
