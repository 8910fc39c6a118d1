from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from trendscope.services.keyword_analyzer import KeywordIntent, TrendDirection

MAX_KEYWORD_LENGTH = 255
MAX_NICHE_LENGTH = 100


class KeywordAnalysisRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    keyword: str = Field(min_length=1, max_length=MAX_KEYWORD_LENGTH)
    niche: str | None = Field(default=None, max_length=MAX_NICHE_LENGTH)

    @field_validator("niche")
    @classmethod
    def _blank_niche_is_none(cls, value: str | None) -> str | None:
        return value or None


class KeywordAnalysisResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    keyword: str
    niche: str | None = None
    search_volume_relative: int = Field(ge=0, le=100)
    competition_score: int = Field(ge=0, le=100)
    trend_direction: TrendDirection
    keyword_intent: KeywordIntent
    analyzed_at: datetime


class VideoResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

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


class TranscriptResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    video_id: str
    transcript: str


class ChannelResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    channel_id: str
    handle: str | None = None
    display_name: str | None = None
    thumbnail_url: str | None = None
    subscriber_count: int | None = None
    video_count: int | None = None
    total_view_count: int | None = None


class ChannelVideoIdsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    channel_id: str
    video_ids: list[str]


class VideoSummaryResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    video_id: str
    title: str
    view_count: int


class ChannelStatsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    channel_id: str
    video_count: int
    average_views: float
    median_views: float
    top_videos: list[VideoSummaryResponse]
    bottom_videos: list[VideoSummaryResponse]
    posts_per_month: float


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
