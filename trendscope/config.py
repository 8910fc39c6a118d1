from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from trendscope.services.keyword_analyzer import KEYWORD_CACHE_TTL_SECONDS
from trendscope.services.resilience import RetryPolicy
from trendscope.services.transcript_fetcher import (
    DEFAULT_TIMEDTEXT_URL,
    DEFAULT_TRANSCRIPT_LANGUAGE,
)
from trendscope.services.video_cache import VIDEO_CACHE_TTL_SECONDS
from trendscope.services.youtube_client import DEFAULT_API_BASE_URL

ENV_PREFIX = "TRENDSCOPE_"
DEFAULT_DATA_DIR = ".trendscope"
TELEMETRY_SINKS: tuple[str, ...] = ("none", "log")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _env_name(field_name: str | None) -> str:
    return f"{ENV_PREFIX}{str(field_name).upper()}"


def _coerce_flag(value: Any, *, default: bool) -> bool:
    """Read on/off style flags; anything unrecognized keeps the field default."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    return default


class AppSettings(BaseSettings):
    """
    Runtime configuration for the ingestion service.

    Every option is read from a `TRENDSCOPE_*` environment variable (or `.env`)
    and documents its own default.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Platform access.
    youtube_api_key: str | None = Field(
        default=None,
        description="YouTube Data API v3 key. Required unless credential validation is skipped.",
    )
    youtube_api_base_url: str = Field(
        default=DEFAULT_API_BASE_URL,
        description="Base URL of the YouTube Data API v3.",
    )
    youtube_timedtext_url: str = Field(
        default=DEFAULT_TIMEDTEXT_URL,
        description="Public timed-text endpoint used for caption retrieval.",
    )
    youtube_transcript_language: str = Field(
        default=DEFAULT_TRANSCRIPT_LANGUAGE,
        description="Caption language requested from the timed-text endpoint.",
    )

    # Outbound HTTP resilience.
    http_attempt_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Deadline for a single outbound HTTP attempt.",
    )
    http_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after the first attempt for retryable statuses and transport errors.",
    )
    http_retry_base_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Base of the exponential backoff; retry n waits base * 2**(n-1) plus jitter.",
    )
    http_retry_max_jitter_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Upper bound of the uniform jitter added to each backoff delay.",
    )

    # Caches.
    video_cache_ttl_seconds: int = Field(
        default=VIDEO_CACHE_TTL_SECONDS,
        ge=1,
        description="TTL for cached search results and video metadata.",
    )
    keyword_cache_ttl_seconds: int = Field(
        default=KEYWORD_CACHE_TTL_SECONDS,
        ge=1,
        description="TTL for cached keyword analysis results.",
    )

    # Logging.
    log_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR) / "logs",
        validate_default=True,
        description="Directory for JSON log files.",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (stdout).",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description=(
            "Telemetry sink backend. `log` emits structured telemetry locally; "
            "`none` disables sink output."
        ),
    )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            attempt_timeout_seconds=self.http_attempt_timeout_seconds,
            max_retries=self.http_max_retries,
            base_delay_seconds=self.http_retry_base_delay_seconds,
            max_jitter_seconds=self.http_retry_max_jitter_seconds,
        )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _check_telemetry_sink(cls, value: Any, info: ValidationInfo) -> str:
        sink = value.strip().lower() if isinstance(value, str) else value
        if sink not in TELEMETRY_SINKS:
            raise ValueError(
                f"{_env_name(info.field_name)} must be one of: {', '.join(TELEMETRY_SINKS)}."
            )
        return sink

    @field_validator("youtube_api_base_url", "youtube_timedtext_url", mode="before")
    @classmethod
    def _strip_url(cls, value: Any, info: ValidationInfo) -> str:
        url = value.strip().rstrip("/") if isinstance(value, str) else ""
        if not url:
            raise ValueError(f"{_env_name(info.field_name)} must be a non-empty URL.")
        return url

    @field_validator("youtube_transcript_language", mode="before")
    @classmethod
    def _check_language(cls, value: Any, info: ValidationInfo) -> str:
        language = value.strip() if isinstance(value, str) else ""
        if not language:
            raise ValueError(f"{_env_name(info.field_name)} must be a non-empty string.")
        return language

    @field_validator("log_dir", mode="before")
    @classmethod
    def _resolve_log_dir(cls, value: Any) -> Any:
        if value is None:
            return None
        return Path(value).expanduser().resolve()

    @field_validator("telemetry_enabled", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any, info: ValidationInfo) -> bool:
        default = cls.model_fields[str(info.field_name)].default
        return _coerce_flag(value, default=bool(default))

    @field_validator("youtube_api_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        return value.strip() or None


def load_settings(*, validate_credentials: bool = True) -> AppSettings:
    """
    Build settings from the environment and `.env`.

    With `validate_credentials`, a missing API key is reported as a ValueError listing
    the variable to set, before any request reaches the platform.
    """
    settings = AppSettings()
    if validate_credentials and settings.youtube_api_key is None:
        raise ValueError(
            "Invalid configuration:\n"
            f"- {_env_name('youtube_api_key')} is required to call the YouTube Data API."
        )
    return settings
