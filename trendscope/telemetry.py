from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, Literal, Protocol

import structlog

TELEMETRY_LOGGER_NAME = "trendscope.telemetry"

AttributeValue = bool | int | float | str | None

# Matches whole underscore-separated segments, so `api_key` is redacted but `keyword` is not.
_REDACTED_KEY_PATTERN = re.compile(
    r"(?:^|_)(?:authorization|cookie|description|key|secret|token|transcript)(?:_|$)"
)
_MAX_STRING_LENGTH = 160


class TelemetryEvent(StrEnum):
    HTTP_REQUEST_START = "http.request.start"
    HTTP_REQUEST_FINISH = "http.request.finish"
    HTTP_REQUEST_ERROR = "http.request.error"
    YOUTUBE_CACHE_HIT = "youtube.cache.hit"
    YOUTUBE_CACHE_MISS = "youtube.cache.miss"
    KEYWORD_ANALYSIS_CACHE_HIT = "keyword.analysis.cache_hit"
    KEYWORD_ANALYSIS_COMPUTED = "keyword.analysis.computed"


@dataclass(frozen=True)
class TelemetryRecord:
    event: TelemetryEvent
    attributes: Mapping[str, AttributeValue]
    component: str | None = None


class TelemetrySink(Protocol):
    def record(self, record: TelemetryRecord) -> None:
        ...


class NullTelemetrySink:
    def record(self, record: TelemetryRecord) -> None:
        _ = record


class LogTelemetrySink:
    """Writes each record as one structured `telemetry` entry on the telemetry logger."""

    def __init__(self, logger_name: str = TELEMETRY_LOGGER_NAME) -> None:
        self._logger = structlog.get_logger(logger_name)

    def record(self, record: TelemetryRecord) -> None:
        fields: dict[str, AttributeValue] = dict(record.attributes)
        fields["telemetry_event"] = str(record.event)
        if record.component is not None:
            fields["component"] = record.component
        self._logger.info("telemetry", **fields)


_SINK_FACTORIES: dict[str, Callable[[], TelemetrySink]] = {
    "log": LogTelemetrySink,
}


@dataclass(frozen=True)
class TelemetryClient:
    enabled: bool = False
    sink: TelemetrySink = field(default_factory=NullTelemetrySink)
    component: str | None = None

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls()

    def for_component(self, component: str) -> TelemetryClient:
        return replace(self, component=component)

    def emit(self, event: TelemetryEvent, **attributes: Any) -> None:
        if not self.enabled:
            return
        self.sink.record(
            TelemetryRecord(
                event=TelemetryEvent(event),
                attributes=sanitize_attributes(attributes),
                component=self.component,
            )
        )


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()

    factory = _SINK_FACTORIES.get(sink)
    if factory is None:
        logging.getLogger(TELEMETRY_LOGGER_NAME).warning(
            "unknown telemetry sink=%s; telemetry disabled",
            sink,
        )
        return TelemetryClient.disabled()
    return TelemetryClient(enabled=True, sink=factory())


def sanitize_attributes(attributes: Mapping[str, Any]) -> dict[str, AttributeValue]:
    """
    Normalize attribute names to lowercase and keep values loggable.

    Credentials and free text pulled from the platform (descriptions, transcripts)
    are replaced with `[redacted]`. Long strings are truncated and any value that is
    not a scalar is reduced to its type name.
    """
    sanitized: dict[str, AttributeValue] = {}
    for raw_name, raw_value in attributes.items():
        name = str(raw_name).strip().lower()
        if not name:
            continue
        if _REDACTED_KEY_PATTERN.search(name):
            sanitized[name] = "[redacted]"
        else:
            sanitized[name] = _scalar(raw_value)
    return sanitized


def _scalar(value: Any) -> AttributeValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        text = " ".join(value.split())
        if len(text) > _MAX_STRING_LENGTH:
            return text[:_MAX_STRING_LENGTH] + "..."
        return text
    return type(value).__name__
