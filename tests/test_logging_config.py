from __future__ import annotations

import json
import logging
from pathlib import Path

from trendscope.config import AppSettings
from trendscope.logging_config import (
    LOG_FILE_NAME,
    TELEMETRY_LOG_FILE_NAME,
    configure_application_logging,
    resolve_log_level,
)
from trendscope.telemetry import TelemetryEvent, build_telemetry_client


def test_configure_application_logging_creates_files(tmp_path: Path) -> None:
    settings = AppSettings(log_dir=tmp_path / "logs", log_level="warning")

    log_file = configure_application_logging(settings)
    logging.getLogger("trendscope.youtube").info("youtube search keyword=%s", "python")
    for handler in logging.getLogger("trendscope").handlers:
        handler.flush()

    assert log_file == tmp_path / "logs" / LOG_FILE_NAME
    assert log_file.exists()
    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert any(record["event"] == "youtube search keyword=python" for record in records)
    assert all("timestamp" in record for record in records)


def test_configure_application_logging_is_idempotent(tmp_path: Path) -> None:
    settings = AppSettings(log_dir=tmp_path / "logs")

    configure_application_logging(settings)
    configure_application_logging(settings)

    assert len(logging.getLogger("trendscope").handlers) == 2
    assert len(logging.getLogger("trendscope.telemetry").handlers) == 1


def test_telemetry_events_go_to_dedicated_file(tmp_path: Path) -> None:
    settings = AppSettings(log_dir=tmp_path / "logs")
    configure_application_logging(settings)

    client = build_telemetry_client(enabled=True, sink="log").for_component("video_cache")
    client.emit(TelemetryEvent.YOUTUBE_CACHE_HIT, kind="search")
    for handler in logging.getLogger("trendscope.telemetry").handlers:
        handler.flush()

    telemetry_file = tmp_path / "logs" / TELEMETRY_LOG_FILE_NAME
    records = [
        json.loads(line) for line in telemetry_file.read_text(encoding="utf-8").splitlines()
    ]
    assert records[-1]["telemetry_event"] == "youtube.cache.hit"
    assert records[-1]["kind"] == "search"
    assert records[-1]["component"] == "video_cache"


def test_resolve_log_level() -> None:
    assert resolve_log_level("debug") == logging.DEBUG
    assert resolve_log_level(" WARNING ") == logging.WARNING
    assert resolve_log_level("verbose") == logging.INFO
