from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tests.fakes import FIXED_NOW, FakeYouTubeClient
from trendscope.dependencies import (
    get_keyword_analyzer,
    get_youtube_client,
    reset_cached_dependencies,
)
from trendscope.main import create_app
from trendscope.repositories.memory_cache import TtlMemoryCache
from trendscope.services.keyword_analyzer import KeywordAnalysisResult, KeywordAnalyzer


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_environment(  # pyright: ignore[reportUnusedFunction]
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> Iterator[None]:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TRENDSCOPE_YOUTUBE_API_KEY", raising=False)
    monkeypatch.setenv("TRENDSCOPE_LOG_DIR", str(tmp_path / "logs"))
    yield
    for logger_name in ("trendscope", "trendscope.telemetry"):
        logger = logging.getLogger(logger_name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_youtube() -> FakeYouTubeClient:
    return FakeYouTubeClient()


@pytest.fixture
def client(
    monkeypatch: pytest.MonkeyPatch,
    fake_youtube: FakeYouTubeClient,
) -> Iterator[TestClient]:
    monkeypatch.setenv("TRENDSCOPE_YOUTUBE_API_KEY", "test-api-key")
    monkeypatch.setenv("TRENDSCOPE_TELEMETRY_SINK", "none")
    reset_cached_dependencies()

    analyzer = KeywordAnalyzer(
        fake_youtube,
        cache=TtlMemoryCache[KeywordAnalysisResult](default_ttl_seconds=60),
        clock=lambda: FIXED_NOW,
    )
    app = create_app()
    app.dependency_overrides[get_youtube_client] = lambda: fake_youtube
    app.dependency_overrides[get_keyword_analyzer] = lambda: analyzer
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client

    reset_cached_dependencies()
