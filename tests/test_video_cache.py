from __future__ import annotations

import pytest

from tests.fakes import FakeYouTubeClient, make_video
from trendscope.repositories.memory_cache import TtlMemoryCache
from trendscope.services.video_cache import (
    VIDEO_CACHE_TTL_SECONDS,
    CachedYouTubeClient,
    search_cache_key,
    video_cache_key,
)
from trendscope.services.youtube_client import ChannelMetadata, VideoMetadata
from trendscope.telemetry import TelemetryClient, TelemetryRecord

pytestmark = pytest.mark.anyio


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _CaptureSink:
    def __init__(self) -> None:
        self.records: list[TelemetryRecord] = []

    def record(self, record: TelemetryRecord) -> None:
        self.records.append(record)


def _cached(
    inner: FakeYouTubeClient,
    clock: _FakeClock,
    telemetry: TelemetryClient | None = None,
) -> CachedYouTubeClient:
    return CachedYouTubeClient(
        inner,
        search_cache=TtlMemoryCache[list[VideoMetadata]](
            default_ttl_seconds=VIDEO_CACHE_TTL_SECONDS, clock=clock
        ),
        video_cache=TtlMemoryCache[VideoMetadata](
            default_ttl_seconds=VIDEO_CACHE_TTL_SECONDS, clock=clock
        ),
        telemetry=telemetry,
    )


def test_cache_keys_are_case_insensitive() -> None:
    assert search_cache_key("Python Tips", 10) == search_cache_key("python tips", 10)
    assert search_cache_key("python", 10) != search_cache_key("python", 11)
    assert video_cache_key("AbC") == "video:abc"


async def test_search_hit_within_ttl_does_not_call_inner() -> None:
    inner = FakeYouTubeClient()
    inner.search_results["python"] = [make_video("a"), make_video("b")]
    clock = _FakeClock()
    client = _cached(inner, clock)

    first = await client.search("python", 10)
    clock.now = VIDEO_CACHE_TTL_SECONDS - 1
    second = await client.search("python", 10)

    assert [video.video_id for video in first] == ["a", "b"]
    assert second == first
    assert inner.call_names() == ["search"]


async def test_search_is_refetched_after_ttl() -> None:
    inner = FakeYouTubeClient()
    inner.search_results["python"] = [make_video("a")]
    clock = _FakeClock()
    client = _cached(inner, clock)

    await client.search("python", 10)
    clock.now = VIDEO_CACHE_TTL_SECONDS
    await client.search("python", 10)

    assert inner.call_names() == ["search", "search"]


async def test_empty_search_result_is_cached() -> None:
    inner = FakeYouTubeClient()
    client = _cached(inner, _FakeClock())

    assert await client.search("nothing", 10) == []
    assert await client.search("nothing", 10) == []
    assert inner.call_names() == ["search"]


async def test_cached_search_list_is_not_shared_with_callers() -> None:
    inner = FakeYouTubeClient()
    inner.search_results["python"] = [make_video("a")]
    client = _cached(inner, _FakeClock())

    first = await client.search("python", 10)
    first.clear()

    assert [video.video_id for video in await client.search("python", 10)] == ["a"]


async def test_found_video_is_cached() -> None:
    inner = FakeYouTubeClient()
    inner.videos["vid1"] = make_video("vid1")
    client = _cached(inner, _FakeClock())

    assert await client.get_video("vid1") == inner.videos["vid1"]
    assert await client.get_video("vid1") == inner.videos["vid1"]
    assert inner.call_names() == ["get_video"]


async def test_absent_video_is_not_cached() -> None:
    inner = FakeYouTubeClient()
    client = _cached(inner, _FakeClock())

    assert await client.get_video("missing") is None
    inner.videos["missing"] = make_video("missing")
    video = await client.get_video("missing")

    assert video is not None
    assert inner.call_names() == ["get_video", "get_video"]


async def test_transcript_channel_and_uploads_are_not_cached() -> None:
    inner = FakeYouTubeClient()
    inner.transcripts["vid1"] = "words"
    inner.channels["@creator"] = ChannelMetadata(channel_id="UC" + "z" * 22)
    inner.uploads["UCchannel"] = ["v1", "v2"]
    client = _cached(inner, _FakeClock())

    for _ in range(2):
        assert await client.get_transcript("vid1") == "words"
        assert await client.get_channel("@creator") is not None
        assert [vid async for vid in client.stream_channel_video_ids("UCchannel")] == [
            "v1",
            "v2",
        ]

    assert inner.call_names().count("get_transcript") == 2
    assert inner.call_names().count("get_channel") == 2
    assert inner.call_names().count("stream_channel_video_ids") == 2


async def test_cache_emits_hit_and_miss_telemetry() -> None:
    inner = FakeYouTubeClient()
    inner.videos["vid1"] = make_video("vid1")
    sink = _CaptureSink()
    client = _cached(inner, _FakeClock(), TelemetryClient(enabled=True, sink=sink))

    await client.get_video("vid1")
    await client.get_video("vid1")

    assert [record.event for record in sink.records] == ["youtube.cache.miss", "youtube.cache.hit"]
    assert sink.records[0].attributes["kind"] == "video"
    assert sink.records[0].attributes["stored"] is True
