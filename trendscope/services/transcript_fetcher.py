from __future__ import annotations

import json
import logging
from typing import Any, cast

import httpx

LOGGER = logging.getLogger("trendscope.transcripts")

DEFAULT_TIMEDTEXT_URL = "https://www.youtube.com/api/timedtext"
DEFAULT_TRANSCRIPT_LANGUAGE = "en"


class TranscriptFetcher:
    """
    Best-effort caption text for a single video.

    The platform has no official transcript API, so this reads the unofficial
    timedtext endpoint (json3 format). Any failure degrades to `None`; only task
    cancellation propagates.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        timedtext_url: str = DEFAULT_TIMEDTEXT_URL,
        language: str = DEFAULT_TRANSCRIPT_LANGUAGE,
    ) -> None:
        self._http_client = http_client
        self._timedtext_url = timedtext_url
        self._language = language

    async def fetch(self, video_id: str) -> str | None:
        try:
            response = await self._http_client.get(
                self._timedtext_url,
                params={"v": video_id, "lang": self._language, "fmt": "json3"},
            )
            if not response.is_success:
                LOGGER.debug(
                    "transcript unavailable video_id=%s status=%s",
                    video_id,
                    response.status_code,
                )
                return None
            transcript = _extract_timedtext_text(_parse_json_dict(response.text))
        except Exception:
            LOGGER.warning("transcript fetch_failed video_id=%s", video_id, exc_info=True)
            return None

        if not transcript:
            LOGGER.debug("transcript empty video_id=%s", video_id)
            return None

        LOGGER.debug("transcript fetched video_id=%s chars=%s", video_id, len(transcript))
        return transcript


def _extract_timedtext_text(payload: dict[str, Any]) -> str:
    events = payload.get("events")
    if not isinstance(events, list) or not events:
        return ""

    parts: list[str] = []
    for raw_event in cast(list[Any], events):
        if not isinstance(raw_event, dict):
            continue
        segments = cast(dict[str, Any], raw_event).get("segs")
        if not isinstance(segments, list):
            continue
        for raw_segment in cast(list[Any], segments):
            if not isinstance(raw_segment, dict):
                continue
            text = cast(dict[str, Any], raw_segment).get("utf8")
            parts.append(text if isinstance(text, str) else "")
    return " ".join(parts).strip()


def _parse_json_dict(raw_body: str) -> dict[str, Any]:
    if not raw_body.strip():
        return {}
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return {}
    if isinstance(parsed, dict):
        return cast(dict[str, Any], parsed)
    return {}
