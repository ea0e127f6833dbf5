from __future__ import annotations
from dataclasses import dataclass

import httpx
import structlog

from gregaplay.config import settings

log = structlog.get_logger()


class VideoProcessingError(Exception):
    pass


@dataclass(frozen=True)
class FinalVideo:
    key: str | None
    url: str | None


class VideoProcessorClient:
    """Asks the processing service to assemble an event's clips into the final video."""

    def __init__(self, base_url: str | None = None, api_key: str | None = None,
                 timeout: float | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.base_url = (base_url or settings.video_processor_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.video_processor_api_key
        self.timeout = timeout or settings.video_processor_timeout_seconds
        self._transport = transport

    async def process(self, event_id: str, video_ids: list[str] | None) -> FinalVideo:
        payload = {"eventId": event_id, "videoIds": video_ids or []}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/api/videos/process",
                    json=payload,
                    headers={"x-api-key": self.api_key},
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise VideoProcessingError(str(e)) from e
        except ValueError as e:
            raise VideoProcessingError("Processor returned invalid JSON") from e

        if not isinstance(data, dict):
            raise VideoProcessingError(f"Processor returned an unexpected reply: {type(data).__name__}")
        if not data.get("success", True):
            raise VideoProcessingError(data.get("error") or "Processing failed")
        return FinalVideo(key=data.get("finalVideoKey") or data.get("key"),
                          url=data.get("finalVideoUrl") or data.get("url"))
