"""
Pre-upload checks on a clip, run before a single byte goes to storage.

These only save wasted transfers. The authoritative decision on whether the
caller may submit at all is the access policy, evaluated server-side on
fresh facts.
"""
from __future__ import annotations
from dataclasses import dataclass

from gregaplay.errors import ValidationError
from gregaplay.schemas.capabilities import Limits
from gregaplay.services.media import MediaProbeError, probe_video


@dataclass(frozen=True)
class ClipInfo:
    mime_type: str
    size: int
    duration_seconds: float
    width: int | None = None
    height: int | None = None


def _mb(n: int) -> int:
    return n // (1024 * 1024)


def check_clip(content_type: str | None, size: int, path: str, limits: Limits, ffprobe_bin: str = "ffprobe") -> ClipInfo:
    mime = (content_type or "").lower()
    if not mime.startswith("video/"):
        raise ValidationError("Please choose a video file.", constraint="mime_type", details={"mime_type": mime or None})

    if size > limits.max_clip_size_bytes:
        raise ValidationError(
            f"File too large. Maximum size is {_mb(limits.max_clip_size_bytes)} MB.",
            constraint="size",
            details={"size": size, "max_size": limits.max_clip_size_bytes},
        )

    try:
        meta = probe_video(path, ffprobe_bin)
    except MediaProbeError as e:
        raise ValidationError("Could not read the video duration.", constraint="unreadable", details={"reason": str(e)})

    if meta.duration_seconds > limits.max_clip_duration_seconds:
        raise ValidationError(
            f"Video must not exceed {limits.max_clip_duration_seconds} seconds.",
            constraint="duration",
            details={"duration": round(meta.duration_seconds, 2), "max_duration": limits.max_clip_duration_seconds},
        )

    return ClipInfo(mime_type=mime, size=size, duration_seconds=meta.duration_seconds, width=meta.width, height=meta.height)
