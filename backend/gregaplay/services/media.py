from __future__ import annotations
import io
import json
import subprocess
from dataclasses import dataclass
from PIL import Image, UnidentifiedImageError


ALLOWED_IMAGE_MIME = {"image/jpeg", "image/png"}
EXT_FOR_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
    "video/webm": "webm",
}


class MediaProbeError(Exception):
    pass


@dataclass(frozen=True)
class VideoMetadata:
    duration_seconds: float
    width: int | None = None
    height: int | None = None
    codec: str | None = None


def sniff_image_mime(data: bytes) -> str | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format == "JPEG":
                return "image/jpeg"
            elif img.format == "PNG":
                return "image/png"
            return None
    except Exception:
        return None


def analyze_image(data: bytes) -> tuple[str, int, int]:
    """
    Validate an avatar or cover image. Returns (mime, width, height).
    Raises ValueError for anything that is not an intact JPEG/PNG.
    """
    mime = sniff_image_mime(data)
    if mime not in ALLOWED_IMAGE_MIME:
        raise ValueError("Unsupported image type")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
        with Image.open(io.BytesIO(data)) as img2:
            width, height = img2.size
        return mime, width, height
    except UnidentifiedImageError:
        raise ValueError("Invalid image file")


def probe_video(path: str, ffprobe_bin: str = "ffprobe", timeout: float = 30.0) -> VideoMetadata:
    """
    Read container/stream metadata with ffprobe. Only the header and index
    are decoded, not the whole file.
    """
    cmd = [
        ffprobe_bin,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise MediaProbeError(f"ffprobe failed: {e}") from e
    if result.returncode != 0:
        raise MediaProbeError("ffprobe could not read the file")
    try:
        data = json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise MediaProbeError("ffprobe returned invalid JSON") from e

    video_stream = None
    for stream in data.get("streams", []):
        if stream.get("codec_type") == "video":
            video_stream = stream
            break
    if video_stream is None:
        raise MediaProbeError("No video stream found")

    # Prefer container duration, fall back to the stream's
    raw = (data.get("format") or {}).get("duration") or video_stream.get("duration")
    try:
        duration = float(raw)
    except (TypeError, ValueError):
        raise MediaProbeError("Unknown video duration")

    return VideoMetadata(
        duration_seconds=duration,
        width=video_stream.get("width"),
        height=video_stream.get("height"),
        codec=video_stream.get("codec_name"),
    )


def ext_for_mime(mime: str) -> str:
    return EXT_FOR_MIME.get(mime, "bin")
