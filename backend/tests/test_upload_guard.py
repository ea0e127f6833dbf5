from __future__ import annotations
import pytest

from gregaplay.errors import ValidationError
from gregaplay.schemas.capabilities import Limits
from gregaplay.services import upload_guard
from gregaplay.services.media import MediaProbeError, VideoMetadata

LIMITS = Limits(max_uploads_per_event=1, max_clip_duration_seconds=30, max_clip_size_bytes=50 * 1024 * 1024)


def _probe_returning(seconds):
    def probe(path, ffprobe_bin="ffprobe", timeout=30.0):
        return VideoMetadata(duration_seconds=seconds, width=1080, height=1920, codec="h264")
    return probe


def _constraint(exc_info) -> str:
    return exc_info.value.details["constraint"]


def test_accepts_short_clip(monkeypatch):
    monkeypatch.setattr(upload_guard, "probe_video", _probe_returning(29.5))
    info = upload_guard.check_clip("video/mp4", 1024, "/tmp/clip.mp4", LIMITS)
    assert info.duration_seconds == 29.5
    assert info.mime_type == "video/mp4"


def test_rejects_non_video_before_probing(monkeypatch):
    def boom(*a, **kw):
        raise AssertionError("ffprobe should not run")
    monkeypatch.setattr(upload_guard, "probe_video", boom)
    with pytest.raises(ValidationError) as ei:
        upload_guard.check_clip("image/png", 1024, "/tmp/x.png", LIMITS)
    assert _constraint(ei) == "mime_type"


def test_rejects_oversized_file(monkeypatch):
    monkeypatch.setattr(upload_guard, "probe_video", _probe_returning(5))
    with pytest.raises(ValidationError) as ei:
        upload_guard.check_clip("video/mp4", LIMITS.max_clip_size_bytes + 1, "/tmp/clip.mp4", LIMITS)
    assert _constraint(ei) == "size"
    assert "50 MB" in ei.value.message


def test_unreadable_duration(monkeypatch):
    def broken(*a, **kw):
        raise MediaProbeError("ffprobe could not read the file")
    monkeypatch.setattr(upload_guard, "probe_video", broken)
    with pytest.raises(ValidationError) as ei:
        upload_guard.check_clip("video/quicktime", 1024, "/tmp/clip.mov", LIMITS)
    assert _constraint(ei) == "unreadable"


def test_rejects_long_clip(monkeypatch):
    monkeypatch.setattr(upload_guard, "probe_video", _probe_returning(30.01))
    with pytest.raises(ValidationError) as ei:
        upload_guard.check_clip("video/mp4", 1024, "/tmp/clip.mp4", LIMITS)
    assert _constraint(ei) == "duration"
    assert ei.value.status_code == 422
