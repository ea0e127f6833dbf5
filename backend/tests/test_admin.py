from __future__ import annotations
import uuid
from datetime import date, timedelta

import pytest

from gregaplay.config import settings
from gregaplay.services import upload_guard
from gregaplay.services.media import VideoMetadata

CLIP = b"\x00\x00\x00\x18ftypmp42" + b"\x01" * 1024


@pytest.fixture(autouse=True)
def fake_probe(monkeypatch):
    def probe(path, ffprobe_bin="ffprobe", timeout=30.0):
        return VideoMetadata(duration_seconds=8.0, width=720, height=1280, codec="h264")

    monkeypatch.setattr(upload_guard, "probe_video", probe)


@pytest.fixture
def admin_email(monkeypatch):
    email = f"admin-{uuid.uuid4().hex[:8]}@example.com"
    monkeypatch.setattr(settings, "admin_emails", [email])
    return email


@pytest.mark.asyncio
async def test_stats_are_admin_only(client, signup, admin_email):
    r = await client.get("/admin/stats", headers=await signup(client))
    assert r.status_code == 403
    assert (await client.get("/admin/stats")).status_code in (401, 403)


@pytest.mark.asyncio
async def test_admin_stats(client, signup, admin_email):
    admin = await signup(client, email=admin_email)
    me = (await client.get("/auth/me", headers=admin)).json()
    assert me["is_admin"] is True

    owner = await signup(client)
    guest = await signup(client)
    deadline = (date.today() + timedelta(days=3)).isoformat()
    ev = (await client.post("/events", headers=owner, json={"title": "Birthday", "deadline": deadline, "visibility": "public"})).json()
    r = await client.post(f"/events/{ev['id']}/videos", headers=guest,
                          files={"file": ("clip.mp4", CLIP, "video/mp4")})
    assert r.status_code == 201, r.text

    r = await client.get("/admin/stats", headers=admin)
    assert r.status_code == 200, r.text
    assert r.json() == {
        "weekly_active_users": 2,
        "events_last_7d": 1,
        "total_videos": 1,
        "completed_events": 0,
    }
