from __future__ import annotations
from datetime import date, timedelta

import pytest
from fastapi import status


def _future(days=7) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


async def _create(client, headers, **kw):
    payload = {"title": "Mamie's 80th", "theme": "birthday", "deadline": _future(), "visibility": "private"}
    payload.update(kw)
    r = await client.post("/events", headers=headers, json=payload)
    assert r.status_code == status.HTTP_201_CREATED, r.text
    return r.json()


@pytest.mark.asyncio
async def test_create_event_is_open_and_not_premium(client, signup):
    owner = await signup(client)
    ev = await _create(client, owner, timezone="America/New_York")
    assert ev["status"] == "open"
    assert ev["is_premium_event"] is False
    assert ev["timezone"] == "America/New_York"
    assert ev["public_code"] and ev["share_url"].endswith(ev["public_code"])
    caps = ev["capabilities"]
    assert caps["role"]["is_owner"] is True
    assert caps["actions"]["can_manage_invitations"] is True
    assert caps["limits"]["max_uploads_per_event"] == 1


@pytest.mark.asyncio
async def test_timezone_falls_back_to_client_header(client, signup):
    owner = await signup(client)
    r = await client.post("/events", headers={**owner, "X-Client-Timezone": "Asia/Tokyo"},
                          json={"title": "Trip video"})
    assert r.status_code == 201
    assert r.json()["timezone"] == "Asia/Tokyo"


@pytest.mark.asyncio
async def test_unknown_timezone_rejected(client, signup):
    owner = await signup(client)
    r = await client.post("/events", headers=owner, json={"title": "Nope", "timezone": "Mars/Olympus"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_anonymous_sees_metadata_only_on_private_event(client, signup):
    owner = await signup(client)
    ev = await _create(client, owner)
    r = await client.get(f"/events/{ev['id']}")
    assert r.status_code == 200
    body = r.json()
    assert body["view_scope"] == "metadata"
    assert "capabilities" not in body and "public_code" not in body

    caps = (await client.get(f"/events/{ev['id']}/capabilities")).json()
    assert caps["actions"]["can_view"] is True
    assert caps["actions"]["can_submit_video"] is False


@pytest.mark.asyncio
async def test_public_event_by_code_and_join(client, signup):
    owner = await signup(client)
    guest = await signup(client)
    ev = await _create(client, owner, visibility="public")

    r = await client.get(f"/events/by-code/{ev['public_code'].lower()}", headers=guest)
    assert r.status_code == 200
    body = r.json()
    assert body["view_scope"] == "full"
    assert body["capabilities"]["actions"]["can_join"] is True
    assert body["capabilities"]["actions"]["can_submit_video"] is True

    r = await client.post(f"/events/{ev['id']}/join", headers=guest)
    assert r.status_code == 200, r.text
    caps = r.json()["capabilities"]
    assert caps["role"]["is_invited"] is True
    assert caps["actions"]["can_join"] is False

    # Joining twice is refused
    r = await client.post(f"/events/{ev['id']}/join", headers=guest)
    assert r.status_code == 403

    feed = (await client.get(f"/events/{ev['id']}/activity", headers=owner)).json()
    assert [a["type"] for a in feed][:2] == ["joined", "event_created"]


@pytest.mark.asyncio
async def test_join_private_event_is_refused(client, signup):
    owner = await signup(client)
    guest = await signup(client)
    ev = await _create(client, owner)
    r = await client.post(f"/events/{ev['id']}/join", headers=guest)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_unknown_event_is_404(client):
    r = await client.get("/events/00000000-0000-0000-0000-000000000000")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"
    assert (await client.get("/events/not-a-uuid")).status_code == 404


@pytest.mark.asyncio
async def test_owner_can_reopen_by_moving_deadline(client, signup):
    owner = await signup(client)
    ev = await _create(client, owner, deadline="2020-01-01")
    assert ev["is_closed"] is True
    assert ev["capabilities"]["actions"]["can_submit_video"] is False
    assert ev["capabilities"]["actions"]["can_edit_deadline"] is True

    r = await client.patch(f"/events/{ev['id']}", headers=owner, json={"deadline": _future(3)})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["is_closed"] is False
    assert body["capabilities"]["actions"]["can_submit_video"] is True


@pytest.mark.asyncio
async def test_only_owner_can_patch(client, signup):
    owner = await signup(client)
    guest = await signup(client)
    ev = await _create(client, owner, visibility="public")
    r = await client.patch(f"/events/{ev['id']}", headers=guest, json={"visibility": "private"})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_visibility_toggle(client, signup):
    owner = await signup(client)
    ev = await _create(client, owner)
    r = await client.patch(f"/events/{ev['id']}", headers=owner, json={"visibility": "public", "notifications_enabled": False})
    assert r.status_code == 200
    assert r.json()["visibility"] == "public"
    assert r.json()["notifications_enabled"] is False


@pytest.mark.asyncio
async def test_cancel_closes_event(client, signup):
    owner = await signup(client)
    ev = await _create(client, owner)
    r = await client.post(f"/events/{ev['id']}/cancel", headers=owner)
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "canceled"
    assert body["is_closed"] is True
    assert body["capabilities"]["state"]["is_time_expired"] is False
    r = await client.post(f"/events/{ev['id']}/cancel", headers=owner)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "EVENT_CLOSED"


@pytest.mark.asyncio
async def test_delete_event(client, signup):
    owner = await signup(client)
    guest = await signup(client)
    ev = await _create(client, owner)
    assert (await client.delete(f"/events/{ev['id']}", headers=guest)).status_code == 403
    assert (await client.delete(f"/events/{ev['id']}", headers=owner)).status_code == 204
    assert (await client.get(f"/events/{ev['id']}", headers=owner)).status_code == 404


@pytest.mark.asyncio
async def test_dashboard_lists_owned_and_invited(client, signup):
    owner = await signup(client, email="organizer@example.com")
    guest = await signup(client, email="friend@example.com")
    mine = await _create(client, owner, title="Owner event")
    await _create(client, guest, title="Guest event", invite_emails=["organizer@example.com"])

    rows = (await client.get("/events/dashboard", headers=owner)).json()
    titles = {r["title"]: r for r in rows}
    assert set(titles) == {"Owner event", "Guest event"}
    assert titles["Owner event"]["is_owner"] is True
    assert titles["Guest event"]["is_owner"] is False
    assert titles["Owner event"]["id"] == mine["id"]


@pytest.mark.asyncio
async def test_owner_premium_shows_on_event(client, signup, session_factory):
    from datetime import datetime, timezone
    from sqlalchemy import select
    from gregaplay.models.user import User

    owner = await signup(client, email="premium-owner@example.com")
    async with session_factory() as s:
        u = await s.scalar(select(User).where(User.email == "premium-owner@example.com"))
        u.is_premium_account = True
        u.premium_account_expires_at = datetime.now(timezone.utc) + timedelta(days=30)
        await s.commit()

    guest = await signup(client)
    ev = await _create(client, owner, visibility="public")
    caps = (await client.get(f"/events/{ev['id']}/capabilities", headers=guest)).json()
    assert caps["premium"]["is_owner_premium"] is True
    assert caps["premium"]["is_effectively_premium"] is True
    assert caps["limits"]["max_uploads_per_event"] is None
