from __future__ import annotations
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from gregaplay.models.event import Invitation


async def _event(client, headers, **kw):
    payload = {"title": "Wedding clips", "deadline": (date.today() + timedelta(days=10)).isoformat()}
    payload.update(kw)
    r = await client.post("/events", headers=headers, json=payload)
    assert r.status_code == 201, r.text
    return r.json()


async def _token(session_factory, event_id: str, email: str) -> str:
    import uuid
    async with session_factory() as s:
        inv = await s.scalar(select(Invitation).where(
            Invitation.event_id == uuid.UUID(event_id), Invitation.email == email))
        return inv.token


@pytest.mark.asyncio
async def test_bulk_invite_dedupes_and_enqueues_emails(client, signup, queue):
    owner = await signup(client, email="bride@example.com")
    ev = await _event(client, owner)
    r = await client.post(f"/events/{ev['id']}/invitations", headers=owner, json={
        "emails": ["Ann@Example.com", "ann@example.com", "bob@example.com", "bride@example.com"],
        "message": "Send us a short video!",
    })
    assert r.status_code == 201, r.text
    body = r.json()
    assert sorted(i["email"] for i in body["created"]) == ["ann@example.com", "bob@example.com"]
    assert body["skipped"] == ["bride@example.com"]
    assert all(i["status"] == "sent" for i in body["created"])

    name, args, _ = queue.jobs[-1]
    assert name == "send_invitation_emails"
    assert args[0] == ev["id"] and len(args[1]) == 2

    # Second batch: already invited addresses are skipped
    r = await client.post(f"/events/{ev['id']}/invitations", headers=owner, json={"emails": ["bob@example.com", "cy@example.com"]})
    assert [i["email"] for i in r.json()["created"]] == ["cy@example.com"]
    assert r.json()["skipped"] == ["bob@example.com"]

    listed = (await client.get(f"/events/{ev['id']}/invitations", headers=owner)).json()
    assert {i["email"] for i in listed} == {"ann@example.com", "bob@example.com", "cy@example.com"}


@pytest.mark.asyncio
async def test_invite_on_closed_event_is_expired_window(client, signup):
    owner = await signup(client)
    ev = await _event(client, owner, deadline="2020-01-01")
    r = await client.post(f"/events/{ev['id']}/invitations", headers=owner, json={"emails": ["late@example.com"]})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "EVENT_CLOSED"


@pytest.mark.asyncio
async def test_non_owner_cannot_invite(client, signup):
    owner = await signup(client)
    other = await signup(client)
    ev = await _event(client, owner, visibility="public")
    r = await client.post(f"/events/{ev['id']}/invitations", headers=other, json={"emails": ["x@example.com"]})
    assert r.status_code == 403
    assert (await client.get(f"/events/{ev['id']}/invitations", headers=other)).status_code == 403


@pytest.mark.asyncio
async def test_invitee_accepts_and_gains_full_view(client, signup, session_factory):
    owner = await signup(client)
    ev = await _event(client, owner, invite_emails=["guest@example.com"])
    token = await _token(session_factory, ev["id"], "guest@example.com")

    preview = await client.get(f"/invitations/{token}")
    assert preview.status_code == 200
    assert preview.json()["event_title"] == "Wedding clips"
    assert preview.json()["is_closed"] is False

    guest = await signup(client, email="guest@example.com")
    caps = (await client.get(f"/events/{ev['id']}/capabilities", headers=guest)).json()
    assert caps["role"]["is_invited"] is True
    assert caps["state"]["view_scope"] == "full"

    r = await client.post(f"/invitations/{token}/accept", headers=guest)
    assert r.status_code == 200
    assert r.json()["status"] == "accepted"


@pytest.mark.asyncio
async def test_wrong_account_cannot_accept(client, signup, session_factory):
    owner = await signup(client)
    ev = await _event(client, owner, invite_emails=["right@example.com"])
    token = await _token(session_factory, ev["id"], "right@example.com")
    intruder = await signup(client)
    r = await client.post(f"/invitations/{token}/accept", headers=intruder)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_declined_invitation_grants_nothing(client, signup, session_factory):
    owner = await signup(client)
    ev = await _event(client, owner, invite_emails=["maybe@example.com"])
    token = await _token(session_factory, ev["id"], "maybe@example.com")
    guest = await signup(client, email="maybe@example.com")
    r = await client.post(f"/invitations/{token}/decline", headers=guest)
    assert r.json()["status"] == "declined"
    caps = (await client.get(f"/events/{ev['id']}/capabilities", headers=guest)).json()
    assert caps["role"]["is_invited"] is False
    assert caps["actions"]["can_submit_video"] is False


@pytest.mark.asyncio
async def test_remove_invitation(client, signup):
    owner = await signup(client)
    ev = await _event(client, owner, invite_emails=["gone@example.com"])
    listed = (await client.get(f"/events/{ev['id']}/invitations", headers=owner)).json()
    inv_id = listed[0]["id"]
    assert (await client.delete(f"/events/{ev['id']}/invitations/{inv_id}", headers=owner)).status_code == 204
    assert (await client.get(f"/events/{ev['id']}/invitations", headers=owner)).json() == []
    assert (await client.delete(f"/events/{ev['id']}/invitations/{inv_id}", headers=owner)).status_code == 404


@pytest.mark.asyncio
async def test_unknown_token_is_404(client):
    assert (await client.get("/invitations/does-not-exist")).status_code == 404
