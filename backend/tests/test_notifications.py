from __future__ import annotations
import pytest
from sqlalchemy import select

from gregaplay.models.activity import Notification
from gregaplay.models.user import User


async def _notify(session_factory, email: str, n: int = 2):
    async with session_factory() as s:
        user = await s.scalar(select(User).where(User.email == email))
        for i in range(n):
            s.add(Notification(user_id=user.id, title=f"Event: Party {i}", message="A new video", type="event"))
        await s.commit()


@pytest.mark.asyncio
async def test_list_and_mark_read(client, signup, session_factory):
    headers = await signup(client, email="reader@example.com")
    await _notify(session_factory, "reader@example.com")

    items = (await client.get("/notifications", headers=headers)).json()
    assert len(items) == 2 and not any(n["read"] for n in items)

    r = await client.post(f"/notifications/{items[0]['id']}/read", headers=headers)
    assert r.status_code == 200 and r.json()["read"] is True

    r = await client.post("/notifications/read-all", headers=headers)
    assert r.json() == {"updated": 1}
    assert all(n["read"] for n in (await client.get("/notifications", headers=headers)).json())


@pytest.mark.asyncio
async def test_cannot_read_someone_elses_notification(client, signup, session_factory):
    await signup(client, email="owner-of-note@example.com")
    other = await signup(client)
    await _notify(session_factory, "owner-of-note@example.com", n=1)
    async with session_factory() as s:
        note_id = await s.scalar(select(Notification.id))
    r = await client.post(f"/notifications/{note_id}/read", headers=other)
    assert r.status_code == 404
