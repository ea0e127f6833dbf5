import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi import status
from sqlalchemy import select

from gregaplay.models.user import PasswordReset

from gregaplay.services.age_gate import years_before


def _payload(email, birth_date="1990-05-17", **kw):
    data = {
        "email": email, "password": "supersecret", "first_name": "Léa", "last_name": "Martin",
        "birth_date": birth_date, "accept_terms": True,
    }
    data.update(kw)
    return data


@pytest.mark.asyncio
async def test_register_login_me(client):
    email = f"test-{uuid.uuid4().hex[:8]}@example.com"
    r = await client.post("/auth/register", json=_payload(email))
    assert r.status_code == status.HTTP_201_CREATED, r.text
    assert r.json()["full_name"] == "Léa Martin"

    r = await client.post("/auth/login", json={"email": email, "password": "supersecret"})
    assert r.status_code == 200
    tokens = r.json()
    assert "access" in tokens and "refresh" in tokens

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access']}"})
    assert me.status_code == 200
    body = me.json()
    assert body["email"] == email
    assert body["premium"] == {"is_active": False, "source": None, "expires_at": None, "trial_available": True}

    r = await client.post("/auth/refresh", headers={"Authorization": f"Bearer {tokens['refresh']}"})
    assert r.status_code == 200
    assert r.json()["access"]


@pytest.mark.asyncio
async def test_refresh_rejects_access_token(client, signup):
    headers = await signup(client)
    r = await client.post("/auth/refresh", headers=headers)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_duplicate_email_is_409(client):
    email = f"dup-{uuid.uuid4().hex[:8]}@example.com"
    assert (await client.post("/auth/register", json=_payload(email))).status_code == 201
    r = await client.post("/auth/register", json=_payload(email.upper()))
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_underage_registration_is_refused(client):
    born = years_before(date.today(), 15) + timedelta(days=1)
    r = await client.post("/auth/register", json=_payload("young@example.com", birth_date=born.isoformat()))
    assert r.status_code == 422
    err = r.json()["error"]
    assert err["code"] == "VALIDATION_FAILED"
    assert err["details"]["constraint"] == "age"
    # Nothing stored
    r = await client.post("/auth/login", json={"email": "young@example.com", "password": "supersecret"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_malformed_birth_date_is_refused(client):
    r = await client.post("/auth/register", json=_payload("odd@example.com", birth_date="17/05/1990"))
    assert r.status_code == 422
    assert r.json()["error"]["details"]["constraint"] == "age"
    r = await client.post("/auth/register", json=_payload("tail@example.com", birth_date="1990-05-17garbage"))
    assert r.status_code == 422
    assert r.json()["error"]["details"]["constraint"] == "age"


@pytest.mark.asyncio
async def test_terms_must_be_accepted(client):
    r = await client.post("/auth/register", json=_payload("terms@example.com", accept_terms=False))
    assert r.status_code == 422
    assert r.json()["error"]["details"]["constraint"] == "terms"


@pytest.mark.asyncio
async def test_me_requires_token(client):
    r = await client.get("/auth/me")
    assert r.status_code in (401, 403)
    r = await client.get("/auth/me", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_avatar_upload(client, signup, storage):
    import io
    from PIL import Image
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (200, 10, 10)).save(buf, format="PNG")
    headers = await signup(client)
    r = await client.post("/auth/me/avatar", headers=headers, files={"file": ("me.png", buf.getvalue(), "image/png")})
    assert r.status_code == 200, r.text
    assert r.json()["avatar_url"].startswith("https://storage.test/avatars/")
    assert any(k.startswith("avatars/") and k.endswith(".png") for k in storage.objects)

    r = await client.post("/auth/me/avatar", headers=headers, files={"file": ("x.png", b"not an image", "image/png")})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_profile_update(client, signup):
    headers = await signup(client)
    r = await client.patch("/auth/me", headers=headers, json={
        "full_name": "Léa Dupont", "country": "France", "phone": "+33612345678", "gender": "female",
        "accept_news": True,
    })
    assert r.status_code == 200, r.text
    me = (await client.get("/auth/me", headers=headers)).json()
    assert me["full_name"] == "Léa Dupont"
    assert me["phone"] == "+33612345678"
    assert me["gender"] == "female"
    assert me["accept_news"] is True
    assert me["is_admin"] is False

    # Untouched fields stay as they were
    r = await client.patch("/auth/me", headers=headers, json={"country": "Belgium"})
    assert r.json()["full_name"] == "Léa Dupont" and r.json()["country"] == "Belgium"


@pytest.mark.asyncio
async def test_profile_update_keeps_the_age_gate(client, signup):
    headers = await signup(client)
    too_young = years_before(date.today(), 15) + timedelta(days=1)
    r = await client.patch("/auth/me", headers=headers, json={"birth_date": too_young.isoformat()})
    assert r.status_code == 422
    assert r.json()["error"]["details"]["constraint"] == "age"
    assert (await client.get("/auth/me", headers=headers)).json()["birth_date"] == "1990-05-17"

    r = await client.patch("/auth/me", headers=headers, json={"birth_date": "1990-05-17garbage"})
    assert r.status_code == 422

    r = await client.patch("/auth/me", headers=headers, json={"phone": "0612"})
    assert r.status_code == 422
    r = await client.patch("/auth/me", headers=headers, json={"gender": "unknown"})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_password_reset_flow(client, signup, queue):
    email = f"reset-{uuid.uuid4().hex[:8]}@example.com"
    await signup(client, email=email)

    r = await client.post("/auth/password/forgot", json={"email": email.upper()})
    assert r.status_code == 202
    name, (to, token), _ = queue.jobs[-1]
    assert name == "send_password_reset_email"
    assert to == email

    r = await client.post("/auth/password/reset", json={"token": token, "password": "brand-new-pass"})
    assert r.status_code == 200, r.text
    assert "access" in r.json()

    assert (await client.post("/auth/login", json={"email": email, "password": "supersecret"})).status_code == 401
    assert (await client.post("/auth/login", json={"email": email, "password": "brand-new-pass"})).status_code == 200

    # Single use
    r = await client.post("/auth/password/reset", json={"token": token, "password": "another-pass"})
    assert r.status_code == 422
    assert r.json()["error"]["details"]["constraint"] == "token"


@pytest.mark.asyncio
async def test_forgot_password_does_not_reveal_accounts(client, queue):
    r = await client.post("/auth/password/forgot", json={"email": "nobody@example.com"})
    assert r.status_code == 202
    assert r.json() == {"status": "sent"}
    assert queue.jobs == []


@pytest.mark.asyncio
async def test_new_reset_request_voids_the_previous_link(client, signup, queue):
    email = f"reset-{uuid.uuid4().hex[:8]}@example.com"
    await signup(client, email=email)
    await client.post("/auth/password/forgot", json={"email": email})
    first = queue.jobs[-1][1][1]
    await client.post("/auth/password/forgot", json={"email": email})
    second = queue.jobs[-1][1][1]

    r = await client.post("/auth/password/reset", json={"token": first, "password": "brand-new-pass"})
    assert r.status_code == 422
    r = await client.post("/auth/password/reset", json={"token": second, "password": "brand-new-pass"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_expired_reset_link_is_refused(client, signup, queue, session_factory):
    email = f"reset-{uuid.uuid4().hex[:8]}@example.com"
    await signup(client, email=email)
    await client.post("/auth/password/forgot", json={"email": email})
    token = queue.jobs[-1][1][1]

    async with session_factory() as s:
        pr = (await s.execute(select(PasswordReset))).scalar_one()
        pr.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        await s.commit()

    r = await client.post("/auth/password/reset", json={"token": token, "password": "brand-new-pass"})
    assert r.status_code == 422
    assert r.json()["error"]["message"] == "This reset link has expired."
    async with session_factory() as s:
        assert (await s.execute(select(PasswordReset.status))).scalar_one() == "expired"
