from __future__ import annotations
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from gregaplay.db import Base, get_session
from gregaplay.main import app
from gregaplay.services.queue import get_queue, get_redis
from gregaplay.services.storage import get_storage
import gregaplay.models.user  # noqa: F401
import gregaplay.models.event  # noqa: F401
import gregaplay.models.video  # noqa: F401
import gregaplay.models.billing  # noqa: F401
import gregaplay.models.activity  # noqa: F401


class FakeStorage:
    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}

    def put_stream(self, key, stream, length, content_type):
        buf = bytearray()
        while True:
            chunk = stream.read(64 * 1024)
            if not chunk:
                break
            buf.extend(chunk)
        self.objects[key] = (bytes(buf), content_type)

    def put_bytes(self, key, data, content_type):
        self.objects[key] = (data, content_type)

    def get_bytes(self, key):
        if key not in self.objects:
            raise FileNotFoundError(key)
        return self.objects[key]

    def remove(self, key):
        self.objects.pop(key, None)

    def presign_get(self, key):
        return f"https://storage.test/{key}"


class FakeQueue:
    def __init__(self):
        self.jobs: list[tuple] = []

    def enqueue(self, func, *args, **kwargs):
        self.jobs.append((func.__name__, args, kwargs))


class FakeRedis:
    def __init__(self):
        self.data: dict[str, bytes] = {}

    def setex(self, key, ttl, value):
        self.data[key] = value.encode() if isinstance(value, str) else value

    def get(self, key):
        return self.data.get(key)


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def redis():
    return FakeRedis()


@pytest_asyncio.fixture
async def client(session_factory, storage, queue, redis):
    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_queue] = lambda: queue
    app.dependency_overrides[get_redis] = lambda: redis
    async with AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def register_login(ac: AsyncClient, email: str | None = None, birth_date: str = "1990-05-17") -> dict:
    """Returns auth headers for a fresh account."""
    email = email or f"user-{uuid.uuid4().hex[:10]}@example.com"
    r = await ac.post("/auth/register", json={
        "email": email,
        "password": "supersecret",
        "first_name": "Test",
        "last_name": "User",
        "birth_date": birth_date,
        "accept_terms": True,
    })
    assert r.status_code == 201, r.text
    r = await ac.post("/auth/login", json={"email": email, "password": "supersecret"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access']}"}


@pytest.fixture
def signup():
    return register_login
