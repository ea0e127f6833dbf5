from __future__ import annotations
import json
from functools import lru_cache
from redis import Redis
from rq import Queue
from gregaplay.config import settings
from gregaplay.services.uploads import ProgressSnapshot

PROGRESS_KEY = "upload:{upload_id}"
CANCEL_KEY = "upload:{upload_id}:cancel"


@lru_cache(maxsize=1)
def get_redis() -> Redis:
    # Connects lazily on first command
    return Redis.from_url(settings.redis_url)


@lru_cache(maxsize=1)
def get_queue() -> Queue:
    return Queue("default", connection=get_redis())


def save_progress(redis: Redis, snap: ProgressSnapshot, ttl_seconds: int | None = None) -> None:
    redis.setex(
        PROGRESS_KEY.format(upload_id=snap.upload_id),
        ttl_seconds or settings.upload_progress_ttl_seconds,
        json.dumps(snap.as_dict()),
    )


def load_progress(redis: Redis, upload_id: str) -> dict | None:
    raw = redis.get(PROGRESS_KEY.format(upload_id=upload_id))
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    return json.loads(raw)


def request_cancel(redis: Redis, upload_id: str, ttl_seconds: int | None = None) -> None:
    redis.setex(CANCEL_KEY.format(upload_id=upload_id), ttl_seconds or settings.upload_progress_ttl_seconds, b"1")


def is_cancel_requested(redis: Redis, upload_id: str) -> bool:
    return redis.get(CANCEL_KEY.format(upload_id=upload_id)) is not None
