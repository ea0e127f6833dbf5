"""
Recording a stored clip as a submission.

The pre-upload check in the route only avoids wasted transfers. The upload
limit and the closed state are decided again here, on facts re-read under a
lock, and the row is inserted before the lock is released.
"""
from __future__ import annotations
import asyncio
from uuid import UUID
from weakref import WeakValueDictionary

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from gregaplay.errors import ExpiredWindow, Unauthorized
from gregaplay.models.event import Event
from gregaplay.models.user import User
from gregaplay.models.video import Video
from gregaplay.services import events as event_service
from gregaplay.services.activity import log_activity
from gregaplay.services.upload_guard import ClipInfo

log = structlog.get_logger()

# The row lock serializes workers; this serializes requests inside one worker
_event_locks: WeakValueDictionary[UUID, asyncio.Lock] = WeakValueDictionary()


def submission_lock(event_id: UUID) -> asyncio.Lock:
    lock = _event_locks.get(event_id)
    if lock is None:
        lock = asyncio.Lock()
        _event_locks[event_id] = lock
    return lock


async def record_submission(
    session: AsyncSession,
    ev: Event,
    user: User,
    *,
    storage_key: str,
    clip: ClipInfo,
    participant_name: str | None,
) -> Video:
    """
    Insert the Video row for an already stored clip, or raise ExpiredWindow /
    Unauthorized when the event closed or the caller hit the upload limit while
    the bytes were in flight. The caller removes the stored object on refusal.
    """
    lock = submission_lock(ev.id)
    async with lock:
        # Held until commit; concurrent uploads to the event queue up here
        locked = await session.get(Event, ev.id, with_for_update=True, populate_existing=True)
        if locked is None:
            raise ExpiredWindow("Event closed")
        ctx = await event_service.load_access_facts(session, locked, user)
        caps = ctx.capabilities
        if caps.state.is_closed:
            raise ExpiredWindow("Event closed")
        if caps.state.has_reached_upload_limit:
            raise Unauthorized("Upload limit reached",
                               details={"max_uploads_per_event": caps.limits.max_uploads_per_event})
        if not caps.actions.can_submit_video:
            raise Unauthorized("You are not allowed to submit a video to this event")

        video = Video(
            event_id=locked.id,
            user_id=user.id,
            participant_name=(participant_name or user.full_name or user.email).strip()[:200],
            storage_key=storage_key,
            mime_type=clip.mime_type,
            size_bytes=clip.size,
            duration_seconds=clip.duration_seconds,
        )
        session.add(video)
        log_activity(session, event_id=locked.id, user_id=user.id, type="uploaded_video",
                     message=f"{video.participant_name} added a video")
        await session.commit()
    return video
