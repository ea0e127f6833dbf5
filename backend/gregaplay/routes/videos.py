from __future__ import annotations
import os
import shutil
import tempfile
import uuid

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from redis import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from gregaplay.auth_deps import get_current_user
from gregaplay.config import settings
from gregaplay.db import get_session
from gregaplay.errors import ExpiredWindow, GregaError, NotFound, Unauthorized, ValidationError
from gregaplay.models.user import User
from gregaplay.models.video import Video
from gregaplay.schemas.video import UploadProgressPublic, VideoPublic
from gregaplay.services import events as event_service
from gregaplay.services.queue import get_redis, is_cancel_requested, load_progress, request_cancel, save_progress
from gregaplay.services.storage import Storage, get_storage
from gregaplay.services.submissions import record_submission
from gregaplay.services.upload_guard import check_clip
from gregaplay.services.uploads import UploadProgress, store_clip

router = APIRouter(tags=["videos"])
log = structlog.get_logger()


def to_public(v: Video) -> VideoPublic:
    return VideoPublic(
        id=v.id, event_id=v.event_id, user_id=v.user_id, participant_name=v.participant_name,
        mime_type=v.mime_type, size_bytes=v.size_bytes, duration_seconds=v.duration_seconds,
        created_at=v.created_at, content_url=f"/events/{v.event_id}/videos/{v.id}/content",
    )


def _spool_to_disk(upload: UploadFile) -> tuple[str, int]:
    """Copy the request body to a named temp file (ffprobe needs a path). Returns (path, size)."""
    suffix = os.path.splitext(upload.filename or "")[1][:10]
    fd, path = tempfile.mkstemp(prefix="clip-", suffix=suffix)
    with os.fdopen(fd, "wb") as out:
        upload.file.seek(0)
        shutil.copyfileobj(upload.file, out)
    return path, os.path.getsize(path)


@router.post("/events/{event_id}/videos", response_model=VideoPublic, status_code=201)
async def upload_video(
    event_id: str,
    response: Response,
    file: UploadFile = File(...),
    participant_name: str | None = Form(default=None),
    upload_id: str | None = Form(default=None, max_length=64),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    redis: Redis = Depends(get_redis),
):
    ev = await event_service.load_event(session, event_id)
    ctx = await event_service.load_access_facts(session, ev, user)
    caps = ctx.capabilities
    if caps.state.is_closed:
        raise ExpiredWindow("Event closed")
    if caps.state.has_reached_upload_limit:
        raise Unauthorized("Upload limit reached", details={"max_uploads_per_event": caps.limits.max_uploads_per_event})
    if not caps.actions.can_submit_video:
        raise Unauthorized("You are not allowed to submit a video to this event")

    upload_id = upload_id or uuid.uuid4().hex
    previous = await run_in_threadpool(load_progress, redis, upload_id)
    if previous is not None and previous.get("account_id") != str(user.id):
        raise ValidationError("This upload id is already in use.", constraint="upload_id")
    response.headers["X-Upload-ID"] = upload_id
    progress = UploadProgress(
        upload_id, None,
        observer=lambda snap: save_progress(redis, snap),
        account_id=str(user.id),
        cancel_requested=lambda: is_cancel_requested(redis, upload_id),
    )
    # Visible to the progress and cancel endpoints from here on
    await run_in_threadpool(progress.publish)

    path, size = await run_in_threadpool(_spool_to_disk, file)
    try:
        info = await run_in_threadpool(check_clip, file.content_type, size, path, caps.limits, settings.ffprobe_binary)
        progress.start(size)
        with open(path, "rb") as fh:
            key = await run_in_threadpool(
                lambda: store_clip(
                    storage, event_id=ev.id, account_id=user.id, file=fh, size=size,
                    content_type=info.mime_type, file_name=file.filename, progress=progress,
                )
            )
    finally:
        os.unlink(path)

    try:
        video = await record_submission(session, ev, user, storage_key=key, clip=info, participant_name=participant_name)
    except GregaError:
        # Closed or over the limit while the bytes were in flight
        await run_in_threadpool(storage.remove, key)
        raise
    log.info("video_uploaded", event_id=str(ev.id), video_id=str(video.id), size=size,
             duration=info.duration_seconds, upload_id=upload_id)
    return to_public(video)


async def _own_progress(redis: Redis, upload_id: str, user: User) -> dict:
    data = await run_in_threadpool(load_progress, redis, upload_id)
    # Someone else's upload looks exactly like an unknown one
    if data is None or data.get("account_id") != str(user.id):
        raise HTTPException(status_code=404, detail="Unknown upload")
    return data


@router.get("/uploads/{upload_id}/progress", response_model=UploadProgressPublic)
async def upload_progress(upload_id: str, user: User = Depends(get_current_user), redis: Redis = Depends(get_redis)):
    data = await _own_progress(redis, upload_id, user)
    return UploadProgressPublic(**data)


@router.post("/uploads/{upload_id}/cancel", status_code=202)
async def cancel_upload(upload_id: str, user: User = Depends(get_current_user), redis: Redis = Depends(get_redis)):
    data = await _own_progress(redis, upload_id, user)
    if data.get("done"):
        raise HTTPException(status_code=409, detail="Upload already finished")
    await run_in_threadpool(request_cancel, redis, upload_id)
    log.info("upload_cancel_requested", upload_id=upload_id, user_id=str(user.id))
    return {"upload_id": upload_id, "cancel_requested": True}


@router.get("/events/{event_id}/videos", response_model=list[VideoPublic])
async def list_videos(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    ev = await event_service.load_event(session, event_id)
    ctx = await event_service.load_access_facts(session, ev, user)
    caps = ctx.capabilities
    event_service.require(caps.state.view_scope == "full", "You cannot see this event")
    q = select(Video).where(Video.event_id == ev.id)
    if not caps.actions.can_view_submissions:
        q = q.where(Video.user_id == user.id)
    rows = (await session.execute(q.order_by(Video.created_at.asc()))).scalars().all()
    return [to_public(v) for v in rows]


async def _load_video(session: AsyncSession, event_id, video_id: uuid.UUID) -> Video:
    v = await session.scalar(select(Video).where(Video.id == video_id, Video.event_id == event_id))
    if v is None:
        raise NotFound("Video not found")
    return v


@router.get("/events/{event_id}/videos/{video_id}/content")
async def video_content(
    event_id: str,
    video_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    ev = await event_service.load_event(session, event_id)
    ctx = await event_service.load_access_facts(session, ev, user)
    v = await _load_video(session, ev.id, video_id)
    if not (ctx.capabilities.actions.can_view_submissions or v.user_id == user.id):
        raise Unauthorized("You cannot watch this video")
    try:
        data, content_type = await run_in_threadpool(storage.get_bytes, v.storage_key)
    except FileNotFoundError:
        raise NotFound("Video file is missing")
    return Response(content=data, media_type=content_type or v.mime_type,
                     headers={"Cache-Control": "private, max-age=3600"})


@router.delete("/events/{event_id}/videos/{video_id}", status_code=204)
async def delete_video(
    event_id: str,
    video_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    ev = await event_service.load_event(session, event_id)
    ctx = await event_service.load_access_facts(session, ev, user)
    event_service.require(ctx.capabilities.role.is_owner, "Only the organizer can delete videos")
    v = await _load_video(session, ev.id, video_id)
    key = v.storage_key
    await session.delete(v)
    await session.commit()
    try:
        await run_in_threadpool(storage.remove, key)
    except Exception as e:
        log.warning("storage_remove_failed", key=key, error=str(e))
    return Response(status_code=204)
