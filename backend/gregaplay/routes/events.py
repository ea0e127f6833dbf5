from __future__ import annotations
from fastapi import APIRouter, Depends, Header, Query, Response
from rq import Queue
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from gregaplay.auth_deps import get_current_user, get_optional_user
from gregaplay.config import settings
from gregaplay.db import get_session
from gregaplay.errors import ExpiredWindow, NotFound
from gregaplay.models.event import Event
from gregaplay.models.user import User
from gregaplay.schemas.capabilities import Capabilities
from gregaplay.schemas.event import (
    DashboardEvent, EventCreate, EventMetadata, EventPublic, EventUpdate, FinalVideoRequest, FinalVideoStatus,
)
from gregaplay.schemas.video import ActivityPublic
from gregaplay.services import events as event_service
from gregaplay.services.activity import list_activity
from gregaplay.services.events import AccessContext, require
from gregaplay.services.invitations import add_invitations
from gregaplay.services.queue import get_queue
from gregaplay.services.storage import Storage, get_storage
from gregaplay.jobs.process_final_video import process_final_video
from gregaplay.jobs.send_invitation_emails import send_invitation_emails

router = APIRouter(prefix="/events", tags=["events"])
log = structlog.get_logger()


def share_url(code: str) -> str:
    return f"{settings.public_web_url.rstrip('/')}/e/{code}"


def final_video_url(ev, storage: Storage | None) -> str | None:
    if ev.final_video_key and storage is not None:
        return storage.presign_get(ev.final_video_key)
    return ev.final_video_url


def to_public(ctx: AccessContext, storage: Storage | None = None) -> EventPublic | EventMetadata:
    ev = ctx.event
    caps = ctx.capabilities
    if caps.state.view_scope == "metadata":
        return EventMetadata(
            id=ev.id, title=ev.title, theme=ev.theme, status=ev.status, deadline=ev.deadline,
            visibility=ev.visibility, is_closed=caps.state.is_closed, view_scope="metadata",
        )
    return EventPublic(
        id=ev.id, title=ev.title, theme=ev.theme, status=ev.status, deadline=ev.deadline,
        visibility=ev.visibility, is_closed=caps.state.is_closed, view_scope="full",
        owner_id=ev.owner_id, description=ev.description, timezone=ev.timezone,
        public_code=ev.public_code, share_url=share_url(ev.public_code),
        notifications_enabled=ev.notifications_enabled,
        is_premium_event=caps.premium.is_event_boost_active,
        premium_expires_at=ev.premium_expires_at,
        video_duration=ev.video_duration, max_clip_duration=ev.max_clip_duration,
        final_video_url=final_video_url(ev, storage),
        created_at=ev.created_at,
        capabilities=caps,
    )


async def _context(session: AsyncSession, event_id: str, user: User | None) -> AccessContext:
    ev = await event_service.load_event(session, event_id)
    return await event_service.load_access_facts(session, ev, user)


@router.post("", response_model=EventPublic, status_code=201)
async def create_event(
    payload: EventCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    queue: Queue = Depends(get_queue),
    x_client_tz: str | None = Header(default=None, alias="X-Client-Timezone"),
):
    ev = await event_service.create_event(session, user, payload, client_tz=x_client_tz)
    created, _skipped = await add_invitations(
        session, ev, payload.invite_emails, payload.invitation_message, owner_email=user.email
    )
    await session.commit()
    if created:
        queue.enqueue(send_invitation_emails, str(ev.id), [str(i.id) for i in created])
    ctx = await event_service.load_access_facts(session, ev, user)
    return to_public(ctx)


@router.get("/dashboard", response_model=list[DashboardEvent])
async def dashboard(session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    rows = await event_service.dashboard_events(session, user)
    return [
        DashboardEvent(
            id=ev.id, title=ev.title, status=ev.status, deadline=ev.deadline, visibility=ev.visibility,
            is_owner=is_owner, is_closed=caps.state.is_closed,
            is_effectively_premium=caps.premium.is_effectively_premium,
            video_count=video_count, invitation_count=inv_count, created_at=ev.created_at,
        )
        for ev, is_owner, caps, video_count, inv_count in rows
    ]


@router.get("/by-code/{code}", response_model=EventPublic | EventMetadata)
async def get_by_code(
    code: str,
    session: AsyncSession = Depends(get_session),
    user: User | None = Depends(get_optional_user),
    storage: Storage = Depends(get_storage),
):
    ev = await event_service.load_event_by_code(session, code)
    ctx = await event_service.load_access_facts(session, ev, user)
    return to_public(ctx, storage)


@router.get("/{event_id}", response_model=EventPublic | EventMetadata)
async def get_event(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    user: User | None = Depends(get_optional_user),
    storage: Storage = Depends(get_storage),
):
    ctx = await _context(session, event_id, user)
    return to_public(ctx, storage)


@router.get("/{event_id}/capabilities", response_model=Capabilities)
async def get_capabilities(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    user: User | None = Depends(get_optional_user),
):
    ctx = await _context(session, event_id, user)
    return ctx.capabilities


@router.patch("/{event_id}", response_model=EventPublic)
async def update_event(
    event_id: str,
    payload: EventUpdate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    ctx = await _context(session, event_id, user)
    await event_service.update_event(session, ctx, payload)
    await session.commit()
    # Deadline or visibility may have changed what the caller can do
    ctx = await event_service.load_access_facts(session, ctx.event, user)
    return to_public(ctx)


@router.post("/{event_id}/cancel", response_model=EventPublic)
async def cancel_event(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    ctx = await _context(session, event_id, user)
    await event_service.cancel_event(session, ctx)
    await session.commit()
    ctx = await event_service.load_access_facts(session, ctx.event, user)
    return to_public(ctx)


@router.delete("/{event_id}", status_code=204)
async def delete_event(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    ctx = await _context(session, event_id, user)
    keys = await event_service.delete_event(session, ctx)
    await session.commit()
    for key in keys:
        try:
            storage.remove(key)
        except Exception as e:
            # Rows are gone; a leftover object is only wasted space
            log.warning("storage_remove_failed", key=key, error=str(e))
    return Response(status_code=204)


@router.post("/{event_id}/join", response_model=EventPublic)
async def join_event(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    ctx = await _context(session, event_id, user)
    await event_service.join_event(session, ctx)
    await session.commit()
    ctx = await event_service.load_access_facts(session, ctx.event, user)
    return to_public(ctx)


@router.get("/{event_id}/activity", response_model=list[ActivityPublic])
async def event_activity(
    event_id: str,
    limit: int = Query(50, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    user: User | None = Depends(get_optional_user),
):
    ctx = await _context(session, event_id, user)
    caps = ctx.capabilities
    require(caps.actions.can_view and caps.state.view_scope == "full", "You cannot see this event's activity")
    rows = await list_activity(session, ctx.event.id, limit)
    return [ActivityPublic(id=a.id, event_id=a.event_id, user_id=a.user_id, type=a.type,
                           message=a.message, created_at=a.created_at) for a in rows]

# ---------- final video ----------

@router.post("/{event_id}/final-video", response_model=FinalVideoStatus, status_code=202)
async def generate_final_video(
    event_id: str,
    payload: FinalVideoRequest | None = None,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    queue: Queue = Depends(get_queue),
):
    found = await event_service.load_event(session, event_id)
    # One request at a time per event: the second one sees "processing"
    ev = await session.get(Event, found.id, with_for_update=True, populate_existing=True)
    if ev is None:
        raise NotFound("Event not found")
    if ev.owner_id == user.id:
        event_service.release_stale_processing(ev)
    ctx = await event_service.load_access_facts(session, ev, user)
    caps = ctx.capabilities
    require(caps.role.is_owner, "Only the organizer can generate the final video")
    if ev.status in ("processing", "done", "canceled"):
        raise ExpiredWindow(f"Event is {ev.status}")
    require(caps.actions.can_generate_final_video, "Add at least one video first")
    video_ids = await event_service.final_video_clip_ids(session, ev, payload.video_ids if payload else None)

    previous = event_service.start_final_video(ev)
    await session.commit()
    queue.enqueue(process_final_video, str(ev.id), previous, video_ids,
                  job_timeout=settings.video_processor_timeout_seconds + 60)
    log.info("final_video_requested", event_id=str(ev.id), previous_status=previous, videos=len(video_ids or []))
    return FinalVideoStatus(event_id=ev.id, status=ev.status, final_video_url=None)


@router.get("/{event_id}/final-video", response_model=FinalVideoStatus)
async def final_video_status(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    user: User | None = Depends(get_optional_user),
    storage: Storage = Depends(get_storage),
):
    ctx = await _context(session, event_id, user)
    require(ctx.capabilities.state.view_scope == "full", "You cannot see this event")
    ev = ctx.event
    url = final_video_url(ev, storage) if ev.status == "done" else None
    return FinalVideoStatus(event_id=ev.id, status=ev.status, final_video_url=url)
