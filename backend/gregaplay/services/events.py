from __future__ import annotations
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_tz
from uuid import UUID

import structlog
from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gregaplay.config import settings
from gregaplay.errors import ExpiredWindow, NotFound, Unauthorized, ValidationError
from gregaplay.models.activity import Activity
from gregaplay.models.event import Event, Invitation
from gregaplay.models.user import User
from gregaplay.models.video import Video
from gregaplay.schemas.capabilities import Capabilities
from gregaplay.schemas.event import EventCreate, EventUpdate
from gregaplay.security import make_invitation_token
from gregaplay.services.access_policy import (
    AccountFacts, EventAccessPolicy, EventFacts, InvitationFacts, SubmissionSummary,
)
from gregaplay.services.activity import log_activity
from gregaplay.services.invite_code import generate_code
from gregaplay.services.premium import AccountPremium, account_premium_of
from gregaplay.services.time_windows import as_utc

log = structlog.get_logger()


@dataclass
class AccessContext:
    event: Event
    user: User | None
    invitation: Invitation | None
    capabilities: Capabilities


def _parse_id(raw, what: str = "Event") -> UUID:
    if isinstance(raw, UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise NotFound(f"{what} not found")


async def load_event(session: AsyncSession, event_id) -> Event:
    ev = await session.get(Event, _parse_id(event_id))
    if not ev:
        raise NotFound("Event not found")
    return ev


async def load_event_by_code(session: AsyncSession, code: str) -> Event:
    ev = await session.scalar(select(Event).where(Event.public_code == code.strip().upper()))
    if not ev:
        raise NotFound("Event not found")
    return ev


async def find_invitation(session: AsyncSession, event_id: UUID, email: str | None) -> Invitation | None:
    if not email:
        return None
    return await session.scalar(
        select(Invitation).where(Invitation.event_id == event_id, Invitation.email == email.strip().lower())
    )


async def submission_summary(session: AsyncSession, event_id: UUID, user_id: UUID | None) -> SubmissionSummary:
    total = await session.scalar(select(func.count()).select_from(Video).where(Video.event_id == event_id))
    if user_id is None:
        return SubmissionSummary(event_total=int(total or 0))
    count = await session.scalar(
        select(func.count()).select_from(Video).where(Video.event_id == event_id, Video.user_id == user_id)
    )
    latest = await session.scalar(
        select(Video).where(Video.event_id == event_id, Video.user_id == user_id)
        .order_by(Video.created_at.desc()).limit(1)
    )
    return SubmissionSummary(
        count=int(count or 0),
        latest_id=latest.id if latest else None,
        latest_created_at=latest.created_at if latest else None,
        event_total=int(total or 0),
    )


async def owner_premium(session: AsyncSession, ev: Event, now: datetime) -> AccountPremium:
    owner = await session.get(User, ev.owner_id)
    return account_premium_of(owner, now)


async def load_access_facts(session: AsyncSession, ev: Event, user: User | None, now: datetime | None = None) -> AccessContext:
    """Read every fact the policy needs, fresh, and evaluate it."""
    now = now or datetime.now(dt_tz.utc)
    invitation = await find_invitation(session, ev.id, user.email if user else None)
    # A declined invitation no longer grants anything
    inv_facts = InvitationFacts(status=invitation.status) if invitation and invitation.status != "declined" else None
    summary = await submission_summary(session, ev.id, user.id if user else None)
    caps = EventAccessPolicy().evaluate(
        EventFacts.from_model(ev),
        AccountFacts(id=user.id, email=user.email) if user else None,
        inv_facts,
        summary,
        await owner_premium(session, ev, now),
        now,
    )
    return AccessContext(event=ev, user=user, invitation=invitation, capabilities=caps)


def require(allowed: bool, message: str, *, closed: bool = False) -> None:
    """Turn a capability flag into the matching error. `closed` selects ExpiredWindow."""
    if allowed:
        return
    if closed:
        raise ExpiredWindow(message)
    raise Unauthorized(message)

# ---------- lifecycle ----------

async def create_event(session: AsyncSession, owner: User, data: EventCreate, client_tz: str | None = None) -> Event:
    """New events are always open and never premium."""
    tz = data.timezone or client_tz or settings.default_timezone
    for _ in range(5):
        ev = Event(
            owner_id=owner.id,
            title=data.title.strip(),
            description=data.description,
            theme=data.theme,
            status="open",
            deadline=data.deadline,
            timezone=tz,
            visibility=data.visibility,
            public_code=generate_code(),
            notifications_enabled=True,
            is_premium_event=False,
            premium_expires_at=None,
            video_duration=data.video_duration,
            max_clip_duration=data.max_clip_duration,
        )
        session.add(ev)
        try:
            await session.flush()
        except IntegrityError:
            await session.rollback()
            continue
        log_activity(session, event_id=ev.id, user_id=owner.id, type="event_created",
                     message=f"{owner.full_name or owner.email} created the event")
        log.info("event_created", event_id=str(ev.id), owner_id=str(owner.id), visibility=ev.visibility)
        return ev
    raise RuntimeError("Failed to generate unique public code")


async def update_event(session: AsyncSession, ctx: AccessContext, data: EventUpdate) -> Event:
    caps = ctx.capabilities
    ev = ctx.event
    if data.deadline is not None or data.clear_deadline:
        require(caps.actions.can_edit_deadline, "Only the organizer can change the deadline")
        ev.deadline = None if data.clear_deadline else data.deadline
    if data.visibility is not None:
        require(caps.actions.can_toggle_visibility, "Only the organizer can change visibility")
        ev.visibility = data.visibility
    if data.notifications_enabled is not None or data.title is not None or data.description is not None:
        require(caps.role.is_owner, "Only the organizer can edit this event")
        if data.notifications_enabled is not None:
            ev.notifications_enabled = data.notifications_enabled
        if data.title is not None:
            ev.title = data.title.strip()
        if data.description is not None:
            ev.description = data.description
    log.info("event_updated", event_id=str(ev.id), fields=sorted(data.model_dump(exclude_unset=True)))
    return ev


async def cancel_event(session: AsyncSession, ctx: AccessContext) -> Event:
    require(ctx.capabilities.role.is_owner, "Only the organizer can cancel this event")
    ev = ctx.event
    if ev.status in ("done", "canceled"):
        raise ExpiredWindow(f"Event is already {ev.status}")
    if ev.status == "processing" and not release_stale_processing(ev):
        raise ExpiredWindow("The final video is being generated")
    ev.status = "canceled"
    log.info("event_canceled", event_id=str(ev.id))
    return ev


async def delete_event(session: AsyncSession, ctx: AccessContext) -> list[str]:
    """Deletes the event and its rows; returns storage keys for the caller to remove."""
    require(ctx.capabilities.actions.can_delete_event, "Only the organizer can delete this event")
    ev = ctx.event
    keys = list((await session.execute(select(Video.storage_key).where(Video.event_id == ev.id))).scalars().all())
    if ev.final_video_key:
        keys.append(ev.final_video_key)
    # Postgres cascades these; explicit for backends without FK enforcement
    await session.execute(delete(Video).where(Video.event_id == ev.id))
    await session.execute(delete(Invitation).where(Invitation.event_id == ev.id))
    await session.execute(delete(Activity).where(Activity.event_id == ev.id))
    await session.delete(ev)
    log.info("event_deleted", event_id=str(ev.id), objects=len(keys))
    return keys


async def join_event(session: AsyncSession, ctx: AccessContext) -> Invitation:
    """A public guest joins: recorded as an accepted invitation for their email."""
    caps = ctx.capabilities
    user = ctx.user
    if user is None:
        raise Unauthorized("Sign in to join this event")
    if ctx.invitation is not None and ctx.invitation.status == "declined":
        # Changing one's mind on a public event
        require(not caps.state.is_closed, "Event closed", closed=True)
        require(caps.role.is_public_guest, "This event is private")
        inv = ctx.invitation
    else:
        if caps.role.is_owner or caps.role.is_invited:
            raise Unauthorized("You are already part of this event")
        require(not caps.state.is_closed, "Event closed", closed=True)
        require(caps.actions.can_join, "This event is private")
        inv = Invitation(event_id=ctx.event.id, email=user.email.lower(), token=make_invitation_token())
        session.add(inv)
    inv.status = "accepted"
    inv.accepted_user_id = user.id
    inv.responded_at = datetime.now(dt_tz.utc)
    log_activity(session, event_id=ctx.event.id, user_id=user.id, type="joined",
                 message=f"{user.full_name or user.email} joined the event")
    log.info("event_joined", event_id=str(ctx.event.id), user_id=str(user.id))
    return inv

# ---------- dashboard ----------

async def dashboard_events(session: AsyncSession, user: User, now: datetime | None = None) -> list[tuple[Event, bool, Capabilities, int, int]]:
    """Owned events plus events the user is invited to (not declined), newest first."""
    now = now or datetime.now(dt_tz.utc)
    invited_ids = select(Invitation.event_id).where(
        Invitation.email == user.email.lower(), Invitation.status != "declined"
    )
    rows = (await session.execute(
        select(Event)
        .where((Event.owner_id == user.id) | (Event.id.in_(invited_ids)))
        .order_by(Event.created_at.desc())
    )).scalars().all()

    out = []
    for ev in rows:
        ctx = await load_access_facts(session, ev, user, now)
        video_count = await session.scalar(select(func.count()).select_from(Video).where(Video.event_id == ev.id))
        inv_count = await session.scalar(select(func.count()).select_from(Invitation).where(Invitation.event_id == ev.id))
        out.append((ev, ctx.capabilities.role.is_owner, ctx.capabilities, int(video_count or 0), int(inv_count or 0)))
    return out

# ---------- final video ----------

def processing_is_stale(ev: Event, now: datetime) -> bool:
    if ev.status != "processing":
        return False
    if ev.processing_started_at is None:
        return True
    return now - as_utc(ev.processing_started_at) > timedelta(seconds=settings.final_video_stale_seconds)


def release_stale_processing(ev: Event, now: datetime | None = None) -> bool:
    """
    Hand back an event whose assembly job was lost (worker killed, job timed
    out) so the organizer can retry or cancel. Returns True if it did.
    """
    now = now or datetime.now(dt_tz.utc)
    if not processing_is_stale(ev, now):
        return False
    restored = ev.status_before_processing or "open"
    log.warning("final_video_stale_released", event_id=str(ev.id), restored_status=restored,
                started_at=ev.processing_started_at.isoformat() if ev.processing_started_at else None)
    ev.status = restored
    ev.processing_started_at = None
    ev.status_before_processing = None
    return True


async def final_video_clip_ids(session: AsyncSession, ev: Event, video_ids: list[UUID] | None) -> list[str] | None:
    """The requested clips, in order and de-duplicated. None means every clip of the event."""
    if not video_ids:
        return None
    wanted = list(dict.fromkeys(video_ids))
    found = set((await session.execute(
        select(Video.id).where(Video.event_id == ev.id, Video.id.in_(wanted))
    )).scalars().all())
    unknown = [str(v) for v in wanted if v not in found]
    if unknown:
        raise ValidationError("Some videos do not belong to this event.", constraint="video_ids",
                              details={"unknown_ids": unknown})
    return [str(v) for v in wanted]


def start_final_video(ev: Event, now: datetime | None = None) -> str:
    """Mark the event as processing; returns the status to restore on failure."""
    previous = ev.status
    ev.status = "processing"
    ev.status_before_processing = previous
    ev.processing_started_at = now or datetime.now(dt_tz.utc)
    return previous
