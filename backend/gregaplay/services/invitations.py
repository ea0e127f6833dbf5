from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gregaplay.errors import NotFound, Unauthorized
from gregaplay.models.event import Event, Invitation
from gregaplay.models.user import User
from gregaplay.security import make_invitation_token
from gregaplay.services.activity import log_activity
from gregaplay.services.events import AccessContext, require

log = structlog.get_logger()


def normalize_emails(emails) -> list[str]:
    """Lower-cased, stripped, first occurrence wins."""
    seen: dict[str, None] = {}
    for e in emails:
        e = str(e).strip().lower()
        if e:
            seen.setdefault(e, None)
    return list(seen)


async def add_invitations(
    session: AsyncSession,
    ev: Event,
    emails,
    message: str | None = None,
    *,
    owner_email: str | None = None,
) -> tuple[list[Invitation], list[str]]:
    """
    Create one invitation per new address. Returns (created, skipped); an
    address is skipped when already invited to this event or when it is the
    organizer's own.
    """
    wanted = normalize_emails(emails)
    if not wanted:
        return [], []
    existing = set((await session.execute(
        select(Invitation.email).where(Invitation.event_id == ev.id, Invitation.email.in_(wanted))
    )).scalars().all())
    own = (owner_email or "").strip().lower()

    created: list[Invitation] = []
    skipped: list[str] = []
    for email in wanted:
        if email in existing or email == own:
            skipped.append(email)
            continue
        inv = Invitation(event_id=ev.id, email=email, token=make_invitation_token(), message=message, status="sent")
        session.add(inv)
        created.append(inv)
    await session.flush()
    log.info("invitations_added", event_id=str(ev.id), created=len(created), skipped=len(skipped))
    return created, skipped


async def bulk_invite(session: AsyncSession, ctx: AccessContext, emails, message: str | None = None):
    caps = ctx.capabilities
    require(caps.role.is_owner, "Only the organizer can invite people")
    require(not caps.state.is_closed, "Event closed", closed=True)
    require(caps.actions.can_manage_invitations, "Only the organizer can invite people")
    return await add_invitations(session, ctx.event, emails, message, owner_email=ctx.user.email if ctx.user else None)


async def list_invitations(session: AsyncSession, event_id: UUID) -> list[Invitation]:
    return (await session.execute(
        select(Invitation).where(Invitation.event_id == event_id).order_by(Invitation.created_at.asc())
    )).scalars().all()


async def remove_invitation(session: AsyncSession, ctx: AccessContext, invitation_id: UUID) -> None:
    caps = ctx.capabilities
    require(caps.role.is_owner, "Only the organizer can manage invitations")
    require(not caps.state.is_closed, "Event closed", closed=True)
    require(caps.actions.can_manage_invitations, "Only the organizer can manage invitations")
    inv = await session.scalar(
        select(Invitation).where(Invitation.id == invitation_id, Invitation.event_id == ctx.event.id)
    )
    if inv is None:
        raise NotFound("Invitation not found")
    await session.delete(inv)
    log.info("invitation_removed", event_id=str(ctx.event.id), invitation_id=str(invitation_id))


async def load_by_token(session: AsyncSession, token: str) -> Invitation:
    inv = await session.scalar(select(Invitation).where(Invitation.token == token))
    if inv is None:
        raise NotFound("Invitation not found")
    return inv


def _check_recipient(inv: Invitation, user: User) -> None:
    if inv.email != user.email.strip().lower():
        raise Unauthorized("This invitation was sent to another email address")


async def respond(session: AsyncSession, inv: Invitation, user: User, accept: bool, *, event_closed: bool) -> Invitation:
    """Accept or decline. Accepting a closed event is refused; declining always works."""
    _check_recipient(inv, user)
    if accept:
        require(not event_closed, "Event closed", closed=True)
    inv.status = "accepted" if accept else "declined"
    inv.accepted_user_id = user.id if accept else None
    inv.responded_at = datetime.now(dt_tz.utc)
    if accept:
        log_activity(session, event_id=inv.event_id, user_id=user.id, type="joined",
                     message=f"{user.full_name or user.email} accepted the invitation")
    log.info("invitation_answered", invitation_id=str(inv.id), status=inv.status, user_id=str(user.id))
    return inv
