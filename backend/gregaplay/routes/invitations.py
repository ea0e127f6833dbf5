from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Response
from rq import Queue
from sqlalchemy.ext.asyncio import AsyncSession

from gregaplay.auth_deps import get_current_user
from gregaplay.db import get_session
from gregaplay.models.event import Invitation
from gregaplay.models.user import User
from gregaplay.schemas.invitation import InvitationBatchResult, InvitationCreate, InvitationPreview, InvitationPublic
from gregaplay.services import events as event_service
from gregaplay.services import invitations as invitation_service
from gregaplay.services.events import require
from gregaplay.services.queue import get_queue
from gregaplay.jobs.send_invitation_emails import send_invitation_emails

router = APIRouter(tags=["invitations"])


def to_public(inv: Invitation) -> InvitationPublic:
    return InvitationPublic(id=inv.id, event_id=inv.event_id, email=inv.email, status=inv.status,
                            created_at=inv.created_at, responded_at=inv.responded_at)


async def _is_closed(session: AsyncSession, ev) -> bool:
    ctx = await event_service.load_access_facts(session, ev, None)
    return ctx.capabilities.state.is_closed


@router.post("/events/{event_id}/invitations", response_model=InvitationBatchResult, status_code=201)
async def invite(
    event_id: str,
    payload: InvitationCreate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    queue: Queue = Depends(get_queue),
):
    ev = await event_service.load_event(session, event_id)
    ctx = await event_service.load_access_facts(session, ev, user)
    created, skipped = await invitation_service.bulk_invite(session, ctx, payload.emails, payload.message)
    await session.commit()
    if created:
        queue.enqueue(send_invitation_emails, str(ev.id), [str(i.id) for i in created])
    return InvitationBatchResult(created=[to_public(i) for i in created], skipped=skipped)


@router.get("/events/{event_id}/invitations", response_model=list[InvitationPublic])
async def list_invitations(
    event_id: str,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    ev = await event_service.load_event(session, event_id)
    ctx = await event_service.load_access_facts(session, ev, user)
    require(ctx.capabilities.role.is_owner, "Only the organizer can see invitations")
    return [to_public(i) for i in await invitation_service.list_invitations(session, ev.id)]


@router.delete("/events/{event_id}/invitations/{invitation_id}", status_code=204)
async def delete_invitation(
    event_id: str,
    invitation_id: UUID,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
):
    ev = await event_service.load_event(session, event_id)
    ctx = await event_service.load_access_facts(session, ev, user)
    await invitation_service.remove_invitation(session, ctx, invitation_id)
    await session.commit()
    return Response(status_code=204)


@router.get("/invitations/{token}", response_model=InvitationPreview)
async def preview(token: str, session: AsyncSession = Depends(get_session)):
    inv = await invitation_service.load_by_token(session, token)
    ev = await event_service.load_event(session, inv.event_id)
    owner = await session.get(User, ev.owner_id)
    return InvitationPreview(
        event_id=ev.id, event_title=ev.title, event_deadline=ev.deadline,
        organizer_name=(owner.full_name if owner else None),
        email=inv.email, status=inv.status, message=inv.message, is_closed=await _is_closed(session, ev),
    )


@router.post("/invitations/{token}/accept", response_model=InvitationPublic)
async def accept(token: str, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    inv = await invitation_service.load_by_token(session, token)
    ev = await event_service.load_event(session, inv.event_id)
    await invitation_service.respond(session, inv, user, True, event_closed=await _is_closed(session, ev))
    await session.commit()
    return to_public(inv)


@router.post("/invitations/{token}/decline", response_model=InvitationPublic)
async def decline(token: str, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    inv = await invitation_service.load_by_token(session, token)
    await invitation_service.respond(session, inv, user, False, event_closed=False)
    await session.commit()
    return to_public(inv)
