from __future__ import annotations
import asyncio
import uuid
import structlog
from sqlalchemy import select
from gregaplay.db import SessionLocal
from gregaplay.models.event import Event, Invitation
from gregaplay.models.user import User
from gregaplay.services.email import EmailClient, EmailError, invitation_email

log = structlog.get_logger()


async def _run(event_id: str, invitation_ids: list[str], session_factory=SessionLocal, client: EmailClient | None = None) -> int:
    client = client or EmailClient()
    sent = 0
    async with session_factory() as session:
        ev = await session.get(Event, uuid.UUID(str(event_id)))
        if ev is None:
            return 0
        owner = await session.get(User, ev.owner_id)
        organizer = (owner.full_name or owner.email) if owner else None
        ids = [uuid.UUID(str(i)) for i in invitation_ids]
        invitations = (await session.execute(
            select(Invitation).where(Invitation.event_id == ev.id, Invitation.id.in_(ids))
        )).scalars().all()
        for inv in invitations:
            subject, html = invitation_email(ev.title, organizer, inv.token, inv.message)
            try:
                await client.send(inv.email, subject, html)
            except EmailError as e:
                # One bad address must not block the rest of the batch
                log.warning("invitation_email_failed", invitation_id=str(inv.id), error=str(e))
                continue
            sent += 1
    log.info("invitation_emails_sent", event_id=str(event_id), sent=sent, requested=len(invitation_ids))
    return sent


def send_invitation_emails(event_id: str, invitation_ids: list[str]):
    # RQ entry point (sync); run the async coroutine
    asyncio.run(_run(event_id, invitation_ids))
