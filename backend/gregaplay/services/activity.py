from __future__ import annotations
from uuid import UUID
import structlog
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from gregaplay.models.activity import Activity, Notification
from gregaplay.models.event import Event, Invitation
from gregaplay.models.user import User

log = structlog.get_logger()

# ---------- activity feed ----------

def log_activity(session: AsyncSession, *, event_id: UUID, user_id: UUID | None, type: str, message: str) -> Activity:
    """Added to the caller's session; committed with the action it describes."""
    a = Activity(event_id=event_id, user_id=user_id, type=type, message=message)
    session.add(a)
    return a


async def list_activity(session: AsyncSession, event_id: UUID, limit: int = 50) -> list[Activity]:
    return (await session.execute(
        select(Activity).where(Activity.event_id == event_id)
        .order_by(Activity.created_at.desc()).limit(limit)
    )).scalars().all()

# ---------- notification center ----------

async def list_notifications(session: AsyncSession, user_id: UUID) -> list[Notification]:
    return (await session.execute(
        select(Notification).where(Notification.user_id == user_id).order_by(Notification.created_at.desc())
    )).scalars().all()


async def mark_read(session: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification | None:
    n = await session.scalar(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    )
    if n is None:
        return None
    n.read = True
    return n


async def mark_all_read(session: AsyncSession, user_id: UUID) -> int:
    res = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    return int(res.rowcount or 0)


async def notify_event_participants(
    session: AsyncSession,
    ev: Event,
    message: str,
    *,
    exclude_user_id: UUID | None = None,
) -> int:
    """
    One notification per registered accepted invitee, plus the owner.
    Does nothing when the owner turned notifications off for the event.
    """
    if not ev.notifications_enabled:
        return 0
    invitee_ids = (await session.execute(
        select(User.id)
        .join(Invitation, func.lower(Invitation.email) == func.lower(User.email))
        .where(Invitation.event_id == ev.id, Invitation.status == "accepted")
    )).scalars().all()
    recipients = {ev.owner_id, *invitee_ids}
    recipients.discard(exclude_user_id)
    for uid in recipients:
        session.add(Notification(
            user_id=uid,
            title=f"Event: {ev.title}",
            message=message,
            type="event",
            link=f"/events/{ev.id}",
        ))
    log.info("participants_notified", event_id=str(ev.id), count=len(recipients))
    return len(recipients)
