from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from gregaplay.auth_deps import get_current_user
from gregaplay.db import get_session
from gregaplay.errors import NotFound
from gregaplay.models.activity import Notification
from gregaplay.models.user import User
from gregaplay.schemas.video import NotificationPublic
from gregaplay.services.activity import list_notifications, mark_all_read, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


def to_public(n: Notification) -> NotificationPublic:
    return NotificationPublic(id=n.id, title=n.title, message=n.message, type=n.type,
                              read=n.read, link=n.link, created_at=n.created_at)


@router.get("", response_model=list[NotificationPublic])
async def my_notifications(session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    return [to_public(n) for n in await list_notifications(session, user.id)]


@router.post("/read-all")
async def read_all(session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    updated = await mark_all_read(session, user.id)
    await session.commit()
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationPublic)
async def read_one(notification_id: UUID, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    n = await mark_read(session, user.id, notification_id)
    if n is None:
        raise NotFound("Notification not found")
    await session.commit()
    return to_public(n)
