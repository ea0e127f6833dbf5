from __future__ import annotations
from datetime import datetime, timedelta, timezone as dt_tz
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from gregaplay.auth_deps import get_admin_user
from gregaplay.db import get_session
from gregaplay.models.activity import Activity
from gregaplay.models.event import Event
from gregaplay.models.user import User
from gregaplay.models.video import Video

router = APIRouter(prefix="/admin", tags=["admin"])

STATS_WINDOW = timedelta(days=7)


class AdminStats(BaseModel):
    weekly_active_users: int
    events_last_7d: int
    total_videos: int
    completed_events: int


@router.get("/stats", response_model=AdminStats)
async def stats(session: AsyncSession = Depends(get_session), _: User = Depends(get_admin_user)):
    since = datetime.now(dt_tz.utc) - STATS_WINDOW
    active = await session.scalar(
        select(func.count(func.distinct(Activity.user_id)))
        .where(Activity.created_at >= since, Activity.user_id.is_not(None))
    )
    recent_events = await session.scalar(select(func.count(Event.id)).where(Event.created_at >= since))
    videos = await session.scalar(select(func.count(Video.id)))
    done = await session.scalar(select(func.count(Event.id)).where(Event.status == "done"))
    return AdminStats(
        weekly_active_users=active or 0,
        events_last_7d=recent_events or 0,
        total_videos=videos or 0,
        completed_events=done or 0,
    )
