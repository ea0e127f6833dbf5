from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from gregaplay.auth_deps import get_current_user
from gregaplay.config import settings
from gregaplay.db import get_session
from gregaplay.models.user import User
from gregaplay.schemas.billing import BoostRequest, BoostResponse
from gregaplay.services.billing import request_boost

router = APIRouter(prefix="/billing", tags=["billing"])


@router.post("/boost", response_model=BoostResponse)
async def boost(payload: BoostRequest, session: AsyncSession = Depends(get_session), user: User = Depends(get_current_user)):
    if not payload.trial and not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")
    return await request_boost(session, user, payload)
