from __future__ import annotations
import uuid
import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from gregaplay.config import settings
from gregaplay.db import get_session
from gregaplay.security import decode_token
from gregaplay.models.user import User

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

async def _user_from_token(token: str, session: AsyncSession) -> User:
    try:
        data = decode_token(token, expected_type="access")
        user_id = uuid.UUID(str(data.get("sub")))
    except (jwt.InvalidTokenError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session: AsyncSession = Depends(get_session)
) -> User:
    return await _user_from_token(credentials.credentials, session)

async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
    session: AsyncSession = Depends(get_session),
) -> User | None:
    """Anonymous callers get None; a present but bad token is still a 401."""
    if credentials is None:
        return None
    return await _user_from_token(credentials.credentials, session)

def is_admin(user: User) -> bool:
    return user.email.lower() in settings.admin_emails

async def get_admin_user(user: User = Depends(get_current_user)) -> User:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admins only")
    return user
