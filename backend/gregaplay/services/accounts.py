"""Profile edits and the emailed password reset flow."""
from __future__ import annotations
import hashlib
import secrets
from datetime import datetime, timedelta, timezone as dt_tz

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gregaplay.config import settings
from gregaplay.errors import ValidationError
from gregaplay.models.user import PasswordReset, User
from gregaplay.schemas.auth import ProfileUpdate
from gregaplay.security import hash_password
from gregaplay.services.age_gate import is_under_minimum_age, parse_birth_date
from gregaplay.services.time_windows import as_utc

log = structlog.get_logger()

RESET_TOKEN_BYTES = 32


def _token_hash(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def update_profile(user: User, data: ProfileUpdate) -> User:
    fields = data.model_dump(exclude_unset=True)
    if "birth_date" in fields:
        # Same gate as registration
        if is_under_minimum_age(data.birth_date, settings.min_registration_age):
            raise ValidationError(
                f"You must be at least {settings.min_registration_age} years old.",
                constraint="age",
                details={"minimum_age": settings.min_registration_age},
            )
        user.birth_date = parse_birth_date(data.birth_date)
    if "full_name" in fields and data.full_name is not None:
        user.full_name = data.full_name.strip()
    for name in ("country", "phone", "gender"):
        if name in fields:
            setattr(user, name, fields[name])
    if data.accept_news is not None:
        user.accept_news = data.accept_news
    log.info("profile_updated", user_id=str(user.id), fields=sorted(fields))
    return user


async def create_password_reset(session: AsyncSession, email: str, now: datetime | None = None) -> tuple[User, str] | None:
    """
    New reset token for the account behind `email`, or None when there is
    no such account. Earlier pending tokens stop working.
    """
    now = now or datetime.now(dt_tz.utc)
    user = await session.scalar(select(User).where(User.email == email.strip().lower()))
    if user is None:
        return None
    await session.execute(
        update(PasswordReset)
        .where(PasswordReset.user_id == user.id, PasswordReset.status == "pending")
        .values(status="expired")
    )
    token = secrets.token_urlsafe(RESET_TOKEN_BYTES)
    session.add(PasswordReset(
        user_id=user.id,
        token_hash=_token_hash(token),
        status="pending",
        expires_at=now + timedelta(minutes=settings.password_reset_ttl_minutes),
    ))
    log.info("password_reset_requested", user_id=str(user.id))
    return user, token


async def reset_password(session: AsyncSession, token: str, new_password: str, now: datetime | None = None) -> User:
    now = now or datetime.now(dt_tz.utc)
    pr = await session.scalar(select(PasswordReset).where(PasswordReset.token_hash == _token_hash(token)))
    if pr is None or pr.status != "pending":
        raise ValidationError("This reset link is invalid or was already used.", constraint="token")
    if as_utc(pr.expires_at) < now:
        pr.status = "expired"
        await session.commit()
        raise ValidationError("This reset link has expired.", constraint="token")
    user = await session.get(User, pr.user_id)
    if user is None:
        raise ValidationError("This reset link is invalid or was already used.", constraint="token")
    user.password_hash = hash_password(new_password)
    pr.status = "used"
    log.info("password_reset_done", user_id=str(user.id))
    return user
