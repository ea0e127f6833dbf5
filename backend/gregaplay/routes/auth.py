from __future__ import annotations
from datetime import datetime, timezone as dt_tz
import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, File, UploadFile
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from rq import Queue
from gregaplay.auth_deps import get_current_user, is_admin, security
from gregaplay.config import settings
from gregaplay.db import get_session
from gregaplay.errors import ValidationError
from gregaplay.models.user import User
from gregaplay.jobs.send_password_reset_email import send_password_reset_email
from gregaplay.schemas.auth import (
    ForgotPasswordRequest, LoginRequest, PremiumStatus, ProfileUpdate, RegisterRequest, ResetPasswordRequest,
    TokenPair, UserPublic,
)
from gregaplay.security import hash_password, verify_password, make_access_token, make_refresh_token, decode_token
from gregaplay.services.accounts import create_password_reset, reset_password, update_profile
from gregaplay.services.age_gate import is_under_minimum_age, parse_birth_date
from gregaplay.services.media import analyze_image, ext_for_mime
from gregaplay.services.premium import account_premium_of
from gregaplay.services.queue import get_queue
from gregaplay.services.storage import Storage, get_storage

router = APIRouter(prefix="/auth", tags=["auth"])
log = structlog.get_logger()

MAX_AVATAR_BYTES = 5 * 1024 * 1024


def to_public(user: User, storage: Storage | None = None) -> UserPublic:
    prem = account_premium_of(user, datetime.now(dt_tz.utc))
    avatar_url = None
    if user.avatar_storage_key and storage is not None:
        avatar_url = storage.presign_get(user.avatar_storage_key)
    return UserPublic(
        id=user.id, email=user.email, full_name=user.full_name, birth_date=user.birth_date,
        country=user.country, phone=user.phone, gender=user.gender, accept_news=user.accept_news,
        is_admin=is_admin(user), avatar_url=avatar_url, created_at=user.created_at,
        premium=PremiumStatus(
            is_active=prem.is_active, source=prem.source, expires_at=prem.expires_at,
            trial_available=not user.premium_trial_used and not prem.is_active,
        ),
    )


@router.post("/register", status_code=201, response_model=UserPublic)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_session)):
    if not payload.accept_terms:
        raise ValidationError("You must accept the terms of use.", constraint="terms")
    if is_under_minimum_age(payload.birth_date, settings.min_registration_age):
        # Nothing is stored for refused registrations
        raise ValidationError(
            f"You must be at least {settings.min_registration_age} years old to sign up.",
            constraint="age",
            details={"minimum_age": settings.min_registration_age},
        )
    email = payload.email.strip().lower()
    exists = await session.scalar(select(User).where(User.email == email))
    if exists:
        raise HTTPException(status_code=409, detail="Email already registered")
    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        full_name=f"{payload.first_name.strip()} {payload.last_name.strip()}",
        birth_date=parse_birth_date(payload.birth_date),
        country=payload.country,
        phone=payload.phone,
        accept_news=payload.accept_news,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    await session.refresh(user)
    log.info("user_registered", user_id=str(user.id))
    return to_public(user)


@router.post("/login", response_model=TokenPair)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_session)):
    user = await session.scalar(select(User).where(User.email == payload.email.strip().lower()))
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return TokenPair(access=make_access_token(str(user.id)), refresh=make_refresh_token(str(user.id)))


@router.post("/refresh", response_model=TokenPair)
async def refresh(credentials: HTTPAuthorizationCredentials = Depends(security)):
    try:
        data = decode_token(credentials.credentials, expected_type="refresh")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")
    sub = data.get("sub")
    return TokenPair(access=make_access_token(sub), refresh=make_refresh_token(sub))


@router.get("/me", response_model=UserPublic)
async def me(user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return to_public(user, storage)


@router.patch("/me", response_model=UserPublic)
async def update_me(
    payload: ProfileUpdate,
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    update_profile(user, payload)
    await session.commit()
    return to_public(user, storage)


@router.post("/password/forgot", status_code=202)
async def forgot_password(
    payload: ForgotPasswordRequest,
    session: AsyncSession = Depends(get_session),
    queue: Queue = Depends(get_queue),
):
    # Same answer whether or not the account exists
    created = await create_password_reset(session, payload.email)
    if created is not None:
        user, token = created
        await session.commit()
        queue.enqueue(send_password_reset_email, user.email, token)
    return {"status": "sent"}


@router.post("/password/reset", response_model=TokenPair)
async def do_reset_password(payload: ResetPasswordRequest, session: AsyncSession = Depends(get_session)):
    user = await reset_password(session, payload.token, payload.password)
    await session.commit()
    return TokenPair(access=make_access_token(str(user.id)), refresh=make_refresh_token(str(user.id)))


@router.post("/me/avatar", response_model=UserPublic)
async def upload_avatar(
    file: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    data = await file.read()
    if len(data) > MAX_AVATAR_BYTES:
        raise ValidationError("Image too large. Maximum size is 5 MB.", constraint="size")
    try:
        mime, _w, _h = analyze_image(data)
    except ValueError as e:
        raise ValidationError(str(e), constraint="mime_type")
    key = f"avatars/{user.id}.{ext_for_mime(mime)}"
    storage.put_bytes(key, data, mime)
    user.avatar_storage_key = key
    await session.commit()
    return to_public(user, storage)
