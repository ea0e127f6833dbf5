from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field
from typing import Literal
from uuid import UUID
from datetime import date, datetime

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    # Kept as a raw string: unparseable values must reach the age gate and be refused there
    birth_date: str
    country: str | None = Field(default=None, max_length=64)
    phone: str | None = Field(default=None, max_length=32)
    accept_terms: bool
    accept_news: bool = False

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class PremiumStatus(BaseModel):
    is_active: bool
    source: str | None = None
    expires_at: datetime | None = None
    trial_available: bool

Gender = Literal["female", "male", "other"]

class ProfileUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    birth_date: str | None = None
    country: str | None = Field(default=None, max_length=64)
    # E.164, e.g. +33612345678
    phone: str | None = Field(default=None, pattern=r"^\+[1-9][0-9]{6,14}$")
    gender: Gender | None = None
    accept_news: bool | None = None

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=10, max_length=200)
    password: str = Field(min_length=8, max_length=72)

class UserPublic(BaseModel):
    id: UUID
    email: EmailStr
    full_name: str | None = None
    birth_date: date | None = None
    country: str | None = None
    phone: str | None = None
    gender: Gender | None = None
    accept_news: bool = False
    is_admin: bool = False
    avatar_url: str | None = None
    created_at: datetime
    premium: PremiumStatus

class TokenPair(BaseModel):
    access: str
    refresh: str
