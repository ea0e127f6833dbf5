from __future__ import annotations
from pydantic import BaseModel, Field, EmailStr, field_validator
from typing import Literal, List
from uuid import UUID
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from gregaplay.schemas.capabilities import Capabilities

EventStatus = Literal["open", "ready", "processing", "done", "canceled"]
Visibility = Literal["public", "private"]

class EventCreate(BaseModel):
    title: str = Field(min_length=3, max_length=160)
    description: str | None = None
    theme: str | None = Field(default=None, max_length=120)
    deadline: date | None = None
    visibility: Visibility = "private"
    timezone: str | None = None
    video_duration: int | None = Field(default=None, ge=10, le=600)
    max_clip_duration: int | None = Field(default=None, ge=1, le=30)
    invite_emails: List[EmailStr] = Field(default_factory=list, max_length=200)
    invitation_message: str | None = Field(default=None, max_length=2000)

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: str | None):
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

class EventUpdate(BaseModel):
    deadline: date | None = None
    clear_deadline: bool = False
    visibility: Visibility | None = None
    notifications_enabled: bool | None = None
    title: str | None = Field(default=None, min_length=3, max_length=160)
    description: str | None = None

class EventMetadata(BaseModel):
    """What anyone holding the link sees."""
    id: UUID
    title: str
    theme: str | None = None
    status: EventStatus
    deadline: date | None = None
    visibility: Visibility
    is_closed: bool
    view_scope: Literal["full", "metadata"]

class EventPublic(EventMetadata):
    owner_id: UUID
    description: str | None = None
    timezone: str
    public_code: str
    share_url: str
    notifications_enabled: bool
    is_premium_event: bool
    premium_expires_at: datetime | None = None
    video_duration: int | None = None
    max_clip_duration: int | None = None
    final_video_url: str | None = None
    created_at: datetime
    capabilities: Capabilities

class DashboardEvent(BaseModel):
    id: UUID
    title: str
    status: EventStatus
    deadline: date | None = None
    visibility: Visibility
    is_owner: bool
    is_closed: bool
    is_effectively_premium: bool
    video_count: int
    invitation_count: int
    created_at: datetime

class FinalVideoRequest(BaseModel):
    video_ids: List[UUID] | None = None

class FinalVideoStatus(BaseModel):
    event_id: UUID
    status: EventStatus
    final_video_url: str | None = None
