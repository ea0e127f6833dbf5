from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field
from typing import Literal, List
from uuid import UUID
from datetime import date, datetime

InvitationStatus = Literal["sent", "pending", "accepted", "declined"]

class InvitationCreate(BaseModel):
    emails: List[EmailStr] = Field(min_length=1, max_length=200)
    message: str | None = Field(default=None, max_length=2000)

class InvitationPublic(BaseModel):
    id: UUID
    event_id: UUID
    email: EmailStr
    status: InvitationStatus
    created_at: datetime
    responded_at: datetime | None = None

class InvitationBatchResult(BaseModel):
    created: List[InvitationPublic]
    skipped: List[EmailStr]

class InvitationPreview(BaseModel):
    """Shown on /invitation/{token} before the invitee signs in."""
    event_id: UUID
    event_title: str
    event_deadline: date | None = None
    organizer_name: str | None = None
    email: EmailStr
    status: InvitationStatus
    message: str | None = None
    is_closed: bool
