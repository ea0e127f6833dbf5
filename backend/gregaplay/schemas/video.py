from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime


class VideoPublic(BaseModel):
    id: UUID
    event_id: UUID
    user_id: UUID
    participant_name: str | None = None
    mime_type: str
    size_bytes: int
    duration_seconds: float | None = None
    created_at: datetime
    # storage keys stay server-side
    content_url: str


class UploadProgressPublic(BaseModel):
    upload_id: str
    percent: float | None = None
    bytes_sent: int
    total_bytes: int | None = None
    speed_bytes_per_s: float | None = None
    eta_seconds: float | None = None
    done: bool = False


class ActivityPublic(BaseModel):
    id: UUID
    event_id: UUID
    user_id: UUID | None = None
    type: str
    message: str
    created_at: datetime


class NotificationPublic(BaseModel):
    id: UUID
    title: str
    message: str
    type: str
    read: bool
    link: str | None = None
    created_at: datetime
