from __future__ import annotations
from pydantic import BaseModel
from typing import Literal
from uuid import UUID
from datetime import datetime

ViewScope = Literal["full", "metadata"]

class Role(BaseModel):
    is_owner: bool
    is_invited: bool
    is_public_guest: bool

class Actions(BaseModel):
    can_view: bool
    can_join: bool
    can_submit_video: bool
    can_upload_multiple_videos: bool
    can_manage_invitations: bool
    can_toggle_visibility: bool
    can_edit_deadline: bool
    can_generate_final_video: bool
    can_delete_event: bool
    can_view_submissions: bool

class Limits(BaseModel):
    max_uploads_per_event: int | None  # None = unlimited
    max_clip_duration_seconds: int
    max_clip_size_bytes: int

class LatestSubmission(BaseModel):
    id: UUID
    created_at: datetime | None = None

class CapabilityState(BaseModel):
    has_reached_upload_limit: bool
    latest_submission: LatestSubmission | None = None
    submission_count: int
    is_closed: bool
    is_time_expired: bool
    view_scope: ViewScope

class PremiumState(BaseModel):
    is_event_boost_active: bool
    is_owner_premium: bool
    is_effectively_premium: bool
    event_premium_expires_at: datetime | None = None

class Capabilities(BaseModel):
    event_id: UUID
    role: Role
    actions: Actions
    limits: Limits
    state: CapabilityState
    premium: PremiumState
