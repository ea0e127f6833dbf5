from __future__ import annotations
from pydantic import BaseModel
from typing import Literal
from uuid import UUID
from datetime import datetime

TargetType = Literal["account", "event"]
Duration = Literal["3d", "7d", "1m"]

class BoostRequest(BaseModel):
    target_type: TargetType
    target_id: UUID
    duration: Duration = "1m"
    trial: bool = False

class BoostResponse(BaseModel):
    status: Literal["redirect", "activated"]
    checkout_url: str | None = None
    session_id: str | None = None
    expires_at: datetime | None = None
