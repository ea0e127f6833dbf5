from __future__ import annotations
import uuid
from datetime import date, datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, Date, DateTime, ForeignKey, Text, UniqueConstraint, Uuid, func
from gregaplay.db import Base, utcnow

class Event(Base):
    __tablename__ = "events"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(160), nullable=False)
    description: Mapped[str | None] = mapped_column(Text())
    theme: Mapped[str | None] = mapped_column(String(120))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open")  # open|ready|processing|done|canceled
    deadline: Mapped[date | None] = mapped_column(Date())
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    visibility: Mapped[str] = mapped_column(String(16), nullable=False, default="private")  # public|private
    public_code: Mapped[str] = mapped_column(String(12), unique=True, index=True, nullable=False)
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    is_premium_event: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    premium_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    video_duration: Mapped[int | None] = mapped_column(Integer)  # target length of the final video, seconds
    max_clip_duration: Mapped[int | None] = mapped_column(Integer)
    final_video_key: Mapped[str | None] = mapped_column(Text())
    final_video_url: Mapped[str | None] = mapped_column(Text())
    # Set while the final video is being assembled; a stale value lets the organizer retry
    processing_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status_before_processing: Mapped[str | None] = mapped_column(String(16))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

class Invitation(Base):
    __tablename__ = "invitations"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), index=True, nullable=False)  # lower-cased
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    message: Mapped[str | None] = mapped_column(Text())
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="sent")  # sent|pending|accepted|declined
    accepted_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("event_id", "email", name="uq_invitation_event_email"),
    )
