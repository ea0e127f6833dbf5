from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20251020_0001"
down_revision = None
branch_labels = None
depends_on = None

def _id():
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)

def _created_at():
    return sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False)

def upgrade() -> None:
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("country", sa.String(length=64), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("accept_news", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("gender", sa.String(length=16), nullable=True),
        sa.Column("avatar_storage_key", sa.String(length=255), nullable=True),
        sa.Column("is_premium_account", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("premium_account_expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("is_premium", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("premium_trial_used", sa.Boolean(), server_default=sa.false(), nullable=False),
        _created_at(),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "password_resets",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="pending", nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        _created_at(),
        sa.UniqueConstraint("token_hash", name="uq_password_resets_token_hash"),
        sa.CheckConstraint("status in ('pending','used','expired')", name="ck_password_resets_status"),
    )
    op.create_index("ix_password_resets_user_id", "password_resets", ["user_id"])
    op.create_index("ix_password_resets_token_hash", "password_resets", ["token_hash"])

    op.create_table(
        "events",
        _id(),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("theme", sa.String(length=120), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="open", nullable=False),
        sa.Column("deadline", sa.Date(), nullable=True),
        sa.Column("timezone", sa.String(length=64), server_default="UTC", nullable=False),
        sa.Column("visibility", sa.String(length=16), server_default="private", nullable=False),
        sa.Column("public_code", sa.String(length=12), nullable=False),
        sa.Column("notifications_enabled", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("is_premium_event", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("premium_expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("video_duration", sa.Integer(), nullable=True),
        sa.Column("max_clip_duration", sa.Integer(), nullable=True),
        sa.Column("final_video_key", sa.Text(), nullable=True),
        sa.Column("final_video_url", sa.Text(), nullable=True),
        sa.Column("processing_started_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("status_before_processing", sa.String(length=16), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint("public_code", name="uq_events_public_code"),
        sa.CheckConstraint("status in ('open','ready','processing','done','canceled')", name="ck_events_status"),
        sa.CheckConstraint("visibility in ('public','private')", name="ck_events_visibility"),
    )
    op.create_index("ix_events_owner_id", "events", ["owner_id"])
    op.create_index("ix_events_public_code", "events", ["public_code"])

    op.create_table(
        "invitations",
        _id(),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("token", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="sent", nullable=False),
        sa.Column("accepted_user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("responded_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("event_id", "email", name="uq_invitation_event_email"),
        sa.UniqueConstraint("token", name="uq_invitations_token"),
        sa.CheckConstraint("email = lower(email)", name="ck_invitations_email_lower"),
    )
    op.create_index("ix_invitations_event_id", "invitations", ["event_id"])
    op.create_index("ix_invitations_email", "invitations", ["email"])
    op.create_index("ix_invitations_token", "invitations", ["token"])

    op.create_table(
        "videos",
        _id(),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("participant_name", sa.String(length=200), nullable=True),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.String(length=64), nullable=False),
        sa.Column("size_bytes", sa.Integer(), nullable=False),
        sa.Column("duration_seconds", sa.Float(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_videos_event_id", "videos", ["event_id"])
    op.create_index("ix_videos_user_id", "videos", ["user_id"])

    op.create_table(
        "premium_purchases",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_type", sa.String(length=16), nullable=False),
        sa.Column("target_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("duration", sa.String(length=8), nullable=False),
        sa.Column("amount_cents", sa.Integer(), server_default="0", nullable=False),
        sa.Column("currency", sa.String(length=8), server_default="eur", nullable=False),
        sa.Column("external_id", sa.String(length=128), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        _created_at(),
        sa.UniqueConstraint("external_id", name="uq_premium_purchase_external_id"),
        sa.CheckConstraint("target_type in ('account','event')", name="ck_premium_purchases_target_type"),
        sa.CheckConstraint("duration in ('3d','7d','1m')", name="ck_premium_purchases_duration"),
    )
    op.create_index("ix_premium_purchases_user_id", "premium_purchases", ["user_id"])
    op.create_index("ix_premium_purchases_target_id", "premium_purchases", ["target_id"])

    op.create_table(
        "activities",
        _id(),
        sa.Column("event_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_activities_event_id", "activities", ["event_id"])

    op.create_table(
        "notifications",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=16), server_default="info", nullable=False),
        sa.Column("read", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("link", sa.String(length=255), nullable=True),
        _created_at(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

def downgrade() -> None:
    for table, indexes in (
        ("notifications", ["ix_notifications_user_id"]),
        ("activities", ["ix_activities_event_id"]),
        ("premium_purchases", ["ix_premium_purchases_target_id", "ix_premium_purchases_user_id"]),
        ("videos", ["ix_videos_user_id", "ix_videos_event_id"]),
        ("invitations", ["ix_invitations_token", "ix_invitations_email", "ix_invitations_event_id"]),
        ("events", ["ix_events_public_code", "ix_events_owner_id"]),
        ("password_resets", ["ix_password_resets_token_hash", "ix_password_resets_user_id"]),
        ("users", ["ix_users_email"]),
    ):
        for ix in indexes:
            op.drop_index(ix, table_name=table)
        op.drop_table(table)
