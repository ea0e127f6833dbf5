from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "gregaplay-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Grega Play")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/gregaplay_dev")
    redis_url: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    s3_endpoint: str = os.getenv("S3_ENDPOINT", "http://minio:9000")
    s3_access_key: str = os.getenv("S3_ACCESS_KEY", "minioadmin")
    s3_secret_key: str = os.getenv("S3_SECRET_KEY", "minioadmin")
    s3_bucket_uploads: str = os.getenv("S3_BUCKET_UPLOADS", "gregaplay-videos-dev")
    s3_presign_expiry_seconds: int = int(os.getenv("S3_PRESIGN_EXPIRY_SECONDS", "300"))

    # Public web app (invitation / share links)
    public_web_url: str = os.getenv("PUBLIC_WEB_URL", "http://localhost:5173")
    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "Europe/Paris")

    # Account creation
    min_registration_age: int = int(os.getenv("MIN_REGISTRATION_AGE", "15"))
    password_reset_ttl_minutes: int = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "30"))
    # Accounts allowed on the admin endpoints, comma separated
    admin_emails: list[str] = [e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()]

    # Clip limits (same for free and premium)
    max_clip_duration_seconds: int = int(os.getenv("MAX_CLIP_DURATION_SECONDS", "30"))
    max_clip_size_bytes: int = int(os.getenv("MAX_CLIP_SIZE_BYTES", str(50 * 1024 * 1024)))
    ffprobe_binary: str = os.getenv("FFPROBE_BINARY", "ffprobe")
    upload_progress_ttl_seconds: int = int(os.getenv("UPLOAD_PROGRESS_TTL_SECONDS", "3600"))

    # Video processing service (final video assembly)
    video_processor_url: str = os.getenv("VIDEO_PROCESSOR_URL", "http://video-processor:3001")
    video_processor_api_key: str = os.getenv("VIDEO_PROCESSOR_API_KEY", "")
    video_processor_timeout_seconds: int = int(os.getenv("VIDEO_PROCESSOR_TIMEOUT_SECONDS", "600"))
    # A final video still "processing" after this long is treated as lost
    final_video_stale_seconds: int = int(os.getenv("FINAL_VIDEO_STALE_SECONDS", "900"))

    # Email backend
    email_api_url: str = os.getenv("EMAIL_API_URL", "http://mailer:3001/api/email/send")
    email_api_key: str = os.getenv("EMAIL_API_KEY", "")

    # Stripe configuration
    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    stripe_webhook_secret: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    stripe_currency: str = os.getenv("STRIPE_CURRENCY", "eur")
    # Prices in cents, per boost duration
    price_account_1m_cents: int = int(os.getenv("PRICE_ACCOUNT_1M_CENTS", "499"))
    price_event_3d_cents: int = int(os.getenv("PRICE_EVENT_3D_CENTS", "199"))
    price_event_7d_cents: int = int(os.getenv("PRICE_EVENT_7D_CENTS", "299"))
    price_event_1m_cents: int = int(os.getenv("PRICE_EVENT_1M_CENTS", "499"))
    billing_success_url: str = os.getenv("BILLING_SUCCESS_URL", "http://localhost:5173/premium/success")
    billing_cancel_url: str = os.getenv("BILLING_CANCEL_URL", "http://localhost:5173/premium")

settings = Settings()
