"""
Thin client for the outbound email backend.

The backend accepts `{to, subject, html}` as JSON and authenticates with an
`x-api-key` header. Sending happens from RQ jobs, never inside a request.
"""
from __future__ import annotations
from html import escape
from urllib.parse import quote

import httpx
import structlog

from gregaplay.config import settings

log = structlog.get_logger()


class EmailError(Exception):
    pass


class EmailClient:
    def __init__(self, api_url: str | None = None, api_key: str | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url or settings.email_api_url
        self.api_key = api_key if api_key is not None else settings.email_api_key
        self._transport = transport

    async def send(self, to: str, subject: str, html: str) -> None:
        async with httpx.AsyncClient(timeout=20.0, transport=self._transport) as client:
            resp = await client.post(
                self.api_url,
                json={"to": to, "subject": subject, "html": html},
                headers={"x-api-key": self.api_key},
            )
            try:
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise EmailError(f"Email backend error {resp.status_code}: {resp.text}") from e
        log.info("email_sent", to=to, subject=subject)


def invitation_link(token: str) -> str:
    return f"{settings.public_web_url.rstrip('/')}/invitation/{token}"


def invitation_email(event_title: str, organizer_name: str | None, token: str, message: str | None = None) -> tuple[str, str]:
    """Returns (subject, html)."""
    who = escape(organizer_name or "Someone")
    title = escape(event_title)
    subject = f"{organizer_name or 'Someone'} invites you to {event_title}"
    body = [
        f"<p>{who} invites you to record a short video for <strong>{title}</strong> on {escape(settings.app_display_name)}.</p>",
    ]
    if message:
        body.append(f"<blockquote>{escape(message)}</blockquote>")
    body.append(f'<p><a href="{escape(invitation_link(token))}">Open the invitation</a></p>')
    return subject, "\n".join(body)


def password_reset_link(token: str) -> str:
    return f"{settings.public_web_url.rstrip('/')}/reset-password?token={quote(token)}"


def password_reset_email(token: str) -> tuple[str, str]:
    app = escape(settings.app_display_name)
    subject = f"Reset your {settings.app_display_name} password"
    html = "\n".join([
        f"<p>Someone asked to reset the password of your {app} account.</p>",
        f'<p><a href="{escape(password_reset_link(token))}">Choose a new password</a></p>',
        f"<p>The link expires in {settings.password_reset_ttl_minutes} minutes. "
        "If you did not ask for it, ignore this email.</p>",
    ])
    return subject, html
