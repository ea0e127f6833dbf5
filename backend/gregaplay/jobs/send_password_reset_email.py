from __future__ import annotations
import asyncio
import structlog
from gregaplay.services.email import EmailClient, password_reset_email

log = structlog.get_logger()


async def _run(email: str, token: str, client: EmailClient | None = None) -> None:
    client = client or EmailClient()
    subject, html = password_reset_email(token)
    # EmailError propagates so RQ records the failure
    await client.send(email, subject, html)
    log.info("password_reset_email_sent", to=email)


def send_password_reset_email(email: str, token: str):
    # RQ entry point (sync); run the async coroutine
    asyncio.run(_run(email, token))
