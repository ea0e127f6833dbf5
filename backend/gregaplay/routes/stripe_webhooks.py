from __future__ import annotations
from uuid import UUID
import stripe
import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from gregaplay.config import settings
from gregaplay.db import get_session
from gregaplay.services.billing import activate_entitlement

router = APIRouter(tags=["stripe"])
log = structlog.get_logger()

@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_session),
):
    if not settings.stripe_webhook_secret or not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")

    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(
            payload=payload.decode("utf-8"),
            sig_header=stripe_signature or "",
            secret=settings.stripe_webhook_secret,
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid webhook: {e}")

    if event["type"] != "checkout.session.completed":
        return {"ignored": event["type"]}

    sess = event["data"]["object"]
    if sess.get("payment_status") != "paid":
        return {"ok": True}
    meta = sess.get("metadata") or {}
    try:
        user_id = UUID(sess.get("client_reference_id") or meta.get("user_id"))
        target_type = meta["target_type"]
        target_id = UUID(meta["target_id"])
        duration = meta["duration"]
    except (KeyError, TypeError, ValueError):
        log.warning("stripe_session_missing_metadata", session_id=sess.get("id"))
        return {"ok": True}

    # The checkout session id keys the purchase: Stripe retries are no-ops
    created = await activate_entitlement(
        db, user_id=user_id, target_type=target_type, target_id=target_id, duration=duration,
        external_id=sess["id"], amount_cents=int(sess.get("amount_total") or 0),
    )
    if created:
        await db.commit()
    return {"ok": True}
