from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from uuid import UUID

import stripe
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gregaplay.config import settings
from gregaplay.errors import EntitlementConflict, NotFound, Unauthorized
from gregaplay.models.billing import PremiumPurchase
from gregaplay.models.event import Event
from gregaplay.models.user import User
from gregaplay.schemas.billing import BoostRequest, BoostResponse
from gregaplay.services.premium import AccountPremium, account_premium_of, event_boost_active, extend_window

log = structlog.get_logger()

TRIAL_DURATION = "7d"


def price_cents(target_type: str, duration: str) -> int:
    if target_type == "account":
        # Accounts are sold by the month only
        return settings.price_account_1m_cents
    return {
        "3d": settings.price_event_3d_cents,
        "7d": settings.price_event_7d_cents,
        "1m": settings.price_event_1m_cents,
    }[duration]


def boost_conflict(
    target_type: str,
    *,
    trial: bool = False,
    boost_active: bool = False,
    owner_premium: AccountPremium | None = None,
    trial_used: bool = False,
) -> str | None:
    """Reason the purchase would be pointless, or None. Pure; the caller reads the facts."""
    if target_type == "event":
        if trial:
            return "Trials are only available for accounts"
        if boost_active:
            return "This event is already boosted"
        if owner_premium is not None and owner_premium.is_active:
            return "The organizer's account is already premium"
        return None
    if trial:
        if trial_used:
            return "The free trial was already used"
        if owner_premium is not None and owner_premium.is_active:
            return "This account is already premium"
    return None


async def _load_target(session: AsyncSession, user: User, req: BoostRequest, now: datetime):
    if req.target_type == "account":
        if req.target_id != user.id:
            raise Unauthorized("You can only upgrade your own account")
        return user, boost_conflict(
            "account", trial=req.trial, owner_premium=account_premium_of(user, now), trial_used=user.premium_trial_used,
        )
    ev = await session.get(Event, req.target_id)
    if ev is None:
        raise NotFound("Event not found")
    if ev.owner_id != user.id:
        raise Unauthorized("Only the organizer can boost this event")
    owner = await session.get(User, ev.owner_id)
    return ev, boost_conflict(
        "event",
        trial=req.trial,
        boost_active=event_boost_active(ev.is_premium_event, ev.premium_expires_at, now),
        owner_premium=account_premium_of(owner, now),
    )


async def activate_entitlement(
    session: AsyncSession,
    *,
    user_id: UUID,
    target_type: str,
    target_id: UUID,
    duration: str,
    external_id: str,
    amount_cents: int = 0,
    now: datetime | None = None,
) -> PremiumPurchase | None:
    """
    Grant the premium window. Idempotent by external_id: returns None when the
    purchase was already recorded. Visible from the next policy evaluation.
    """
    now = now or datetime.now(dt_tz.utc)
    exists = await session.scalar(select(PremiumPurchase).where(PremiumPurchase.external_id == external_id))
    if exists:
        return None

    if target_type == "account":
        user = await session.get(User, target_id)
        if user is None:
            raise NotFound("User not found")
        current = user.premium_account_expires_at if user.is_premium_account else None
        expires_at = extend_window(current, duration, now)
        user.is_premium_account = True
        user.premium_account_expires_at = expires_at
    else:
        ev = await session.get(Event, target_id)
        if ev is None:
            raise NotFound("Event not found")
        # Event boosts start now, no stacking
        expires_at = extend_window(None, duration, now)
        ev.is_premium_event = True
        ev.premium_expires_at = expires_at

    purchase = PremiumPurchase(
        user_id=user_id,
        target_type=target_type,
        target_id=target_id,
        duration=duration,
        amount_cents=amount_cents,
        currency=settings.stripe_currency,
        external_id=external_id,
        expires_at=expires_at,
    )
    session.add(purchase)
    log.info("entitlement_activated", target_type=target_type, target_id=str(target_id),
             duration=duration, expires_at=expires_at.isoformat(), external_id=external_id)
    return purchase


async def request_boost(session: AsyncSession, user: User, req: BoostRequest, now: datetime | None = None) -> BoostResponse:
    now = now or datetime.now(dt_tz.utc)
    _target, conflict = await _load_target(session, user, req, now)
    if conflict:
        raise EntitlementConflict(conflict, details={"target_type": req.target_type, "target_id": str(req.target_id)})

    if req.trial:
        purchase = await activate_entitlement(
            session, user_id=user.id, target_type="account", target_id=user.id,
            duration=TRIAL_DURATION, external_id=f"trial:{user.id}", now=now,
        )
        user.premium_trial_used = True
        await session.commit()
        return BoostResponse(status="activated", expires_at=purchase.expires_at if purchase else user.premium_account_expires_at)

    if not settings.stripe_secret_key:
        raise RuntimeError("Stripe not configured")
    duration = "1m" if req.target_type == "account" else req.duration
    amount = price_cents(req.target_type, duration)
    stripe.api_key = settings.stripe_secret_key
    checkout = stripe.checkout.Session.create(
        mode="payment",
        client_reference_id=str(user.id),
        line_items=[{
            "price_data": {
                "currency": settings.stripe_currency,
                "product_data": {"name": f"{settings.app_display_name} Premium ({req.target_type}, {duration})"},
                "unit_amount": int(amount),
            },
            "quantity": 1,
        }],
        metadata={
            "user_id": str(user.id),
            "target_type": req.target_type,
            "target_id": str(req.target_id),
            "duration": duration,
        },
        success_url=settings.billing_success_url + "?session_id={CHECKOUT_SESSION_ID}",
        cancel_url=settings.billing_cancel_url,
    )
    log.info("checkout_created", session_id=checkout["id"], target_type=req.target_type, target_id=str(req.target_id))
    return BoostResponse(status="redirect", checkout_url=checkout["url"], session_id=checkout["id"])
