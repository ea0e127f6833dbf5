from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal
from gregaplay.services.time_windows import as_utc

BoostDuration = Literal["3d", "7d", "1m"]

DURATIONS: dict[str, timedelta] = {
    "3d": timedelta(days=3),
    "7d": timedelta(days=7),
    "1m": timedelta(days=30),
}


@dataclass(frozen=True)
class AccountPremiumFacts:
    is_premium_account: bool = False
    premium_account_expires_at: datetime | None = None
    legacy_is_premium: bool = False


@dataclass(frozen=True)
class AccountPremium:
    is_active: bool
    expires_at: datetime | None = None
    source: str | None = None  # "subscription" | "legacy" | None

    @classmethod
    def inactive(cls) -> "AccountPremium":
        return cls(is_active=False)


def is_window_active(flag: bool, expires_at: datetime | None, now: datetime) -> bool:
    """Flag set AND expiry known AND expiry in the future. A null expiry is never active."""
    if not flag or expires_at is None:
        return False
    return as_utc(expires_at) > as_utc(now)


def account_premium(facts: AccountPremiumFacts | None, now: datetime) -> AccountPremium:
    if facts is None:
        return AccountPremium.inactive()
    if is_window_active(facts.is_premium_account, facts.premium_account_expires_at, now):
        return AccountPremium(True, as_utc(facts.premium_account_expires_at), "subscription")
    # Legacy accounts predate the expiry column: any true value counts
    if facts.legacy_is_premium:
        return AccountPremium(True, None, "legacy")
    return AccountPremium.inactive()


def account_premium_of(user, now: datetime) -> AccountPremium:
    """Same rule, read straight off a User row."""
    if user is None:
        return AccountPremium.inactive()
    return account_premium(
        AccountPremiumFacts(
            is_premium_account=bool(user.is_premium_account),
            premium_account_expires_at=user.premium_account_expires_at,
            legacy_is_premium=bool(user.is_premium),
        ),
        now,
    )


def event_boost_active(is_premium_event: bool, premium_expires_at: datetime | None, now: datetime) -> bool:
    return is_window_active(is_premium_event, premium_expires_at, now)


def extend_window(current_expiry: datetime | None, duration: str, now: datetime) -> datetime:
    """New expiry: the duration is added to whichever is later, now or the current expiry."""
    start = as_utc(now)
    if current_expiry is not None and as_utc(current_expiry) > start:
        start = as_utc(current_expiry)
    return start + DURATIONS[duration]
