"""
Who may do what on an event, right now.

`EventAccessPolicy.evaluate` is the single place these rules live. It is a
pure function of the facts handed to it: callers read the event, the
caller's invitation, their submission summary and the OWNER's premium
status fresh from the database and pass them in. Denials come back as
`False` flags; enforcing them (and raising) is the caller's job.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timezone as dt_tz
from typing import Any
from uuid import UUID

from gregaplay.config import settings
from gregaplay.schemas.capabilities import (
    Actions, Capabilities, CapabilityState, LatestSubmission, Limits, PremiumState, Role,
)
from gregaplay.services.premium import AccountPremium, event_boost_active
from gregaplay.services.time_windows import TERMINAL_STATUSES, is_time_expired

UNLIMITED = None
FREE_UPLOADS_PER_EVENT = 1
FINAL_VIDEO_SOURCE_STATUSES = ("open", "ready")


@dataclass(frozen=True)
class EventFacts:
    id: UUID
    owner_id: UUID
    status: str
    deadline: date | None
    visibility: str
    is_premium_event: bool = False
    premium_expires_at: datetime | None = None
    timezone: str = "UTC"
    # Organizer's own clip length cap; can only tighten the global one
    max_clip_duration: int | None = None

    @classmethod
    def from_model(cls, ev: Any) -> "EventFacts":
        return cls(
            id=ev.id, owner_id=ev.owner_id, status=ev.status, deadline=ev.deadline,
            visibility=ev.visibility, is_premium_event=bool(ev.is_premium_event),
            premium_expires_at=ev.premium_expires_at, timezone=ev.timezone or "UTC",
            max_clip_duration=ev.max_clip_duration,
        )


@dataclass(frozen=True)
class AccountFacts:
    id: UUID
    email: str


@dataclass(frozen=True)
class InvitationFacts:
    status: str


@dataclass(frozen=True)
class SubmissionSummary:
    count: int = 0
    latest_id: UUID | None = None
    latest_created_at: datetime | None = None
    # Clips from everyone on the event; only the owner needs it
    event_total: int = 0


class EventAccessPolicy:
    def __init__(
        self,
        max_clip_duration_seconds: int | None = None,
        max_clip_size_bytes: int | None = None,
    ):
        self.max_clip_duration_seconds = max_clip_duration_seconds or settings.max_clip_duration_seconds
        self.max_clip_size_bytes = max_clip_size_bytes or settings.max_clip_size_bytes

    def evaluate(
        self,
        event: EventFacts,
        account: AccountFacts | None,
        invitation: InvitationFacts | None,
        submissions: SubmissionSummary,
        owner_premium: AccountPremium,
        now: datetime | None = None,
    ) -> Capabilities:
        """
        Compute the capabilities of `account` (None = anonymous) on `event`.

        `owner_premium` is the premium status of the event OWNER's account.
        A participant's own premium never raises their limits; only the
        owner's premium or an explicit event boost does, for everyone.
        """
        now = now or datetime.now(dt_tz.utc)

        is_owner = account is not None and account.id == event.owner_id
        is_terminal = event.status in TERMINAL_STATUSES
        time_expired = is_time_expired(event.status, event.deadline, now, event.timezone)
        is_closed = is_terminal or time_expired
        is_invited = invitation is not None
        is_public_guest = event.visibility == "public"

        boost_active = event_boost_active(event.is_premium_event, event.premium_expires_at, now)
        # owner_premium always describes the owner, whoever the caller is
        is_effectively_premium = boost_active or owner_premium.is_active

        can_view = is_owner or is_public_guest or is_invited or account is None
        view_scope = "full" if (is_owner or is_public_guest or is_invited) else "metadata"

        can_submit = (not is_closed) and account is not None and (is_owner or is_invited or is_public_guest)

        max_uploads = UNLIMITED if is_effectively_premium else FREE_UPLOADS_PER_EVENT
        count = max(0, int(submissions.count or 0))
        reached = max_uploads is not UNLIMITED and count >= max_uploads
        can_submit = can_submit and not reached

        can_join = (
            account is not None and not is_owner and not is_invited
            and is_public_guest and not is_closed
        )

        clip_seconds = self.max_clip_duration_seconds
        if event.max_clip_duration:
            clip_seconds = min(clip_seconds, event.max_clip_duration)

        latest = None
        if submissions.latest_id is not None:
            latest = LatestSubmission(id=submissions.latest_id, created_at=submissions.latest_created_at)

        return Capabilities(
            event_id=event.id,
            role=Role(is_owner=is_owner, is_invited=is_invited, is_public_guest=is_public_guest),
            actions=Actions(
                can_view=can_view,
                can_join=can_join,
                can_submit_video=can_submit,
                can_upload_multiple_videos=is_effectively_premium,
                can_manage_invitations=is_owner and not is_closed,
                # Visibility and deadline are metadata: allowed when closed.
                # Moving the deadline forward re-opens the event at next evaluation.
                can_toggle_visibility=is_owner,
                can_edit_deadline=is_owner,
                can_generate_final_video=(
                    is_owner and max(count, submissions.event_total) > 0
                    and event.status in FINAL_VIDEO_SOURCE_STATUSES
                ),
                can_delete_event=is_owner,
                can_view_submissions=is_owner,
            ),
            limits=Limits(
                max_uploads_per_event=max_uploads,
                max_clip_duration_seconds=clip_seconds,
                max_clip_size_bytes=self.max_clip_size_bytes,
            ),
            state=CapabilityState(
                has_reached_upload_limit=reached,
                latest_submission=latest,
                submission_count=count,
                is_closed=is_closed,
                is_time_expired=time_expired,
                view_scope=view_scope,
            ),
            premium=PremiumState(
                is_event_boost_active=boost_active,
                is_owner_premium=owner_premium.is_active,
                is_effectively_premium=is_effectively_premium,
                event_premium_expires_at=event.premium_expires_at,
            ),
        )


def evaluate(
    event: EventFacts,
    account: AccountFacts | None,
    invitation: InvitationFacts | None,
    submissions: SubmissionSummary,
    owner_premium: AccountPremium,
    now: datetime | None = None,
) -> Capabilities:
    return EventAccessPolicy().evaluate(event, account, invitation, submissions, owner_premium, now)
