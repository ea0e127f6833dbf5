from __future__ import annotations
from datetime import date, datetime, time, timezone as dt_tz
from zoneinfo import ZoneInfo

TERMINAL_STATUSES = ("done", "canceled")


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes (e.g. read back from SQLite) are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_tz.utc)
    return dt.astimezone(dt_tz.utc)


def end_of_day(d: date, tz_name: str) -> datetime:
    """
    Last instant of the local calendar day `d` in `tz_name`, as an aware datetime.

    Examples:
        >>> end_of_day(date(2025, 1, 10), "Europe/Paris").isoformat()
        '2025-01-10T23:59:59.999999+01:00'
    """
    return datetime.combine(d, time.max, tzinfo=ZoneInfo(tz_name))


def is_time_expired(status: str, deadline: date | None, now: datetime, tz_name: str) -> bool:
    """
    True once `now` is past the end of the deadline day in the event's timezone.

    Terminal statuses (done, canceled) never report time expiry, their closure
    comes from the status itself. A null deadline never expires. A naive `now`
    is read as wall-clock time in the event's timezone.
    """
    if status in TERMINAL_STATUSES:
        return False
    if deadline is None:
        return False
    tz = ZoneInfo(tz_name)
    local_now = now.replace(tzinfo=tz) if now.tzinfo is None else now.astimezone(tz)
    return local_now > end_of_day(deadline, tz_name)
