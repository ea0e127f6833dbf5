from __future__ import annotations
from datetime import date, datetime


def parse_birth_date(value) -> date | None:
    """A date, or None when `value` is not exactly one (trailing text included)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None


def years_before(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return d.replace(year=d.year - years, day=28)


def is_under_minimum_age(birth_date, minimum_years: int = 15, today: date | None = None) -> bool:
    """
    True when the registrant is younger than `minimum_years` on `today`.
    Anything that does not parse as a date counts as underage.
    """
    born = parse_birth_date(birth_date)
    if born is None:
        return True
    today = today or date.today()
    return born > years_before(today, minimum_years)
