from __future__ import annotations
from datetime import date, timedelta
from gregaplay.services.age_gate import is_under_minimum_age, years_before


TODAY = date(2025, 6, 15)


def test_exactly_fifteen_today_is_allowed():
    assert not is_under_minimum_age("2010-06-15", 15, today=TODAY)


def test_one_day_short_of_fifteen_is_refused():
    born = years_before(TODAY, 15) + timedelta(days=1)
    assert is_under_minimum_age(born.isoformat(), 15, today=TODAY)


def test_adult_is_allowed():
    assert not is_under_minimum_age(date(1990, 1, 1), 15, today=TODAY)


def test_malformed_dates_fail_closed():
    for value in ("", "not-a-date", "2010-13-40", None, 42):
        assert is_under_minimum_age(value, 15, today=TODAY)


def test_same_inputs_same_answer():
    results = {is_under_minimum_age("2010-06-16", 15, today=TODAY) for _ in range(5)}
    assert results == {True}


def test_leap_day_threshold_falls_back_to_28th():
    assert years_before(date(2024, 2, 29), 15) == date(2009, 2, 28)
    assert is_under_minimum_age("2008-02-29", 15, today=date(2023, 2, 27))
    assert not is_under_minimum_age("2008-02-29", 15, today=date(2023, 3, 1))


def test_trailing_text_after_a_date_fails_closed():
    assert is_under_minimum_age("2000-01-01garbage", 15, today=TODAY)
    assert is_under_minimum_age("2000-01-01 12:00", 15, today=TODAY)
    assert not is_under_minimum_age(" 2000-01-01 ", 15, today=TODAY)
