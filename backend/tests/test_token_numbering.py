"""
Unit tests for token number and counter arithmetic.
"""

from datetime import date, datetime, timezone

from backend.app.core.business_calendar import business_date, business_day_bounds
from backend.app.domain.tokens.numbering import (
    effective_daily_count,
    format_token_no,
    next_token_number,
    reverse_counters,
)
from backend.app.models.operator_counters import OperatorCounters

TODAY = date(2024, 3, 15)
YESTERDAY = date(2024, 3, 14)


def test_first_token_ever_is_01():
    issued = next_token_number("jdoe", OperatorCounters(), TODAY)

    assert issued.token_no == "JDOE01"
    assert issued.sequence == 1
    assert issued.counters == OperatorCounters(daily_date=TODAY, daily_count=1, total_count=1)


def test_sequence_continues_within_the_day():
    counters = OperatorCounters(daily_date=TODAY, daily_count=4, total_count=40)

    issued = next_token_number("jdoe", counters, TODAY)

    assert issued.token_no == "JDOE05"
    assert issued.counters == OperatorCounters(daily_date=TODAY, daily_count=5, total_count=41)


def test_daily_count_resets_on_new_day():
    counters = OperatorCounters(daily_date=YESTERDAY, daily_count=17, total_count=90)

    issued = next_token_number("jdoe", counters, TODAY)

    assert issued.token_no == "JDOE01"
    assert issued.counters.daily_date == TODAY
    assert issued.counters.daily_count == 1
    assert issued.counters.total_count == 91


def test_stale_count_is_treated_as_zero():
    assert effective_daily_count(OperatorCounters(YESTERDAY, 9, 9), TODAY) == 0
    assert effective_daily_count(OperatorCounters(TODAY, 9, 9), TODAY) == 9


def test_sequence_above_99_grows_a_digit():
    assert format_token_no("jdoe", 7) == "JDOE07"
    assert format_token_no("jdoe", 100) == "JDOE100"


def test_username_is_upper_cased():
    assert format_token_no("Ravi_2", 3) == "RAVI_203"


def test_reverse_same_day_decrements_both():
    counters = OperatorCounters(daily_date=TODAY, daily_count=3, total_count=10)

    assert reverse_counters(counters, TODAY) == OperatorCounters(TODAY, 2, 9)


def test_reverse_previous_day_keeps_daily_count():
    counters = OperatorCounters(daily_date=TODAY, daily_count=3, total_count=10)

    assert reverse_counters(counters, YESTERDAY) == OperatorCounters(TODAY, 3, 9)


def test_reverse_never_goes_negative():
    assert reverse_counters(OperatorCounters(TODAY, 0, 0), TODAY) == OperatorCounters(TODAY, 0, 0)
    assert reverse_counters(OperatorCounters(None, 0, 0), TODAY) == OperatorCounters(None, 0, 0)


def test_reverse_keeps_daily_date():
    counters = OperatorCounters(daily_date=YESTERDAY, daily_count=2, total_count=2)

    assert reverse_counters(counters, YESTERDAY).daily_date == YESTERDAY


def test_business_date_uses_business_timezone():
    # 20:00 UTC is already the next day in Asia/Kolkata (UTC+05:30)
    late_utc = datetime(2024, 3, 14, 20, 0, tzinfo=timezone.utc)
    assert business_date(late_utc) == TODAY

    # naive values are read as UTC
    assert business_date(datetime(2024, 3, 14, 10, 0)) == YESTERDAY


def test_business_day_bounds_are_inclusive():
    start, end = business_day_bounds(TODAY, TODAY)

    assert start == datetime(2024, 3, 14, 18, 30, tzinfo=timezone.utc)
    assert end > start
    assert business_date(start) == TODAY
    assert business_date(end) == TODAY
    assert business_day_bounds(None, None) == (None, None)
